from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

JsonDict = dict[str, Any]


class CommandStatus(StrEnum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Network(StrEnum):
    MOONBEAM = "moonbeam"
    MOONRIVER = "moonriver"


class Token(StrEnum):
    GLMR = "GLMR"
    MOVR = "MOVR"
    USDC = "USDC"


class PayoutShape(StrEnum):
    NATIVE_DUAL_TOKEN = "native_dual_token"
    STABLE_SINGLE_TOKEN = "stable_single_token"


class CallKind(StrEnum):
    SPEND = "spend"
    PROPOSE = "propose"
    PROXY_PROPOSE = "proxy_propose"
    VOTE = "vote"
    CLOSE = "close"
    PAYOUT = "payout"


@dataclass(slots=True, frozen=True)
class CommandResult:
    command: str
    status: CommandStatus
    details: JsonDict = field(default_factory=dict)

    def to_dict(self) -> JsonDict:
        return {
            "command": self.command,
            "status": self.status.value,
            "details": self.details,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
