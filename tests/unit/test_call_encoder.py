from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from typing import Any

import pytest

from payoutor.chain.calls import (
    PLACEHOLDER_PROPOSAL_HASH,
    CloseWeightBudget,
    GovernanceCallEncoder,
)
from payoutor.chain.client import ComposedCall
from payoutor.domain.networks import TokenProfile
from payoutor.domain.request import ProxyEnvelope
from payoutor.errors import EncodingFailed
from payoutor.types import Network, Token

RECIPIENT = "0x1234567890AbcdEF1234567890aBcdef12345678"
GLMR = TokenProfile(Token.GLMR, Network.MOONBEAM, decimals=18)
USDC = TokenProfile(Token.USDC, Network.MOONBEAM, decimals=6, asset_id=1337)


class RecordingSession:
    """Deterministic stand-in for a chain session: a call is the JSON of its arguments."""

    def __init__(self, network: Network = Network.MOONBEAM, fail_on: str | None = None) -> None:
        self.network = network
        self.fail_on = fail_on
        self.composed: list[tuple[str, str, dict[str, Any]]] = []

    async def query_counter(self, module: str, storage_function: str) -> int:
        return 0

    async def compose_call(
        self,
        module: str,
        function: str,
        params: Mapping[str, Any],
    ) -> ComposedCall:
        if function == self.fail_on:
            raise RuntimeError("metadata lookup failed")
        plain = {
            key: value.to_hex() if isinstance(value, ComposedCall) else value
            for key, value in params.items()
        }
        self.composed.append((module, function, plain))
        data = json.dumps({"call": f"{module}.{function}", "params": plain}, sort_keys=True)
        return ComposedCall(module=module, function=function, data=data.encode())


def _decode(payload_hex: str) -> dict[str, Any]:
    return json.loads(bytes.fromhex(payload_hex[2:]).decode())


def test_spend_and_propose_are_deterministic() -> None:
    first = asyncio.run(
        GovernanceCallEncoder(RecordingSession()).encode_spend_and_propose(
            RECIPIENT, 5000.0, GLMR, 3, 10_000
        )
    )
    second = asyncio.run(
        GovernanceCallEncoder(RecordingSession()).encode_spend_and_propose(
            RECIPIENT, 5000.0, GLMR, 3, 10_000
        )
    )

    assert first == second
    assert first.spend.payload_hash is not None
    assert first.propose.payload_hash is not None


def test_spend_uses_native_asset_kind_and_smallest_units() -> None:
    calls = asyncio.run(
        GovernanceCallEncoder(RecordingSession()).encode_spend_and_propose(
            RECIPIENT, 5000.0, GLMR, 3, 10_000
        )
    )

    spend = _decode(calls.spend.payload_hex)
    assert spend["call"] == "Treasury.spend"
    assert spend["params"] == {
        "asset_kind": {"Native": None},
        "amount": 5000 * 10**18,
        "beneficiary": RECIPIENT,
        "valid_from": None,
    }


def test_stable_spend_references_asset_id() -> None:
    calls = asyncio.run(
        GovernanceCallEncoder(RecordingSession()).encode_spend_and_propose(
            RECIPIENT, 250.0, USDC, 3, 10_000
        )
    )

    spend = _decode(calls.spend.payload_hex)
    assert spend["params"]["asset_kind"] == {"WithId": 1337}
    assert spend["params"]["amount"] == 250_000_000


def test_propose_embeds_spend_call() -> None:
    calls = asyncio.run(
        GovernanceCallEncoder(RecordingSession()).encode_spend_and_propose(
            RECIPIENT, 5000.0, GLMR, 3, 10_000
        )
    )

    propose = _decode(calls.propose.payload_hex)
    assert propose["call"] == "TreasuryCouncilCollective.propose"
    assert propose["params"]["proposal"] == calls.spend.payload_hex
    assert propose["params"]["threshold"] == 3
    assert propose["params"]["length_bound"] == 10_000


def test_threshold_and_length_bound_only_change_propose() -> None:
    base = asyncio.run(
        GovernanceCallEncoder(RecordingSession()).encode_spend_and_propose(
            RECIPIENT, 5000.0, GLMR, 3, 10_000
        )
    )
    higher_threshold = asyncio.run(
        GovernanceCallEncoder(RecordingSession()).encode_spend_and_propose(
            RECIPIENT, 5000.0, GLMR, 4, 10_000
        )
    )
    longer_bound = asyncio.run(
        GovernanceCallEncoder(RecordingSession()).encode_spend_and_propose(
            RECIPIENT, 5000.0, GLMR, 3, 20_000
        )
    )

    assert base.spend == higher_threshold.spend == longer_bound.spend
    assert base.propose != higher_threshold.propose
    assert base.propose != longer_bound.propose


def test_proxy_wraps_the_same_proposal() -> None:
    proxy = ProxyEnvelope(real="0xAbCdEfABcDEfAbcDEfabCDEFABcdEfABCdEfAbCd")
    plain = asyncio.run(
        GovernanceCallEncoder(RecordingSession()).encode_spend_and_propose(
            RECIPIENT, 5000.0, GLMR, 3, 10_000
        )
    )
    proxied = asyncio.run(
        GovernanceCallEncoder(RecordingSession()).encode_spend_and_propose(
            RECIPIENT, 5000.0, GLMR, 3, 10_000, proxy=proxy
        )
    )

    assert proxied.spend == plain.spend
    assert proxied.propose != plain.propose

    wrapper = _decode(proxied.propose.payload_hex)
    assert wrapper["call"] == "Proxy.proxy"
    assert wrapper["params"]["real"] == proxy.real
    assert wrapper["params"]["force_proxy_type"] is None
    assert wrapper["params"]["call"] == plain.propose.payload_hex


def test_follow_up_calls_use_placeholder_hash_and_indices() -> None:
    encoder = GovernanceCallEncoder(
        RecordingSession(),
        CloseWeightBudget(ref_time=1_000, proof_size=2_000, length_bound=3_000),
    )

    vote = _decode(asyncio.run(encoder.encode_vote(42)).payload_hex)
    close = _decode(asyncio.run(encoder.encode_close(42)).payload_hex)
    payout = _decode(asyncio.run(encoder.encode_payout(7)).payload_hex)

    assert vote["params"] == {"proposal": PLACEHOLDER_PROPOSAL_HASH, "index": 42, "approve": True}
    assert close["params"] == {
        "proposal_hash": PLACEHOLDER_PROPOSAL_HASH,
        "index": 42,
        "proposal_weight_bound": {"ref_time": 1_000, "proof_size": 2_000},
        "length_bound": 3_000,
    }
    assert payout == {"call": "Treasury.payout", "params": {"index": 7}}


def test_follow_up_calls_carry_no_hash() -> None:
    encoder = GovernanceCallEncoder(RecordingSession())

    assert asyncio.run(encoder.encode_vote(1)).payload_hash is None
    assert asyncio.run(encoder.encode_payout(1)).payload_hash is None


def test_default_close_budget() -> None:
    budget = CloseWeightBudget()

    assert (budget.ref_time, budget.proof_size, budget.length_bound) == (
        5_000_000_000,
        100_000,
        10_000,
    )


def test_encoding_errors_name_the_call_kind_and_network() -> None:
    encoder = GovernanceCallEncoder(RecordingSession(Network.MOONRIVER, fail_on="close"))

    with pytest.raises(EncodingFailed) as excinfo:
        asyncio.run(encoder.encode_close(1))

    assert excinfo.value.call_kind == "close"
    assert excinfo.value.network == "moonriver"
    assert "metadata lookup failed" in excinfo.value.message
