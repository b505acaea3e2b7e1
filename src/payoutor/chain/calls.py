from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from payoutor.chain.client import ChainSession, ComposedCall
from payoutor.chain.state import COUNCIL_MODULE, TREASURY_MODULE
from payoutor.domain.allocation import to_smallest_unit
from payoutor.domain.networks import TokenProfile
from payoutor.domain.request import ProxyEnvelope
from payoutor.domain.result import EncodedCall
from payoutor.errors import EncodingFailed, PayoutError
from payoutor.observability.logging import get_logger
from payoutor.types import CallKind

PROXY_MODULE = "Proxy"

# The real proposal hash is only known once the proposal is on chain.
PLACEHOLDER_PROPOSAL_HASH = "0x" + "00" * 32


@dataclass(slots=True, frozen=True)
class CloseWeightBudget:
    ref_time: int = 5_000_000_000
    proof_size: int = 100_000
    length_bound: int = 10_000


@dataclass(slots=True, frozen=True)
class ProposalCalls:
    spend: EncodedCall
    propose: EncodedCall


def _hashed(call: ComposedCall) -> EncodedCall:
    return EncodedCall(payload_hex=call.to_hex(), payload_hash=call.hash_hex())


def _unhashed(call: ComposedCall) -> EncodedCall:
    return EncodedCall(payload_hex=call.to_hex())


class GovernanceCallEncoder:
    """Builds the council workflow calls for one connected network."""

    def __init__(
        self,
        session: ChainSession,
        close_budget: CloseWeightBudget | None = None,
    ) -> None:
        self._session = session
        self._close_budget = close_budget or CloseWeightBudget()

    async def _compose(
        self,
        kind: CallKind,
        module: str,
        function: str,
        params: Mapping[str, Any],
    ) -> ComposedCall:
        network = self._session.network.value
        try:
            call = await self._session.compose_call(module, function, params)
        except PayoutError:
            raise
        except TimeoutError as exc:
            raise EncodingFailed(kind.value, network, "encoding timed out") from exc
        except Exception as exc:
            raise EncodingFailed(kind.value, network, str(exc) or type(exc).__name__) from exc

        get_logger("call_encoder").debug(
            "call_encoded",
            network=network,
            call_kind=kind.value,
            call=f"{module}.{function}",
        )
        return call

    async def _spend(self, recipient: str, unit_amount: float, asset: TokenProfile) -> ComposedCall:
        return await self._compose(
            CallKind.SPEND,
            TREASURY_MODULE,
            "spend",
            {
                "asset_kind": asset.spend_asset_kind(),
                "amount": to_smallest_unit(unit_amount, asset.decimals),
                "beneficiary": recipient,
                "valid_from": None,
            },
        )

    async def _propose(
        self,
        spend: ComposedCall,
        threshold: int,
        length_bound: int,
    ) -> ComposedCall:
        return await self._compose(
            CallKind.PROPOSE,
            COUNCIL_MODULE,
            "propose",
            {
                "threshold": threshold,
                "proposal": spend,
                "length_bound": length_bound,
            },
        )

    async def _wrap_in_proxy(self, call: ComposedCall, proxy: ProxyEnvelope) -> ComposedCall:
        return await self._compose(
            CallKind.PROXY_PROPOSE,
            PROXY_MODULE,
            "proxy",
            {
                "real": proxy.real,
                "force_proxy_type": proxy.force_proxy_type,
                "call": call,
            },
        )

    async def encode_spend_and_propose(
        self,
        recipient: str,
        unit_amount: float,
        asset: TokenProfile,
        threshold: int,
        length_bound: int,
        proxy: ProxyEnvelope | None = None,
    ) -> ProposalCalls:
        spend = await self._spend(recipient, unit_amount, asset)
        propose = await self._propose(spend, threshold, length_bound)
        if proxy is not None:
            propose = await self._wrap_in_proxy(propose, proxy)
        return ProposalCalls(spend=_hashed(spend), propose=_hashed(propose))

    async def encode_vote(self, proposal_index: int) -> EncodedCall:
        call = await self._compose(
            CallKind.VOTE,
            COUNCIL_MODULE,
            "vote",
            {
                "proposal": PLACEHOLDER_PROPOSAL_HASH,
                "index": proposal_index,
                "approve": True,
            },
        )
        return _unhashed(call)

    async def encode_close(self, proposal_index: int) -> EncodedCall:
        call = await self._compose(
            CallKind.CLOSE,
            COUNCIL_MODULE,
            "close",
            {
                "proposal_hash": PLACEHOLDER_PROPOSAL_HASH,
                "index": proposal_index,
                "proposal_weight_bound": {
                    "ref_time": self._close_budget.ref_time,
                    "proof_size": self._close_budget.proof_size,
                },
                "length_bound": self._close_budget.length_bound,
            },
        )
        return _unhashed(call)

    async def encode_payout(self, spend_index: int) -> EncodedCall:
        call = await self._compose(
            CallKind.PAYOUT,
            TREASURY_MODULE,
            "payout",
            {"index": spend_index},
        )
        return _unhashed(call)
