from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from typing import Any

import pytest

from payoutor.chain.client import ComposedCall
from payoutor.chain.state import ChainStateFetcher
from payoutor.errors import ChainUnavailable
from payoutor.types import Network

ENDPOINTS = {
    Network.MOONBEAM: "wss://moonbeam.example",
    Network.MOONRIVER: "wss://moonriver.example",
}


class CounterSession:
    def __init__(self, network: Network, values: Mapping[str, Any]) -> None:
        self.network = network
        self._values = values

    async def query_counter(self, module: str, storage_function: str) -> int:
        value = self._values[f"{module}.{storage_function}"]
        if isinstance(value, Exception):
            raise value
        return value

    async def compose_call(
        self,
        module: str,
        function: str,
        params: Mapping[str, Any],
    ) -> ComposedCall:
        raise NotImplementedError


class CounterProvider:
    def __init__(self, values: Mapping[Network, Mapping[str, Any]]) -> None:
        self._values = values
        self.endpoints: list[str] = []

    @asynccontextmanager
    async def session(self, network: Network, endpoint: str) -> AsyncIterator[CounterSession]:
        self.endpoints.append(endpoint)
        yield CounterSession(network, self._values[network])


def test_reads_proposal_and_spend_counts_per_network() -> None:
    provider = CounterProvider(
        {
            Network.MOONBEAM: {
                "TreasuryCouncilCollective.ProposalCount": 42,
                "Treasury.SpendCount": 7,
            },
            Network.MOONRIVER: {
                "TreasuryCouncilCollective.ProposalCount": 11,
                "Treasury.SpendCount": 2,
            },
        }
    )
    fetcher = ChainStateFetcher(provider, ENDPOINTS)

    assert asyncio.run(fetcher.get_proposal_count(Network.MOONBEAM)) == 42
    assert asyncio.run(fetcher.get_spend_count(Network.MOONBEAM)) == 7
    assert asyncio.run(fetcher.get_proposal_count(Network.MOONRIVER)) == 11
    assert provider.endpoints[-1] == "wss://moonriver.example"


def test_query_errors_become_chain_unavailable() -> None:
    provider = CounterProvider(
        {Network.MOONRIVER: {"Treasury.SpendCount": RuntimeError("storage not found")}}
    )
    fetcher = ChainStateFetcher(provider, ENDPOINTS)

    with pytest.raises(ChainUnavailable) as excinfo:
        asyncio.run(fetcher.get_spend_count(Network.MOONRIVER))

    assert excinfo.value.network == "moonriver"
    assert excinfo.value.operation == "Treasury.SpendCount"
    assert "storage not found" in excinfo.value.message


def test_negative_counter_is_rejected() -> None:
    provider = CounterProvider({Network.MOONBEAM: {"TreasuryCouncilCollective.ProposalCount": -1}})
    fetcher = ChainStateFetcher(provider, ENDPOINTS)

    with pytest.raises(ChainUnavailable, match="unexpected counter value"):
        asyncio.run(fetcher.get_proposal_count(Network.MOONBEAM))
