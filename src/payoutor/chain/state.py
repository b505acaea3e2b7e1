from __future__ import annotations

from collections.abc import Mapping

from payoutor.chain.client import ChainSessionProvider
from payoutor.errors import ChainUnavailable, PayoutError
from payoutor.observability.logging import get_logger
from payoutor.types import Network

COUNCIL_MODULE = "TreasuryCouncilCollective"
TREASURY_MODULE = "Treasury"


class ChainStateFetcher:
    def __init__(self, clients: ChainSessionProvider, endpoints: Mapping[Network, str]) -> None:
        self._clients = clients
        self._endpoints = endpoints

    async def _read_counter(self, network: Network, module: str, storage_function: str) -> int:
        operation = f"{module}.{storage_function}"
        logger = get_logger("chain_state")
        try:
            async with self._clients.session(network, self._endpoints[network]) as session:
                value = await session.query_counter(module, storage_function)
        except PayoutError:
            raise
        except TimeoutError as exc:
            raise ChainUnavailable(network.value, operation, "query timed out") from exc
        except Exception as exc:
            reason = str(exc) or type(exc).__name__
            raise ChainUnavailable(network.value, operation, reason) from exc

        if value < 0:
            raise ChainUnavailable(network.value, operation, f"unexpected counter value {value}")
        logger.info("counter_read", network=network.value, counter=operation, value=value)
        return value

    async def get_proposal_count(self, network: Network) -> int:
        return await self._read_counter(network, COUNCIL_MODULE, "ProposalCount")

    async def get_spend_count(self, network: Network) -> int:
        return await self._read_counter(network, TREASURY_MODULE, "SpendCount")
