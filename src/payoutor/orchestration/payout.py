from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

import httpx

from payoutor.chain.calls import CloseWeightBudget, GovernanceCallEncoder, PLACEHOLDER_PROPOSAL_HASH
from payoutor.chain.client import ChainClientFactory, ChainSessionProvider
from payoutor.chain.state import ChainStateFetcher
from payoutor.config import AppSettings
from payoutor.domain.allocation import TokenAllocation, allocate, to_smallest_unit
from payoutor.domain.formatting import (
    render_native_forum_reply,
    render_native_summary,
    render_stable_forum_reply,
    render_stable_summary,
)
from payoutor.domain.networks import TokenProfile, token_profiles
from payoutor.domain.request import PayoutRequest
from payoutor.domain.result import (
    ChainCounters,
    NativeDualTokenPayout,
    NetworkCalls,
    PayoutResult,
    PriceQuote,
    StableSingleTokenPayout,
    TokenPayout,
)
from payoutor.errors import PayoutError, ValidationError
from payoutor.market.subscan import SubscanPriceFeed
from payoutor.observability.logging import get_logger
from payoutor.types import Network, PayoutShape, Token

STABLE_PRICE = 1.0


@dataclass(slots=True, frozen=True)
class FetchedState:
    quotes: dict[Token, PriceQuote]
    counters: dict[Network, ChainCounters]


def _first_error(group: BaseExceptionGroup) -> BaseException:
    """Pick the error to surface from a failed task group, preferring domain errors."""
    flat: list[BaseException] = []
    pending: list[BaseException] = [group]
    while pending:
        current = pending.pop(0)
        if isinstance(current, BaseExceptionGroup):
            pending.extend(current.exceptions)
        else:
            flat.append(current)

    for error in flat:
        if isinstance(error, PayoutError):
            return error
    return flat[0]


class PayoutOrchestrator:
    """Runs one payout request: fetch, allocate, encode, assemble.

    A request either succeeds with fresh prices and counters or fails with a
    single error. Nothing is cached between requests.
    """

    def __init__(
        self,
        settings: AppSettings,
        price_feed: SubscanPriceFeed,
        clients: ChainSessionProvider,
    ) -> None:
        self._settings = settings
        self._price_feed = price_feed
        self._clients = clients
        self._profiles = token_profiles(settings)

    async def calculate(self, request: PayoutRequest) -> PayoutResult:
        logger = get_logger("payout_orchestrator")
        shape = request.shape
        logger.info(
            "payout_requested",
            shape=shape.value,
            usd_amount=request.usd_amount,
            recipient=request.recipient,
            tokens=[token.value for token in request.tokens],
            proxied=request.proxy is not None,
        )

        try:
            fetched = await self._fetch(request)
            allocations = allocate(
                request.usd_amount,
                request.ratios,
                {token: quote.price for token, quote in fetched.quotes.items()},
            )
            calls = await self._encode(request, allocations, fetched.counters)
        except PayoutError as exc:
            logger.error("payout_failed", shape=shape.value, error=exc.message)
            raise

        result = self._assemble(request, fetched, allocations, calls)
        logger.info("payout_calculated", shape=shape.value, warnings=len(result.warnings))
        return result

    def _networks(self, request: PayoutRequest) -> tuple[Network, ...]:
        network_of = {token: profile.network for token, profile in self._profiles.items()}
        return request.networks(network_of)

    async def _quote(self, profile: TokenProfile) -> PriceQuote:
        if profile.is_stable:
            block = await self._price_feed.get_recent_block(profile.network, token=profile.token)
            return PriceQuote(profile.network, profile.token, block, STABLE_PRICE)
        return await self._price_feed.quote(profile.network, profile.token)

    async def _fetch(self, request: PayoutRequest) -> FetchedState:
        missing = [
            network.value for network in self._networks(request) if network not in request.endpoints
        ]
        if missing:
            raise ValidationError(f"missing endpoint for {', '.join(missing)}")

        state = ChainStateFetcher(self._clients, request.endpoints)
        quote_tasks: dict[Token, asyncio.Task[PriceQuote]] = {}
        proposal_tasks: dict[Network, asyncio.Task[int]] = {}
        spend_tasks: dict[Network, asyncio.Task[int]] = {}

        try:
            async with asyncio.TaskGroup() as group:
                for token in request.tokens:
                    quote_tasks[token] = group.create_task(self._quote(self._profiles[token]))
                for network in self._networks(request):
                    proposal_tasks[network] = group.create_task(state.get_proposal_count(network))
                    spend_tasks[network] = group.create_task(state.get_spend_count(network))
        except BaseExceptionGroup as exc_group:
            raise _first_error(exc_group) from None

        return FetchedState(
            quotes={token: task.result() for token, task in quote_tasks.items()},
            counters={
                network: ChainCounters(
                    network=network,
                    proposal_index=proposal_tasks[network].result(),
                    spend_index=spend_tasks[network].result(),
                )
                for network in proposal_tasks
            },
        )

    async def _encode_network(
        self,
        request: PayoutRequest,
        network: Network,
        tokens: Sequence[Token],
        allocations: Mapping[Token, TokenAllocation],
        counters: ChainCounters,
    ) -> dict[Token, NetworkCalls]:
        budget = CloseWeightBudget(
            ref_time=self._settings.close_ref_time,
            proof_size=self._settings.close_proof_size,
            length_bound=self._settings.close_length_bound,
        )
        encoded: dict[Token, NetworkCalls] = {}
        async with self._clients.session(network, request.endpoints[network]) as session:
            encoder = GovernanceCallEncoder(session, budget)
            vote = await encoder.encode_vote(counters.proposal_index)
            close = await encoder.encode_close(counters.proposal_index)
            payout = await encoder.encode_payout(counters.spend_index)

            for token in tokens:
                profile = self._profiles[token]
                unit_amount = allocations[token].unit_amount
                proposal = await encoder.encode_spend_and_propose(
                    request.recipient,
                    unit_amount,
                    profile,
                    request.council.threshold,
                    request.council.length_bound,
                )
                proxy_propose = None
                if request.proxy is not None:
                    proxied = await encoder.encode_spend_and_propose(
                        request.recipient,
                        unit_amount,
                        profile,
                        request.council.threshold,
                        request.council.length_bound,
                        proxy=request.proxy,
                    )
                    proxy_propose = proxied.propose

                encoded[token] = NetworkCalls(
                    network=network,
                    spend=proposal.spend,
                    propose=proposal.propose,
                    vote=vote,
                    close=close,
                    payout=payout,
                    proxy_propose=proxy_propose,
                )
        return encoded

    async def _encode(
        self,
        request: PayoutRequest,
        allocations: Mapping[Token, TokenAllocation],
        counters: Mapping[Network, ChainCounters],
    ) -> dict[Token, NetworkCalls]:
        tasks: list[asyncio.Task[dict[Token, NetworkCalls]]] = []
        try:
            async with asyncio.TaskGroup() as group:
                for network in self._networks(request):
                    tokens = [t for t in request.tokens if self._profiles[t].network == network]
                    task = group.create_task(
                        self._encode_network(
                            request, network, tokens, allocations, counters[network]
                        )
                    )
                    tasks.append(task)
        except BaseExceptionGroup as exc_group:
            raise _first_error(exc_group) from None

        merged: dict[Token, NetworkCalls] = {}
        for task in tasks:
            merged.update(task.result())
        return merged

    def _warnings(self, counters: Mapping[Network, ChainCounters]) -> tuple[str, ...]:
        warnings: list[str] = []
        for network, counter in counters.items():
            warnings.append(
                f"{network.value}: vote and close calls reference the placeholder proposal hash "
                f"{PLACEHOLDER_PROPOSAL_HASH}; replace it with the on-chain proposal hash "
                "before submitting."
            )
            warnings.append(
                f"{network.value}: proposal index {counter.proposal_index} and spend index "
                f"{counter.spend_index} were predicted at request time; verify them on-chain "
                "before submitting vote, close and payout calls."
            )
        return tuple(warnings)

    def _assemble(
        self,
        request: PayoutRequest,
        fetched: FetchedState,
        allocations: Mapping[Token, TokenAllocation],
        calls: Mapping[Token, NetworkCalls],
    ) -> PayoutResult:
        legs: dict[Token, TokenPayout] = {}
        for token in request.tokens:
            profile = self._profiles[token]
            allocation = allocations[token]
            legs[token] = TokenPayout(
                allocation=allocation,
                smallest_unit_amount=to_smallest_unit(allocation.unit_amount, profile.decimals),
                quote=fetched.quotes[token],
                counters=fetched.counters[profile.network],
                calls=calls[token],
            )

        warnings = self._warnings(fetched.counters)
        if request.shape == PayoutShape.STABLE_SINGLE_TOKEN:
            usdc = legs[Token.USDC]
            return StableSingleTokenPayout(
                usd_amount=request.usd_amount,
                recipient=request.recipient,
                summary=render_stable_summary(request, usdc, warnings),
                forum_reply=render_stable_forum_reply(request, usdc),
                warnings=warnings,
                proxy=request.proxy,
                fx=request.fx,
                usdc=usdc,
            )

        ordered = list(legs.values())
        return NativeDualTokenPayout(
            usd_amount=request.usd_amount,
            recipient=request.recipient,
            summary=render_native_summary(self._settings, request, ordered, warnings),
            forum_reply=render_native_forum_reply(self._settings, request, ordered),
            warnings=warnings,
            proxy=request.proxy,
            fx=request.fx,
            glmr=legs[Token.GLMR],
            movr=legs[Token.MOVR],
        )


async def calculate_payout(
    request: PayoutRequest,
    settings: AppSettings,
    *,
    http_client: httpx.AsyncClient | None = None,
    clients: ChainSessionProvider | None = None,
) -> PayoutResult:
    """Run one request with request-scoped HTTP and chain clients."""
    chain_clients = clients or ChainClientFactory(settings)
    if http_client is not None:
        feed = SubscanPriceFeed(settings, http_client)
        return await PayoutOrchestrator(settings, feed, chain_clients).calculate(request)

    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        feed = SubscanPriceFeed(settings, client)
        return await PayoutOrchestrator(settings, feed, chain_clients).calculate(request)
