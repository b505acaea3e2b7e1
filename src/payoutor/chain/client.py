from __future__ import annotations

import asyncio
import functools
import hashlib
from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Protocol

from substrateinterface import SubstrateInterface

from payoutor.config import AppSettings
from payoutor.errors import ChainUnavailable
from payoutor.observability.logging import get_logger
from payoutor.types import Network


@dataclass(slots=True, frozen=True)
class ComposedCall:
    """SCALE-encoded runtime call as returned by a chain session."""

    module: str
    function: str
    data: bytes
    handle: Any = field(default=None, compare=False, repr=False)

    def to_hex(self) -> str:
        return "0x" + self.data.hex()

    def hash_hex(self) -> str:
        return "0x" + hashlib.blake2b(self.data, digest_size=32).hexdigest()


class ChainSession(Protocol):
    network: Network

    async def query_counter(self, module: str, storage_function: str) -> int:
        ...

    async def compose_call(
        self,
        module: str,
        function: str,
        params: Mapping[str, Any],
    ) -> ComposedCall:
        ...


def _close_quietly(substrate: SubstrateInterface) -> None:
    try:
        substrate.close()
    except Exception as exc:
        get_logger("chain_client").warning("chain_session_close_failed", error=str(exc))


def _close_late_connection(connecting: asyncio.Future[SubstrateInterface]) -> None:
    if connecting.cancelled() or connecting.exception() is not None:
        return
    _close_quietly(connecting.result())


class SubstrateSession:
    """``ChainSession`` backed by a connected ``SubstrateInterface``.

    The interface is synchronous, so every operation runs in a worker thread
    under the configured timeout. A call that times out keeps running in its
    thread; ``aclose`` waits for such calls before closing the connection.
    """

    def __init__(self, network: Network, substrate: SubstrateInterface, timeout: float) -> None:
        self.network = network
        self._substrate = substrate
        self._timeout = timeout
        self._in_flight: set[asyncio.Future[Any]] = set()

    async def _run(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, functools.partial(func, *args, **kwargs))
        self._in_flight.add(future)
        future.add_done_callback(self._in_flight.discard)
        async with asyncio.timeout(self._timeout):
            return await asyncio.shield(future)

    async def aclose(self) -> None:
        substrate = self._substrate
        if self._in_flight:
            pending = asyncio.gather(*self._in_flight, return_exceptions=True)
            pending.add_done_callback(lambda _: _close_quietly(substrate))
            return
        loop = asyncio.get_running_loop()
        await asyncio.shield(loop.run_in_executor(None, _close_quietly, substrate))

    async def query_counter(self, module: str, storage_function: str) -> int:
        result = await self._run(
            self._substrate.query,
            module=module,
            storage_function=storage_function,
        )
        return int(result.value)

    async def compose_call(
        self,
        module: str,
        function: str,
        params: Mapping[str, Any],
    ) -> ComposedCall:
        call_params = {
            key: value.handle.value if isinstance(value, ComposedCall) else value
            for key, value in params.items()
        }
        call = await self._run(
            self._substrate.compose_call,
            call_module=module,
            call_function=function,
            call_params=call_params,
        )
        return ComposedCall(
            module=module,
            function=function,
            data=bytes(call.data.data),
            handle=call,
        )


class ChainSessionProvider(Protocol):
    def session(
        self,
        network: Network,
        endpoint: str,
    ) -> AbstractAsyncContextManager[ChainSession]:
        ...


class ChainClientFactory:
    """Opens one scoped chain session per use; the connection never outlives the block.

    A connect that is abandoned on timeout or cancellation still completes in
    its worker thread, so the late connection is closed as soon as it arrives.
    """

    def __init__(
        self,
        settings: AppSettings,
        connect: Callable[[str], SubstrateInterface] | None = None,
    ) -> None:
        self._settings = settings
        self._connect = connect or (lambda url: SubstrateInterface(url=url))

    async def _open(self, network: Network, endpoint: str) -> SubstrateInterface:
        loop = asyncio.get_running_loop()
        connecting = loop.run_in_executor(None, self._connect, endpoint)
        try:
            async with asyncio.timeout(self._settings.rpc_timeout_seconds):
                return await asyncio.shield(connecting)
        except TimeoutError as exc:
            connecting.add_done_callback(_close_late_connection)
            raise ChainUnavailable(network.value, "connect", "connection timed out") from exc
        except asyncio.CancelledError:
            connecting.add_done_callback(_close_late_connection)
            raise
        except Exception as exc:
            reason = str(exc) or type(exc).__name__
            raise ChainUnavailable(network.value, "connect", reason) from exc

    @asynccontextmanager
    async def session(self, network: Network, endpoint: str) -> AsyncIterator[ChainSession]:
        logger = get_logger("chain_client")
        substrate = await self._open(network, endpoint)
        logger.debug("chain_session_opened", network=network.value, endpoint=endpoint)
        session = SubstrateSession(network, substrate, self._settings.rpc_timeout_seconds)
        try:
            yield session
        finally:
            await session.aclose()
            logger.debug("chain_session_closed", network=network.value)
