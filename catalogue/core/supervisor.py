# Connect / retry state machine
"""
================================================================================
FILE: catalogue/core/supervisor.py
================================================================================

PURPOSE:
    Owns the connection to the document store. Runs the connect/retry state
    machine as a background asyncio task and publishes whether the store is
    usable. Single writer of the availability flag.

WORKFLOW:
    1. start() schedules the loop on the running event loop and returns
    2. CONNECTING: one attempt via connector(config)
    3. Failure -> log ERROR with cause, wait retry_interval (fixed), goto 2
    4. Success -> keep handle, flag = True, log INFO, CONNECTED
    5. CONNECTED is terminal unless the health watch is enabled
    6. Health watch: ping every health_check_interval; on failure
       flag = False, close + drop handle, goto 2
    7. stop() cancels the loop, flag = False, handle closed, STOPPED

STATES:
    - IDLE: constructed, not started
    - CONNECTING: attempt outstanding or waiting for the next one
    - CONNECTED: handle valid, flag True
    - STOPPED: shut down

STATE TRANSITIONS:
    IDLE -> CONNECTING: start()
    CONNECTING -> CONNECTING: attempt failed (after fixed wait)
    CONNECTING -> CONNECTED: attempt succeeded
    CONNECTED -> CONNECTING: health ping failed (watch enabled only)
    any -> STOPPED: stop()

KEY FACTS:
    - Retry wait is `await sleep(...)`, never blocking; requests keep being
      served (and gated) while the store is down
    - Retry interval is fixed, no exponential growth, retries forever
    - Connectivity errors never escape this module
    - available is True iff the handle from the latest successful attempt
      is held
    - Single event loop, single writer: no locks

TESTING ENVIRONMENT:
    - Inject connector (fake StoreHandle factory) and sleep (recorder)
    - await wait_until_available() instead of polling
"""

# ================================================================================
# IMPORTS
# ================================================================================

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from catalogue.config.constants import UNAVAILABLE_MESSAGE
from catalogue.config.settings import ConnectionConfig
from .exceptions import StoreUnavailableError
from .store_handle import StoreHandle

logger = logging.getLogger(__name__)

Connector = Callable[[ConnectionConfig], Awaitable[StoreHandle]]
Sleeper = Callable[[float], Awaitable[None]]

# ================================================================================
# CONNECTION SUPERVISOR CLASS
# ================================================================================

class SupervisorState(str, Enum):
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    STOPPED = "STOPPED"


class ConnectionSupervisor:
    """
    Connect/retry supervisor for the document store.

    Everything else reads availability through the `available` property
    and gets the handle through `store`; only this class writes them.
    """

    def __init__(
        self,
        config: ConnectionConfig,
        connector: Optional[Connector] = None,
        sleep: Optional[Sleeper] = None,
    ):
        """
        Args:
            config: Resolved connection profile (immutable)
            connector: Makes one attempt, returns a StoreHandle or raises
                (default: StoreHandle.connect)
            sleep: Non-blocking wait (default: asyncio.sleep)
        """
        self._config = config
        self._connector = connector or StoreHandle.connect
        self._sleep = sleep or asyncio.sleep

        self._state = SupervisorState.IDLE
        self._available = False
        self._handle: Optional[StoreHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._attempts = 0
        self._last_error: Optional[BaseException] = None
        self._connected = asyncio.Event()

        logger.info(
            f"ConnectionSupervisor initialized: mode={config.mode.value}, "
            f"url={config.redacted_url}, retry={config.retry_interval_ms}ms, "
            f"health_check={config.health_check_interval_ms}ms"
        )

    # ========================================================================
    # READ-ONLY ACCESSORS
    # ========================================================================

    @property
    def available(self) -> bool:
        return self._available

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @property
    def attempts(self) -> int:
        """Connection attempts made so far (successful or not)."""
        return self._attempts

    @property
    def last_error(self) -> Optional[BaseException]:
        return self._last_error

    @property
    def store(self) -> StoreHandle:
        """
        The live StoreHandle.

        Raises:
            StoreUnavailableError: If the store is not currently usable
        """
        if not self._available or self._handle is None:
            raise StoreUnavailableError(UNAVAILABLE_MESSAGE)
        return self._handle

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def start(self) -> None:
        """Schedule the connect loop and return immediately."""
        if self._task is not None and not self._task.done():
            return
        self._state = SupervisorState.CONNECTING
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="mongo-connection-supervisor"
        )

    async def stop(self) -> None:
        """Cancel the loop and release the connection."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._mark_unavailable()
        self._state = SupervisorState.STOPPED
        logger.info("ConnectionSupervisor stopped")

    async def wait_until_available(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the store to become available.

        Returns:
            True once available, False if `timeout` elapsed first
        """
        try:
            await asyncio.wait_for(self._connected.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    # ========================================================================
    # STATE MACHINE
    # ========================================================================

    async def _run(self) -> None:
        while True:
            handle = await self._connect_with_retry()
            self._mark_connected(handle)

            if self._config.health_check_interval_ms <= 0:
                return

            await self._watch(handle)

    async def _connect_with_retry(self) -> StoreHandle:
        while True:
            self._state = SupervisorState.CONNECTING
            self._attempts += 1
            try:
                return await self._connector(self._config)
            except Exception as e:
                self._last_error = e
                logger.error(
                    f"MongoDB connection attempt {self._attempts} failed: {str(e)}. "
                    f"Retrying in {self._config.retry_interval_ms}ms",
                    extra={
                        "attempt": self._attempts,
                        "retry_interval_ms": self._config.retry_interval_ms,
                    },
                )
            await self._sleep(self._config.retry_interval_seconds)

    async def _watch(self, handle: StoreHandle) -> None:
        """Ping on the health-check cadence; return once a ping fails."""
        while True:
            await self._sleep(self._config.health_check_interval_seconds)
            try:
                await handle.ping()
            except Exception as e:
                self._last_error = e
                logger.error(
                    f"MongoDB health check failed: {str(e)}. Reconnecting",
                    extra={"state_from": self._state.value},
                )
                self._mark_unavailable()
                return

    def _mark_connected(self, handle: StoreHandle) -> None:
        self._handle = handle
        self._available = True
        self._last_error = None
        self._state = SupervisorState.CONNECTED
        self._connected.set()
        logger.info(
            f"MongoDB connected after {self._attempts} attempt(s)",
            extra={"mode": self._config.mode.value, "attempts": self._attempts},
        )

    def _mark_unavailable(self) -> None:
        self._available = False
        self._connected.clear()
        handle, self._handle = self._handle, None
        if handle is not None:
            try:
                handle.close()
            except Exception as e:
                logger.warning(f"Error closing MongoDB client: {str(e)}")
