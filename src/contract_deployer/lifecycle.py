#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Run Lifecycle

Lifecycle state tracking, the cancellation token threaded through every
suspension point, and the shutdown controller that releases resources exactly
once on every exit path.
"""

import signal
import asyncio
import logging
from typing import Any, Awaitable, List, Optional, Tuple, TypeVar

from contract_deployer.errors import InterruptedError
from contract_deployer.models import LifecycleState
from contract_deployer.utils.logger import get_logger, log_stage_event

T = TypeVar("T")

EXIT_SUCCESS = 0
EXIT_FAILURE = 1

# Forward order of a run; Failed is reachable from any non-terminal state
STATE_ORDER = [
    LifecycleState.IDLE,
    LifecycleState.BUILDING_IDENTITY,
    LifecycleState.AWAITING_FUNDS,
    LifecycleState.CONFIGURING_PROVIDERS,
    LifecycleState.DEPLOYING,
    LifecycleState.RECORDING,
    LifecycleState.SERVING,
    LifecycleState.SHUTTING_DOWN,
]

TERMINAL_STATES = (LifecycleState.SHUTTING_DOWN, LifecycleState.FAILED)


class LifecycleError(RuntimeError):
    """Exception raised on an illegal lifecycle transition."""
    pass


class LifecycleTracker:
    """
    Current state of a run.

    Transitions only move forward; no state is revisited.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.state = LifecycleState.IDLE
        self.history: List[LifecycleState] = [LifecycleState.IDLE]
        self.logger = logger or get_logger(__name__)

    def transition(self, new_state: LifecycleState) -> None:
        """
        Move to a new state.

        Raises:
            LifecycleError: If the transition would revisit or skip backwards
        """
        if self.state in TERMINAL_STATES:
            raise LifecycleError(f"Cannot leave terminal state {self.state.value}")

        if new_state != LifecycleState.FAILED:
            if STATE_ORDER.index(new_state) <= STATE_ORDER.index(self.state):
                raise LifecycleError(
                    f"Illegal transition {self.state.value} -> {new_state.value}"
                )

        previous = self.state
        self.state = new_state
        self.history.append(new_state)
        log_stage_event(
            self.logger, new_state.value, "enter",
            f"Stage entered (from {previous.value})",
            level=logging.DEBUG,
        )

    def fail(self) -> None:
        """Move to Failed unless the run already ended."""
        if self.state not in TERMINAL_STATES:
            self.transition(LifecycleState.FAILED)


class CancellationToken:
    """
    Cancellation signal for a run.

    guard() races an in-flight operation against cancellation, so an
    interrupt is honored without waiting for the operation's own timeout.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "interrupted") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    async def guard(self, awaitable: Awaitable[T], stage: Optional[str] = None) -> T:
        """
        Await an operation unless the token is cancelled first.

        Args:
            awaitable: Operation to run
            stage: Stage name reported on interruption

        Returns:
            The operation's result

        Raises:
            InterruptedError: If the token is cancelled before the operation finishes
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise InterruptedError(f"Run {self.reason} before {stage or 'operation'} started", stage=stage)

        operation = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())

        try:
            done, _ = await asyncio.wait({operation, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            operation.cancel()
            waiter.cancel()
            raise

        if operation in done:
            waiter.cancel()
            return operation.result()

        operation.cancel()
        # The operation's own error is irrelevant once it is abandoned
        await asyncio.gather(operation, return_exceptions=True)
        raise InterruptedError(f"Run {self.reason} during {stage or 'operation'}", stage=stage)


class ShutdownController:
    """
    Owns the resources of a run and releases them exactly once.

    Resources are anything with an async close(); they are closed in reverse
    registration order whether the run ends by interrupt or by failure.
    """

    def __init__(
        self,
        tracker: Optional[LifecycleTracker] = None,
        token: Optional[CancellationToken] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = logger or get_logger(__name__)
        self.tracker = tracker or LifecycleTracker(logger=self.logger)
        self.token = token or CancellationToken()
        self.serving = asyncio.Event()
        self.released = False
        self._resources: List[Tuple[str, Any]] = []
        self._installed_signals: List[int] = []

    def register(self, name: str, resource: Any) -> None:
        """Register a resource to close at shutdown."""
        self._resources.append((name, resource))

    def request_shutdown(self, signum: Optional[int] = None) -> None:
        """Interrupt handler: cancel the run."""
        if signum is not None:
            self.logger.info(f"Received signal {signum}, initiating graceful shutdown")
        self.token.cancel("interrupted")

    def install_signal_handlers(self, signals=(signal.SIGINT, signal.SIGTERM)) -> None:
        """Register the interrupt handler on the running loop."""
        loop = asyncio.get_running_loop()
        for signum in signals:
            try:
                loop.add_signal_handler(signum, self.request_shutdown, signum)
            except (NotImplementedError, RuntimeError):
                # Event loops without signal support (Windows, non-main thread)
                signal.signal(
                    signum,
                    lambda received, frame: loop.call_soon_threadsafe(self.request_shutdown, received),
                )
            self._installed_signals.append(signum)

    def remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for signum in self._installed_signals:
            try:
                loop.remove_signal_handler(signum)
            except (NotImplementedError, RuntimeError):
                signal.signal(signum, signal.SIG_DFL)
        self._installed_signals = []

    async def serve(self) -> int:
        """
        Hold the run open until interrupted.

        Returns:
            int: Exit code for a graceful shutdown
        """
        self.tracker.transition(LifecycleState.SERVING)
        self.serving.set()
        log_stage_event(self.logger, LifecycleState.SERVING.value, "enter", "Serving until interrupted")

        await self.token.wait()

        self.tracker.transition(LifecycleState.SHUTTING_DOWN)
        log_stage_event(
            self.logger, LifecycleState.SHUTTING_DOWN.value, "enter",
            f"Shutting down ({self.token.reason})",
        )
        await self.release()
        return EXIT_SUCCESS

    async def release(self) -> None:
        """Close every registered resource; later calls do nothing."""
        if self.released:
            return
        self.released = True

        while self._resources:
            name, resource = self._resources.pop()
            try:
                await resource.close()
                self.logger.info(f"Released {name}")
            except Exception as e:
                self.logger.error(f"Error releasing {name}: {str(e)}", exc_info=True)
