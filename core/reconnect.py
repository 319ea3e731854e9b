"""
Reconnection Controller

Policy embedded in every streaming connector that decides when to reconnect
after an unexpected transport closure.

Strategy:
    - Attempt N waits min(base_delay * 2^(N-1), max_delay) seconds
    - Up to ``jitter`` (10% by default) of random delay is added so several
      connectors do not reconnect in lockstep
    - After ``max_attempts`` consecutive failures the controller gives up
      (0 = never give up)
    - The attempt counter is reset by the connector once a new connection
      is subscribed again, so occasional drops over a long session never
      add up to ``max_attempts``
    - Giving up is reported through ``schedule`` returning False with
      ``exhausted`` set; the connector surfaces it to its consumer

Scheduling uses a one-shot ``loop.call_later`` callback, never a blocking
sleep, so it cannot stall event delivery of other connectors.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional

from core.config import settings
from core.exceptions import AuthenticationFailure
from core.logging import get_logger


class ReconnectionController:
    """
    Exponential-backoff reconnection scheduler.

    Example:
        >>> controller = ReconnectionController(base_delay=1, max_delay=30)
        >>> controller.schedule(lambda: connector.connect(on_message))
    """

    def __init__(
        self,
        base_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
        max_attempts: Optional[int] = None,
        jitter: float = 0.1,
        logger: Optional[logging.Logger] = None
    ):
        self.base_delay = settings.ws_reconnect_delay if base_delay is None else base_delay
        self.max_delay = settings.ws_max_reconnect_delay if max_delay is None else max_delay
        self.max_attempts = settings.ws_max_reconnect_attempts if max_attempts is None else max_attempts
        self.jitter = jitter
        self.logger = logger or get_logger(__name__)

        self.attempt = 0
        self._handle: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        """True while a reconnection is waiting for its delay to elapse."""
        return self._handle is not None and not self._handle.cancelled()

    @property
    def exhausted(self) -> bool:
        return 0 < self.max_attempts <= self.attempt

    def next_delay(self) -> float:
        """Delay for the next attempt, without jitter."""
        exponent = max(self.attempt, 1) - 1
        return min(self.base_delay * (2 ** exponent), self.max_delay)

    def schedule(self, reconnect: Callable[[], Awaitable[None]]) -> bool:
        """
        Schedule one reconnection attempt.

        Args:
            reconnect: Coroutine function that reconnects the transport

        Returns:
            bool: False if nothing was scheduled (already pending or exhausted)
        """
        if self.pending:
            self.logger.debug("Reconnection already scheduled")
            return False

        if self.exhausted:
            self.logger.error(
                f"Giving up after {self.attempt} reconnection attempts"
            )
            return False

        self.attempt += 1
        delay = self.next_delay()
        delay += random.uniform(0, delay * self.jitter)

        self.logger.warning(
            f"Reconnecting in {delay:.1f}s... (attempt {self.attempt}"
            f"{'/' + str(self.max_attempts) if self.max_attempts else ''})"
        )

        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(delay, self._fire, reconnect)
        return True

    def _fire(self, reconnect: Callable[[], Awaitable[None]]) -> None:
        self._handle = None
        self._task = asyncio.ensure_future(self._run(reconnect))

    async def _run(self, reconnect: Callable[[], Awaitable[None]]) -> None:
        try:
            await reconnect()
        except asyncio.CancelledError:
            raise
        except AuthenticationFailure as e:
            self.logger.error(f"Reconnection rejected by the exchange, not retrying: {e}")
        except Exception as e:
            self.logger.error(f"Reconnection attempt {self.attempt} failed: {e}")
            self.schedule(reconnect)

    def reset(self) -> None:
        """Forget previous failures once the connection is subscribed again."""
        if self.attempt:
            self.logger.debug(f"Connection healthy, resetting backoff after {self.attempt} attempts")
        self.attempt = 0

    def cancel(self) -> None:
        """Cancel any scheduled or running reconnection."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if (
            self._task is not None
            and not self._task.done()
            and self._task is not asyncio.current_task()
        ):
            self._task.cancel()
        self._task = None
