"""
App lifecycle monitoring for the UPI deep-link flow

The host process reports foreground/background transitions to a
LifecycleSource. During a UPI payment the AppLifecycleMonitor subscribes to
that source, records when the app left the foreground and when it came back,
and releases its subscription on every exit path.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from ..utils.logger import get_logger

logger = get_logger(__name__)


class AppState(Enum):
    """Host process visibility states"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    BACKGROUND = "background"


LifecycleHandler = Callable[[AppState], None]
Unsubscribe = Callable[[], None]


class LifecycleSource(ABC):
    """Host-side feed of foreground/background transitions"""
    
    @abstractmethod
    def subscribe(self, handler: LifecycleHandler) -> Unsubscribe:
        """Register handler; returns a callable that removes it"""


class ManualLifecycleSource(LifecycleSource):
    """Source the host pushes transitions into with emit()"""
    
    def __init__(self):
        self._handlers: List[LifecycleHandler] = []
    
    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)
    
    def subscribe(self, handler: LifecycleHandler) -> Unsubscribe:
        self._handlers.append(handler)
        
        def unsubscribe():
            if handler in self._handlers:
                self._handlers.remove(handler)
        
        return unsubscribe
    
    def emit(self, state: AppState) -> None:
        for handler in list(self._handlers):
            handler(state)


@dataclass(frozen=True)
class ForegroundWaitResult:
    """Timestamps captured while waiting for the app to come back"""
    left_at: Optional[float]
    returned_at: Optional[float]
    timed_out: bool
    
    @property
    def background_seconds(self) -> float:
        """Time spent outside the app; 0 if either timestamp is missing"""
        if self.left_at is None or self.returned_at is None:
            return 0.0
        return max(0.0, self.returned_at - self.left_at)


class ForegroundWatch:
    """
    One live subscription, owned by a single UPI attempt
    
    The deadline is measured on the same clock as the timestamps, counted
    from the moment the watch was set up. The event loop is only used to
    re-check that clock every poll_interval seconds.
    """
    
    def __init__(self, clock: Callable[[], float], poll_interval: float = 1.0):
        self._clock = clock
        self._poll_interval = poll_interval
        self._returned = asyncio.Event()
        self.started_at = clock()
        self.left_at: Optional[float] = None
        self.returned_at: Optional[float] = None
    
    def on_change(self, state: AppState) -> None:
        if self._returned.is_set():
            return
        if state in (AppState.BACKGROUND, AppState.INACTIVE):
            if self.left_at is None:
                self.left_at = self._clock()
                logger.debug(f"[Lifecycle] App left foreground at {self.left_at:.3f}")
        elif state == AppState.ACTIVE and self.left_at is not None:
            self.returned_at = self._clock()
            logger.debug(f"[Lifecycle] App returned to foreground at {self.returned_at:.3f}")
            self._returned.set()
    
    async def wait(self, timeout: float) -> ForegroundWaitResult:
        """Wait for the return to foreground, at most timeout seconds after the watch began"""
        deadline = self.started_at + timeout
        while not self._returned.is_set():
            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            try:
                await asyncio.wait_for(self._returned.wait(),
                                       timeout=min(remaining, self._poll_interval))
            except asyncio.TimeoutError:
                continue
        
        timed_out = self.returned_at is None or self.returned_at > deadline
        if timed_out:
            logger.warning(f"[Lifecycle] App did not return to foreground within {timeout:.0f}s")
        return ForegroundWaitResult(left_at=self.left_at, returned_at=self.returned_at,
                                    timed_out=timed_out)


class AppLifecycleMonitor:
    """Watches foreground/background transitions for one UPI attempt at a time"""
    
    def __init__(self, source: LifecycleSource, clock: Callable[[], float] = time.monotonic,
                 poll_interval: float = 1.0):
        """
        Initialize lifecycle monitor
        
        Args:
            source: Host lifecycle feed
            clock: Monotonic clock in seconds; drives both the timestamps and
                the timeout (injectable for tests)
            poll_interval: How often a pending wait re-checks the clock
        """
        self.source = source
        self.clock = clock
        self.poll_interval = poll_interval
        self._active: Optional[ForegroundWatch] = None
    
    @property
    def watching(self) -> bool:
        return self._active is not None
    
    @asynccontextmanager
    async def watch(self):
        """
        Subscribe for the duration of the block
        
        Usage:
            async with monitor.watch() as watch:
                await open_link()
                result = await watch.wait(timeout)
        """
        if self._active is not None:
            raise RuntimeError("A lifecycle watch is already active for another payment attempt")
        
        watch = ForegroundWatch(self.clock, self.poll_interval)
        unsubscribe = self.source.subscribe(watch.on_change)
        self._active = watch
        logger.debug("[Lifecycle] Subscribed to app state changes")
        try:
            yield watch
        finally:
            unsubscribe()
            self._active = None
            logger.debug("[Lifecycle] Unsubscribed from app state changes")
    
    async def wait_for_foreground(
        self,
        timeout: float,
        before_wait: Optional[Callable[[], Awaitable[None]]] = None
    ) -> ForegroundWaitResult:
        """
        Wait until the app returns to the foreground, or until timeout
        
        Args:
            timeout: Seconds to wait for the return
            before_wait: Coroutine function run after subscribing, e.g. opening
                the deep link that sends the app to the background
                
        Returns:
            Captured leave/return timestamps and whether the wait timed out
        """
        async with self.watch() as watch:
            if before_wait is not None:
                await before_wait()
            return await watch.wait(timeout)
