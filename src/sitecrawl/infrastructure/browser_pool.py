"""
Browser Pool Management.

Reuses browser processes across crawl jobs to avoid the cost of launching a
new Chromium for every request (order of seconds per launch).

Usage:
    async with BrowserPool(max_size=3) as pool:
        async with pool.browser() as browser:
            page = await browser.new_page()
            ...

The pool caps the number of live browser processes, reaps sessions whose
driver reports a disconnect, and closes sessions left idle for too long.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from sitecrawl.constants import (
    BLANK_PAGE_URL,
    BROWSER_ARGS,
    DEFAULT_CLEANUP_INTERVAL_MS,
    DEFAULT_IDLE_TIMEOUT_MS,
    DEFAULT_LAUNCH_TIMEOUT_MS,
    DEFAULT_POOL_MAX_SIZE,
)
from sitecrawl.exceptions import BrowserLaunchError, PoolError, PoolTimeoutError

logger = logging.getLogger(__name__)


class BrowserHealth(Enum):
    """Pool health status."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class PoolStatus:
    """Current status of the browser pool."""
    total: int
    in_use: int
    available: int


@dataclass(eq=False)
class PooledSession:
    """A browser process owned by the pool."""
    handle: Any
    session_id: int
    last_used_at: datetime = field(default_factory=datetime.now)
    in_use: bool = False

    @property
    def connected(self) -> bool:
        """Driver-reported liveness."""
        try:
            return bool(self.handle.is_connected())
        except Exception:
            return False


class BrowserPool:
    """
    Manages a bounded pool of long-lived browser processes.

    Features:
    - Bounded size; callers wait (up to launch_timeout_ms) when saturated
    - Pages are closed on release, keeping one blank placeholder
    - Disconnected browsers are evicted and never handed out again
    - Idle browsers are closed by a background task
    - Graceful shutdown
    """

    def __init__(
        self,
        max_size: int = DEFAULT_POOL_MAX_SIZE,
        launch_timeout_ms: int = DEFAULT_LAUNCH_TIMEOUT_MS,
        idle_timeout_ms: int = DEFAULT_IDLE_TIMEOUT_MS,
        cleanup_interval_ms: int = DEFAULT_CLEANUP_INTERVAL_MS,
        headless: bool = True,
        launch_args: Optional[list[str]] = None,
        launcher: Optional[Callable[[], Awaitable[Any]]] = None,
    ):
        """
        Initialize browser pool.

        Args:
            max_size: Maximum number of browser processes
            launch_timeout_ms: Timeout for launching or waiting for a browser
            idle_timeout_ms: Close free browsers idle longer than this
            cleanup_interval_ms: Interval between idle sweeps
            headless: Run browsers in headless mode
            launch_args: Chromium command-line flags
            launcher: Coroutine factory returning a new browser; defaults to
                Playwright Chromium
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")

        self.max_size = max_size
        self.launch_timeout_ms = launch_timeout_ms
        self.idle_timeout_ms = idle_timeout_ms
        self.cleanup_interval_ms = cleanup_interval_ms
        self.headless = headless
        self.launch_args = list(BROWSER_ARGS if launch_args is None else launch_args)

        self._launcher = launcher
        self._playwright = None
        self._sessions: list[PooledSession] = []
        self._launching = 0
        self._condition = asyncio.Condition()
        self._cleanup_task: Optional[asyncio.Task] = None
        self._started = False
        self._next_session_id = 0

    @classmethod
    def from_settings(cls, settings, **overrides) -> "BrowserPool":
        """Create a pool sized and timed from a Settings object."""
        values = {
            "max_size": settings.POOL_MAX_SIZE,
            "launch_timeout_ms": settings.LAUNCH_TIMEOUT_MS,
            "idle_timeout_ms": settings.IDLE_TIMEOUT_MS,
            "cleanup_interval_ms": settings.CLEANUP_INTERVAL_MS,
            "headless": settings.HEADLESS,
        }
        values.update(overrides)
        return cls(**values)

    async def start(self) -> None:
        """
        Start the pool.

        Browsers are launched lazily by acquire(); this starts the driver and
        the idle eviction task.
        """
        if self._started:
            return

        if self._launcher is None:
            try:
                from playwright.async_api import async_playwright
            except ImportError:
                raise ImportError(
                    "playwright package not installed. "
                    "Install with: pip install playwright && playwright install"
                )
            self._playwright = await async_playwright().start()

        self._cleanup_task = asyncio.create_task(self._cleanup_loop())
        self._started = True
        logger.info(f"Browser pool started (max_size={self.max_size})")

    async def shutdown(self) -> None:
        """
        Shutdown browser pool gracefully.

        Stops the eviction task and closes every browser.
        """
        if not self._started:
            return

        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

        async with self._condition:
            # Launches still in flight see this and close their browser
            self._started = False
            sessions = list(self._sessions)
            self._sessions.clear()
            self._condition.notify_all()

        for session in sessions:
            await self._close_session(session)

        if self._playwright:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.warning(f"Error stopping playwright: {e}")
            self._playwright = None

        logger.info("Browser pool stopped")

    async def __aenter__(self) -> "BrowserPool":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown()

    async def _launch_browser(self) -> Any:
        """Launch one browser process through the configured driver."""
        if self._launcher is not None:
            return await self._launcher()

        return await self._playwright.chromium.launch(
            headless=self.headless,
            args=self.launch_args,
            timeout=self.launch_timeout_ms,
        )

    def _claim_available(self) -> Optional[PooledSession]:
        """
        Mark the first free, connected session as in use.

        Must be called with the condition lock held; does not await.
        """
        for session in list(self._sessions):
            if session.in_use:
                continue
            if not session.connected:
                self._sessions.remove(session)
                logger.warning(f"Dropped disconnected browser session {session.session_id}")
                continue
            session.in_use = True
            session.last_used_at = datetime.now()
            return session
        return None

    async def acquire(self) -> Any:
        """
        Acquire a browser from the pool, launching one if below max_size.

        Returns:
            Connected browser handle, exclusively owned until release()

        Raises:
            RuntimeError: If the pool has not been started
            PoolTimeoutError: If no browser frees up within launch_timeout_ms
            BrowserLaunchError: If the driver fails to start a browser
            PoolError: If the pool is shut down while waiting or launching
        """
        if not self._started:
            raise RuntimeError("Browser pool not started. Call start() first.")

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.launch_timeout_ms / 1000

        async with self._condition:
            while True:
                if not self._started:
                    raise PoolError("Browser pool was shut down")

                session = self._claim_available()
                if session is not None:
                    logger.debug(f"Reusing browser session {session.session_id}")
                    return session.handle

                if len(self._sessions) + self._launching < self.max_size:
                    # Reserve the slot before awaiting the launch
                    self._launching += 1
                    break

                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise PoolTimeoutError(self.launch_timeout_ms)
                try:
                    await asyncio.wait_for(self._condition.wait(), timeout=remaining)
                except asyncio.TimeoutError:
                    raise PoolTimeoutError(self.launch_timeout_ms) from None

        return await self._launch_session()

    async def _launch_session(self) -> Any:
        """Launch a browser into a reserved slot and register it as in use."""
        launched = False
        try:
            handle = await asyncio.wait_for(
                self._launch_browser(), timeout=self.launch_timeout_ms / 1000
            )
            launched = True
        except asyncio.TimeoutError:
            logger.error(f"Browser launch timed out after {self.launch_timeout_ms}ms")
            raise PoolTimeoutError(self.launch_timeout_ms) from None
        except Exception as e:
            logger.error(f"Browser launch failed: {e}")
            raise BrowserLaunchError(f"Failed to launch browser: {e}") from e
        finally:
            if not launched:
                async with self._condition:
                    self._launching -= 1
                    self._condition.notify()

        session = PooledSession(
            handle=handle,
            session_id=self._next_session_id,
            in_use=True,
        )
        self._next_session_id += 1

        async with self._condition:
            self._launching -= 1
            pool_stopped = not self._started
            if not pool_stopped:
                self._sessions.append(session)

        if pool_stopped:
            logger.warning(f"Pool shut down during launch; closing browser session {session.session_id}")
            await self._close_session(session)
            raise PoolError("Browser pool was shut down during launch")

        handle.on("disconnected", lambda _browser: self._on_disconnected(session))

        logger.info(
            f"Launched browser session {session.session_id} "
            f"({len(self._sessions)}/{self.max_size})"
        )
        return handle

    def _on_disconnected(self, session: PooledSession) -> None:
        """Driver callback: forget a crashed or closed browser."""
        if session not in self._sessions:
            return

        self._sessions.remove(session)
        logger.warning(f"Browser session {session.session_id} disconnected; removed from pool")

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        loop.create_task(self._notify_waiters())

    async def _notify_waiters(self) -> None:
        async with self._condition:
            self._condition.notify_all()

    def _find_session(self, handle: Any) -> Optional[PooledSession]:
        for session in self._sessions:
            if session.handle is handle:
                return session
        return None

    async def _close_extra_pages(self, handle: Any) -> None:
        """Close every page except a single blank placeholder."""
        if not handle.is_connected():
            raise ConnectionError("browser is disconnected")

        kept_blank = False
        pages = [page for context in handle.contexts for page in context.pages]
        for page in pages:
            if page.url == BLANK_PAGE_URL and not kept_blank:
                kept_blank = True
                continue
            await page.close()

    async def release(self, handle: Any) -> None:
        """
        Release a browser back to the pool.

        A browser whose pages cannot be enumerated or closed is evicted
        instead of being marked free.
        """
        session = self._find_session(handle)
        if session is None:
            logger.debug("Ignoring release of a browser not owned by the pool")
            return

        try:
            await self._close_extra_pages(handle)
        except Exception as e:
            logger.warning(f"Browser session {session.session_id} failed during release ({e}); evicting")
            await self._evict(session)
            return

        async with self._condition:
            if session in self._sessions:
                session.in_use = False
                session.last_used_at = datetime.now()
            self._condition.notify()

    @asynccontextmanager
    async def browser(self):
        """
        Acquire a browser for the duration of a block.

        Usage:
            async with pool.browser() as browser:
                page = await browser.new_page()

        Yields:
            Browser handle, released on exit
        """
        handle = await self.acquire()
        try:
            yield handle
        finally:
            await self.release(handle)

    async def _evict(self, session: PooledSession) -> None:
        async with self._condition:
            if session in self._sessions:
                self._sessions.remove(session)
            self._condition.notify()
        await self._close_session(session)

    async def _close_session(self, session: PooledSession) -> None:
        try:
            await session.handle.close()
        except Exception as e:
            logger.warning(f"Error closing browser session {session.session_id}: {e}")

    async def evict_idle_sessions(self) -> int:
        """
        Close free browsers idle longer than idle_timeout_ms.

        Returns:
            Number of browsers closed
        """
        now = datetime.now()
        idle_limit = timedelta(milliseconds=self.idle_timeout_ms)

        async with self._condition:
            idle = [
                s for s in self._sessions
                if not s.in_use and now - s.last_used_at > idle_limit
            ]
            for session in idle:
                self._sessions.remove(session)
            if idle:
                self._condition.notify(len(idle))

        for session in idle:
            await self._close_session(session)

        if idle:
            logger.info(f"Closed {len(idle)} idle browser session(s)")
        return len(idle)

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval_ms / 1000)
            try:
                await self.evict_idle_sessions()
            except Exception as e:
                logger.warning(f"Idle browser cleanup failed: {e}")

    def stats(self) -> PoolStatus:
        """Get current pool status."""
        in_use = sum(1 for s in self._sessions if s.in_use)
        return PoolStatus(
            total=len(self._sessions),
            in_use=in_use,
            available=len(self._sessions) - in_use,
        )

    def health(self) -> BrowserHealth:
        """Degraded when the pool is saturated with nothing available."""
        if not self._started:
            return BrowserHealth.UNHEALTHY

        status = self.stats()
        if status.available > 0 or status.total < self.max_size:
            return BrowserHealth.HEALTHY
        return BrowserHealth.DEGRADED

    @property
    def size(self) -> int:
        """Number of live browsers in the pool."""
        return len(self._sessions)

    @property
    def is_started(self) -> bool:
        """Whether pool has been started."""
        return self._started
