"""
Playwright-backed automation sessions.

The launcher keeps one Chromium process per service and gives every
session its own BrowserContext and page, so sessions never share cookies,
storage or input focus.
"""
import asyncio
import base64
import itertools
import uuid
from typing import Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    async_playwright,
)

from agentscale.config.settings import Settings
from agentscale.domain.exceptions import SessionError
from agentscale.infrastructure.observability.logging import get_logger
from agentscale.interfaces.session import (
    IAutomationSession,
    ISessionLauncher,
    KeyPress,
    MouseClick,
    Observation,
    Primitive,
    Scroll,
    TypeText,
    Viewport,
    Wait,
)

logger = get_logger(__name__)


class PlaywrightSession(IAutomationSession):
    """One isolated browser context with a single page."""

    def __init__(self, context: BrowserContext, page: Page, viewport: Viewport):
        self._id = str(uuid.uuid4())
        self._context = context
        self._page = page
        self._viewport = viewport
        self._frames = itertools.count(1)
        self._closed = False

    @property
    def id(self) -> str:
        return self._id

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionError("Automation session is closed", details={"session_id": self._id})

    async def navigate(self, address: str) -> None:
        self._ensure_open()
        try:
            await self._page.goto(address, wait_until="domcontentloaded")
        except PlaywrightError as e:
            raise SessionError(
                f"Navigation to {address} failed: {e.message}",
                details={"session_id": self._id, "address": address},
            ) from e
        logger.debug("session_navigated", session_id=self._id, address=address)

    async def capture(self) -> Observation:
        self._ensure_open()
        try:
            png = await self._page.screenshot(type="png", full_page=False)
        except PlaywrightError as e:
            raise SessionError(
                f"Screenshot failed: {e.message}",
                details={"session_id": self._id},
            ) from e
        return Observation(
            ref=f"{self._id}:{next(self._frames)}",
            image=base64.b64encode(png).decode("ascii"),
            viewport=self._viewport,
        )

    async def dispatch(self, primitive: Primitive) -> None:
        self._ensure_open()
        page = self._page
        try:
            if isinstance(primitive, MouseClick):
                await page.mouse.click(
                    primitive.x,
                    primitive.y,
                    button=primitive.button,
                    delay=primitive.delay_ms,
                )
            elif isinstance(primitive, TypeText):
                await page.keyboard.type(primitive.text, delay=primitive.delay_ms)
            elif isinstance(primitive, Scroll):
                await page.evaluate(
                    "([dx, dy]) => window.scrollBy(dx, dy)",
                    [primitive.delta_x, primitive.delta_y],
                )
            elif isinstance(primitive, KeyPress):
                await page.keyboard.press(primitive.key)
            elif isinstance(primitive, Wait):
                await page.wait_for_timeout(primitive.duration_ms)
            else:
                raise SessionError(f"Unsupported primitive: {type(primitive).__name__}")
        except PlaywrightError as e:
            raise SessionError(
                f"{type(primitive).__name__} failed: {e.message}",
                details={"session_id": self._id},
            ) from e

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._context.close()
        except PlaywrightError as e:
            logger.warning("session_context_close_failed", session_id=self._id, error=e.message)


class PlaywrightSessionLauncher(ISessionLauncher):
    """Starts Chromium lazily and hands out isolated sessions."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    async def _get_browser(self) -> Browser:
        async with self._lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser

            if self._playwright is None:
                self._playwright = await async_playwright().start()

            self._browser = await self._playwright.chromium.launch(
                headless=self.settings.browser_headless,
                args=self.settings.browser_launch_args,
                executable_path=self.settings.browser_executable_path,
            )
            logger.info(
                "browser_launched",
                headless=self.settings.browser_headless,
                version=self._browser.version,
            )
            return self._browser

    async def launch(self) -> PlaywrightSession:
        viewport = Viewport(self.settings.viewport_width, self.settings.viewport_height)
        context: Optional[BrowserContext] = None
        try:
            browser = await self._get_browser()
            context = await browser.new_context(
                viewport={"width": viewport.width, "height": viewport.height},
            )
            context.set_default_navigation_timeout(self.settings.navigation_timeout_ms)
            page = await context.new_page()
        except PlaywrightError as e:
            if context is not None:
                await context.close()
            raise SessionError(f"Browser launch failed: {e.message}") from e

        session = PlaywrightSession(context, page, viewport)
        logger.info("session_launched", session_id=session.id)
        return session

    async def shutdown(self) -> None:
        async with self._lock:
            if self._browser is not None:
                try:
                    await self._browser.close()
                except PlaywrightError as e:
                    logger.warning("browser_close_failed", error=e.message)
                self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None
