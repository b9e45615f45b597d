"""Playwright-backed browser session used by both harvesting strategies.

The session owns one Chromium tab and offers the small capability surface the
harvester needs: navigate, subscribe to responses, inject a script, and
expose/remove host callables.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from playwright.async_api import Browser, Error as PlaywrightError, Page, Playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from toyota_inventory.config import BROWSER_ARGS, VIEWPORT, HarvestConfig
from toyota_inventory.errors import BridgeExecutionError, NavigationError, NavigationTimeout

LOGGER = logging.getLogger("toyota_inventory.session")

ResponseHandler = Callable[[Any], Awaitable[None]]


class BrowserSession:
    def __init__(self, page: Page, browser: Optional[Browser] = None, *, navigate_timeout_ms: float = 120_000) -> None:
        self.page = page
        self.browser = browser
        self.navigate_timeout_ms = navigate_timeout_ms
        self._callables: Dict[str, Callable[..., Any]] = {}
        self._exposed: Set[str] = set()

    @classmethod
    async def launch(cls, playwright: Playwright, config: HarvestConfig) -> "BrowserSession":
        LOGGER.info("Launching Chromium (headless=%s)", config.headless)
        browser = await playwright.chromium.launch(
            headless=config.headless,
            executable_path=config.executable_path or None,
            args=list(BROWSER_ARGS),
        )
        LOGGER.info("Launched Chromium browser with args: %s", " ".join(BROWSER_ARGS))
        try:
            page = await browser.new_page(viewport=dict(VIEWPORT))
        except Exception:
            await browser.close()
            raise
        LOGGER.info("Created new tab in browser")
        return cls(page, browser, navigate_timeout_ms=config.navigate_timeout_ms)

    async def navigate(self, url: str) -> None:
        """Load ``url`` and wait for the load event plus network idle.

        Both waits share one deadline of ``navigate_timeout_ms``.
        """

        LOGGER.info("Navigating to URL %s", url)
        deadline = time.monotonic() + self.navigate_timeout_ms / 1000
        try:
            await self.page.goto(url, wait_until="load", timeout=self.navigate_timeout_ms)
            remaining_ms = (deadline - time.monotonic()) * 1000
            if remaining_ms <= 0:
                raise PlaywrightTimeoutError(f"load event for {url} used the whole timeout")
            await self.page.wait_for_load_state("networkidle", timeout=remaining_ms)
        except PlaywrightTimeoutError as exc:
            raise NavigationTimeout(
                f"Navigation to {url} exceeded {self.navigate_timeout_ms / 1000:.0f}s: {exc}"
            ) from exc
        except PlaywrightError as exc:
            raise NavigationError(f"Navigation to {url} failed: {exc}") from exc

    async def content(self) -> str:
        return await self.page.content()

    def subscribe(self, handler: ResponseHandler) -> None:
        self.page.on("response", handler)

    def unsubscribe(self, handler: ResponseHandler) -> None:
        self.page.remove_listener("response", handler)

    async def inject_script(self, code: str) -> None:
        try:
            await self.page.add_script_tag(content=code)
        except PlaywrightError as exc:
            raise BridgeExecutionError(f"Failed to inject script into page: {exc}") from exc

    async def expose_callable(self, name: str, function: Callable[..., Any]) -> None:
        # Bindings cannot be unregistered from a Playwright page, so each name is
        # exposed once and routed through the host-side registry.
        if name in self._callables:
            raise BridgeExecutionError(f"Callable '{name}' already exists")
        self._callables[name] = function
        if name not in self._exposed:
            try:
                await self.page.expose_function(name, self._dispatcher(name))
            except PlaywrightError as exc:
                self._callables.pop(name, None)
                raise BridgeExecutionError(f"Failed to expose callable '{name}': {exc}") from exc
            self._exposed.add(name)

    async def remove_callable(self, name: str) -> None:
        self._callables.pop(name, None)

    def has_callable(self, name: str) -> bool:
        return name in self._callables

    def _dispatcher(self, name: str) -> Callable[..., Any]:
        def dispatch(*args: Any) -> Any:
            function = self._callables.get(name)
            if function is None:
                LOGGER.warning("Page invoked callable '%s' after it was removed; ignoring", name)
                return None
            return function(*args)

        return dispatch

    async def close(self) -> None:
        self._callables.clear()
        if self.browser is not None:
            LOGGER.info("Closing browser")
            await self.browser.close()
