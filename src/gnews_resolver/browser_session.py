# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Playwright browser session for redirect resolution.

One session per resolution request: launch (or connect to a remote CDP
browser), navigate, record every outbound request, read DOM anchors,
simulate a click, then close or disconnect.  Navigation and evaluation
failures are tolerated so partial signal sets still reach the resolver.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from collections.abc import AsyncGenerator, Mapping, Sequence
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    Request,
    async_playwright,
)
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .errors import BrowserError, BrowserLaunchError

logger = logging.getLogger(__name__)

# Default browser config
DEFAULT_LOCALE = "en-US"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/119.0.0.0 Safari/537.36"
)

BROWSERLESS_ENDPOINT = "wss://chrome.browserless.io?token={token}"

_MAX_OBSERVED_REQUESTS = 500
_CLICK_MARK_ATTR = "data-gnr-click"


@dataclass
class BrowserConfig:
    """Browser launch and timing configuration."""

    headless: bool = True
    locale: str = DEFAULT_LOCALE
    viewport_width: int = 1280
    viewport_height: int = 800
    user_agent: str = DEFAULT_USER_AGENT
    navigation_timeout_ms: int = 30000
    wait_until: str = "domcontentloaded"
    settle_ms: int = 3000  # fixed wait after navigation for JS redirects
    click_settle_ms: int = 5000  # fixed wait after the simulated click
    click_timeout_ms: int = 5000
    ws_endpoint: str = ""  # remote CDP browser; empty = launch locally
    launch_retries: int = 3
    launch_retry_delay_s: float = 1.0

    @property
    def remote(self) -> bool:
        return bool(self.ws_endpoint)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BrowserConfig:
        """Build a config from ``GNEWS_RESOLVER_*`` variables (unset → default).

        ``BROWSERLESS_API_KEY`` selects the hosted browserless endpoint when no
        explicit ``GNEWS_RESOLVER_WS_ENDPOINT`` is given.
        """
        env = os.environ if environ is None else environ
        cfg = cls()

        headless = env.get("GNEWS_RESOLVER_HEADLESS", "").strip().lower()
        if headless in ("0", "false", "no"):
            cfg.headless = False

        for field_name, var in (
            ("navigation_timeout_ms", "GNEWS_RESOLVER_NAV_TIMEOUT_MS"),
            ("settle_ms", "GNEWS_RESOLVER_SETTLE_MS"),
            ("click_settle_ms", "GNEWS_RESOLVER_CLICK_SETTLE_MS"),
            ("launch_retries", "GNEWS_RESOLVER_LAUNCH_RETRIES"),
        ):
            raw = env.get(var, "").strip()
            if raw:
                with suppress(ValueError):
                    setattr(cfg, field_name, max(0, int(raw)))

        ua = env.get("GNEWS_RESOLVER_USER_AGENT", "").strip()
        if ua:
            cfg.user_agent = ua

        ws = env.get("GNEWS_RESOLVER_WS_ENDPOINT", "").strip()
        token = env.get("BROWSERLESS_API_KEY", "").strip()
        if ws:
            cfg.ws_endpoint = ws
        elif token:
            cfg.ws_endpoint = BROWSERLESS_ENDPOINT.format(token=token)
        return cfg


_BROWSER_DEAD_PATTERNS = (
    "target closed",
    "target page",
    "browser has been closed",
    "connection closed",
    "browser disconnected",
)

# OS-level "busy executable" races seen when many Chromium launches overlap
_TRANSIENT_LAUNCH_PATTERNS = (
    "text file busy",
    "etxtbsy",
)


def _is_browser_dead_error(exc: Exception) -> bool:
    """Detect browser crash/disconnect errors."""
    msg = str(exc).lower()
    return any(p in msg for p in _BROWSER_DEAD_PATTERNS)


def _is_transient_launch_error(exc: Exception) -> bool:
    msg = str(exc).lower()
    return any(p in msg for p in _TRANSIENT_LAUNCH_PATTERNS)


# ── Chromium auto-install ─────────────────────────────────────────

_chromium_install_attempted = False
_AUTO_INSTALL_TIMEOUT = 300  # seconds, Chromium is ~140MB


async def _auto_install_chromium() -> bool:
    """Run ``playwright install chromium`` once per process."""
    global _chromium_install_attempted  # noqa: PLW0603
    if _chromium_install_attempted:
        return False
    _chromium_install_attempted = True

    logger.info("Chromium not found, running 'playwright install chromium'")
    try:
        proc = await asyncio.create_subprocess_exec(
            sys.executable,
            "-m",
            "playwright",
            "install",
            "chromium",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        _stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=_AUTO_INSTALL_TIMEOUT)
        if proc.returncode == 0:
            logger.info("Chromium installed successfully")
            return True
        logger.warning(
            "playwright install chromium failed (rc=%d): %s",
            proc.returncode,
            stderr.decode(errors="replace")[:500],
        )
        return False
    except TimeoutError:
        logger.warning("Chromium install timed out after %ds", _AUTO_INSTALL_TIMEOUT)
        return False
    except OSError:
        logger.warning("Chromium auto-install failed", exc_info=True)
        return False


def chromium_launch_args(config: BrowserConfig) -> list[str]:
    """Return Chromium launch arguments for container-friendly headless runs."""
    return [
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-blink-features=AutomationControlled",
        f"--lang={config.locale}",
        "--disable-extensions",
        "--disable-dev-shm-usage",
        "--disable-gpu",
        "--no-first-run",
        "--disable-sync",
        "--disable-breakpad",
        "--disable-component-update",
        "--noerrdialogs",
    ]


class BrowserSession:
    """A single-use Playwright session that records what a page reveals."""

    def __init__(self, config: BrowserConfig | None = None):
        self.config = config or BrowserConfig()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None
        self._pending_new_page: Page | None = None
        self._requests: list[str] = []
        self._request_set: set[str] = set()

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Browser session not started. Use async with or call start().")
        return self._page

    @property
    def context(self) -> BrowserContext:
        if self._context is None:
            raise RuntimeError("Browser session not started.")
        return self._context

    # ── Lifecycle ─────────────────────────────────────────────────

    async def _launch_browser(self) -> None:
        """Launch Chromium with a bounded fixed-delay retry on transient OS errors."""
        args = chromium_launch_args(self.config)
        attempts = max(1, self.config.launch_retries)
        attempt = 0
        while True:
            attempt += 1
            try:
                self._browser = await self._playwright.chromium.launch(
                    headless=self.config.headless,
                    args=args,
                )
                return
            except PlaywrightError as exc:
                if "executable doesn't exist" in str(exc).lower():
                    if await _auto_install_chromium():
                        attempt -= 1  # the install does not count against the budget
                        continue
                    raise BrowserLaunchError(
                        "Chromium is not installed and auto-install failed. Please run: playwright install chromium",
                        attempts=attempt,
                    ) from exc
                if _is_transient_launch_error(exc) and attempt < attempts:
                    logger.warning(
                        "Browser launch failed (attempt %d/%d), retrying in %.1fs: %s",
                        attempt,
                        attempts,
                        self.config.launch_retry_delay_s,
                        exc,
                    )
                    await asyncio.sleep(self.config.launch_retry_delay_s)
                    continue
                raise BrowserLaunchError(f"Browser launch failed: {exc}", attempts=attempt) from exc

    async def _connect_browser(self) -> None:
        try:
            self._browser = await self._playwright.chromium.connect_over_cdp(
                self.config.ws_endpoint,
                timeout=self.config.navigation_timeout_ms,
            )
        except PlaywrightError as exc:
            raise BrowserError(f"Could not connect to remote browser: {exc}") from exc

    async def _create_context(self) -> None:
        """Create an isolated BrowserContext + Page with request recording."""
        self._context = await self._browser.new_context(
            viewport={
                "width": self.config.viewport_width,
                "height": self.config.viewport_height,
            },
            locale=self.config.locale,
            user_agent=self.config.user_agent,
            service_workers="block",
            permissions=[],
            accept_downloads=False,
            extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
        )
        # Context-level listener also covers popups opened by the click
        self._context.on("request", self._on_request)
        self._page = await self._context.new_page()
        # Registered after the working page exists so it is never mistaken for a popup
        self._context.on("page", self._on_new_page)

    async def start(self) -> None:
        """Launch or connect, then create the working page.

        Anything left half-open by a failed start is released before raising.
        """
        try:
            self._playwright = await async_playwright().start()
            if self.config.remote:
                await self._connect_browser()
            else:
                await self._launch_browser()
            await self._create_context()
        except BrowserError:
            await self.stop()
            raise
        except PlaywrightError as exc:
            await self.stop()
            raise BrowserError(f"Browser session failed to start: {exc}") from exc
        logger.info(
            "Browser session started (remote=%s, headless=%s)",
            self.config.remote,
            self.config.headless,
        )

    async def stop(self) -> None:
        """Close (local) or disconnect (remote). Safe to call on a crashed browser."""
        if self._context:
            with suppress(Exception):
                await self._context.close()
            self._context = None
        self._page = None
        self._pending_new_page = None

        if self._browser:
            # For connect_over_cdp browsers close() only disconnects
            with suppress(Exception):
                await self._browser.close()
            self._browser = None
        if self._playwright:
            with suppress(Exception):
                await self._playwright.stop()
            self._playwright = None
        logger.info("Browser session stopped (remote=%s)", self.config.remote)

    async def __aenter__(self) -> BrowserSession:
        await self.start()
        return self

    async def __aexit__(self, *args) -> None:
        await self.stop()

    # ── Event handlers ────────────────────────────────────────────

    def _on_request(self, request: Request) -> None:
        url = request.url
        if url in self._request_set or len(self._requests) >= _MAX_OBSERVED_REQUESTS:
            return
        self._request_set.add(url)
        self._requests.append(url)

    async def _on_new_page(self, page: Page) -> None:
        """Track the latest popup; an unclaimed older popup is closed."""
        if page is self._page:
            return
        old = self._pending_new_page
        self._pending_new_page = page
        if old is not None and not old.is_closed():
            with suppress(Exception):
                await old.close()
        logger.debug("New page/popup detected: %s", page.url)

    def consume_new_page(self) -> Page | None:
        """Return and clear the pending popup (if any)."""
        page = self._pending_new_page
        self._pending_new_page = None
        return page

    # ── Signal sources ────────────────────────────────────────────

    async def navigate(self, url: str) -> bool:
        """Navigate to *url*; True when the load event arrived in time.

        Timeouts and redirect aborts are expected on Google News and only
        logged.  A dead browser raises BrowserError.
        """
        try:
            await self.page.goto(
                url,
                wait_until=self.config.wait_until,
                timeout=self.config.navigation_timeout_ms,
            )
            return True
        except PlaywrightTimeoutError:
            logger.info(
                "Navigation timed out after %dms, continuing with partial signals",
                self.config.navigation_timeout_ms,
            )
            return False
        except PlaywrightError as exc:
            if _is_browser_dead_error(exc):
                raise BrowserError(f"Browser died during navigation: {exc}") from exc
            logger.info("Navigation error (expected for redirects): %s", exc)
            return False

    async def settle(self, ms: int) -> None:
        """Fixed wait so client-side redirects and late requests can happen."""
        if ms > 0:
            await asyncio.sleep(ms / 1000)

    def current_url(self) -> str:
        return self.page.url

    def observed_requests(self) -> list[str]:
        """Distinct request URLs in first-seen order."""
        return list(self._requests)

    async def extract_anchor_hrefs(self, selectors: Sequence[str]) -> list[str]:
        """Absolute http(s) hrefs of anchors matching *selectors*, in selector order.

        Evaluation failure (page navigated away, crash) yields ``[]``.
        """
        try:
            hrefs = await self.page.evaluate(_ANCHOR_HREFS_JS, list(selectors))
        except PlaywrightError:
            logger.info("Anchor extraction failed, treating as no anchors", exc_info=True)
            return []
        if not isinstance(hrefs, list):
            return []
        return [h for h in hrefs if isinstance(h, str)]

    async def click_first_anchor(self, selectors: Sequence[str]) -> str | None:
        """Click the first outbound article anchor and return where the browser ended up.

        Popups (``target=_blank``) are followed.  Returns None when there was
        nothing to click or the click itself failed.
        """
        try:
            marked = await self.page.evaluate(_MARK_FIRST_ANCHOR_JS, [list(selectors), _CLICK_MARK_ATTR])
        except PlaywrightError:
            logger.info("Click target lookup failed", exc_info=True)
            return None
        if not marked:
            return None

        self._pending_new_page = None
        try:
            await self.page.locator(f"[{_CLICK_MARK_ATTR}]").first.click(timeout=self.config.click_timeout_ms)
        except PlaywrightError as exc:
            if _is_browser_dead_error(exc):
                raise BrowserError(f"Browser died during click: {exc}") from exc
            logger.info("Click simulation failed: %s", exc)
            return None

        await self.settle(self.config.click_settle_ms)

        popup = self.consume_new_page()
        if popup is not None and not popup.is_closed():
            logger.debug("Click opened popup: %s", popup.url)
            return popup.url
        if self._page is None or self._page.is_closed():
            return None
        return self._page.url


# ── Page scripts (static, no interpolation) ──────────────────────────

_ANCHOR_HREFS_JS = """(selectors) => {
  const seen = new Set();
  const out = [];
  for (const sel of selectors) {
    let nodes;
    try { nodes = document.querySelectorAll(sel); } catch (e) { continue; }
    for (const a of nodes) {
      const href = a.href;
      if (typeof href !== 'string') continue;
      if (!(href.startsWith('http://') || href.startsWith('https://'))) continue;
      if (seen.has(href)) continue;
      seen.add(href);
      out.push(href);
    }
  }
  return out;
}"""

_MARK_FIRST_ANCHOR_JS = """([selectors, attr]) => {
  for (const sel of selectors) {
    let nodes;
    try { nodes = document.querySelectorAll(sel); } catch (e) { continue; }
    for (const a of nodes) {
      const href = a.href;
      if (typeof href !== 'string') continue;
      if (!(href.startsWith('http://') || href.startsWith('https://'))) continue;
      if (href.includes('google.com') || href.includes('gstatic.com')) continue;
      a.setAttribute(attr, '1');
      return href;
    }
  }
  return null;
}"""


@asynccontextmanager
async def create_session(
    config: BrowserConfig | None = None,
) -> AsyncGenerator[BrowserSession, None]:
    """Context manager: the session is released on every exit path."""
    session = BrowserSession(config)
    await session.start()
    try:
        yield session
    finally:
        await session.stop()
