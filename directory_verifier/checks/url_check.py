"""URL reachability check using full browser rendering.

A plain HEAD/GET from a script is routinely rejected by bot protection,
which turns live websites into false "broken" flags. This check instead
renders the page in a fresh, isolated Chromium context with a realistic
desktop fingerprint, waits for DOMContentLoaded under a hard cap, and takes
the navigation's HTTP status as ground truth: 2xx/3xx passes, anything
else fails.
"""

import asyncio
import time
from functools import partial
from typing import Optional
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from directory_verifier.checks.base_check import CheckStrategy
from directory_verifier.checks.browser import BrowserLauncher, chromium_browser
from directory_verifier.config.settings import DEFAULT_USER_AGENT
from directory_verifier.data_management.schemas import CheckResult, ProbeResult, Resource

URL_CHECK_NAME = "url_reachable"

# Extra time allowed for browser start-up on top of the navigation cap
LAUNCH_GRACE_SECONDS = 20.0

EXTRA_HTTP_HEADERS: dict[str, str] = {
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
}

# Hides navigator.webdriver, the most common automation tell
HIDE_WEBDRIVER_SCRIPT = (
    "Object.defineProperty(navigator, 'webdriver', { get: () => undefined })"
)


def is_valid_url(url: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def status_passes(status_code: int) -> bool:
    """2xx and 3xx navigation statuses count as reachable."""
    return 200 <= status_code < 400


class UrlReachabilityCheck(CheckStrategy):
    """
    Checks that a resource's website renders in a real browser.

    Attributes:
        timeout_seconds: Hard cap on navigation (DOMContentLoaded)
        user_agent: User agent presented by the browser context
        launch_browser: Factory returning an async context manager that
            yields a browser; defaults to a fresh headless Chromium
    """

    name = URL_CHECK_NAME

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
        launch_browser: Optional[BrowserLauncher] = None,
        headless: bool = True,
    ) -> None:
        """
        Initialize URL reachability check.

        Args:
            timeout_seconds: Navigation timeout in seconds
            user_agent: Desktop browser user agent
            launch_browser: Browser factory (injectable for tests)
            headless: Headless mode for the default Chromium launcher
        """
        super().__init__()
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self.launch_browser = launch_browser or partial(chromium_browser, headless=headless)

    def applies_to(self, resource: Resource) -> bool:
        return bool(resource.website)

    async def _render_status(self, url: str) -> Optional[int]:
        """
        Navigate to the URL in a fresh context and return the HTTP status.

        The browser and its context are both scoped: the context is closed
        in ``finally`` and the browser by its context manager, on success,
        navigation error, timeout or cancellation alike.
        """
        async with self.launch_browser() as browser:
            context = await browser.new_context(
                user_agent=self.user_agent,
                viewport={"width": 1920, "height": 1080},
                locale="en-US",
                timezone_id="America/Los_Angeles",
                extra_http_headers=EXTRA_HTTP_HEADERS,
            )
            try:
                page = await context.new_page()
                await page.add_init_script(HIDE_WEBDRIVER_SCRIPT)
                response = await page.goto(
                    url,
                    wait_until="domcontentloaded",
                    timeout=self.timeout_seconds * 1000,
                )
                return response.status if response is not None else None
            finally:
                await context.close()

    async def _execute(self, resource: Resource) -> CheckResult:
        url = resource.website or ""
        start = time.monotonic()

        def _elapsed_ms() -> int:
            return int((time.monotonic() - start) * 1000)

        if not is_valid_url(url):
            probe = ProbeResult(passed=False, error=f"Invalid URL: {url!r}")
            return CheckResult(
                passed=False,
                latency_ms=_elapsed_ms(),
                error=probe.error,
                direct_check=probe,
            )

        try:
            status = await asyncio.wait_for(
                self._render_status(url),
                timeout=self.timeout_seconds + LAUNCH_GRACE_SECONDS,
            )
        except PlaywrightTimeoutError:
            probe = ProbeResult(
                passed=False,
                error=f"Navigation timeout after {self.timeout_seconds:g}s",
            )
        except asyncio.TimeoutError:
            probe = ProbeResult(
                passed=False,
                error=f"Check exceeded {self.timeout_seconds + LAUNCH_GRACE_SECONDS:g}s hard limit",
            )
        except PlaywrightError as e:
            probe = ProbeResult(passed=False, error=e.message or str(e))
        except OSError as e:
            probe = ProbeResult(passed=False, error=f"Browser unavailable: {e}")
        else:
            if status is None:
                probe = ProbeResult(passed=False, status_code=0, error="No navigation response")
            else:
                probe = ProbeResult(
                    passed=status_passes(status),
                    status_code=status,
                    error=None if status_passes(status) else f"HTTP {status}",
                )

        latency_ms = _elapsed_ms()
        if probe.passed:
            self.logger.debug("URL reachable", url=url, status_code=probe.status_code)
        else:
            self.logger.info(
                "URL check failed",
                url=url,
                status_code=probe.status_code,
                error=probe.error,
            )

        return CheckResult(
            passed=probe.passed,
            latency_ms=latency_ms,
            status_code=probe.status_code,
            error=probe.error,
            direct_check=probe,
            redundant_check=None,
        )
