"""Tests for the browser-rendered URL reachability check.

Tests cover:
- URL shape validation before any browser is launched
- 2xx/3xx pass, 4xx/5xx fail with the status code
- Navigation timeout, browser errors and missing responses
- Browser context closed on every exit path
- Context fingerprint (user agent, viewport, locale, headers)
"""

import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from directory_verifier.checks.url_check import (
    HIDE_WEBDRIVER_SCRIPT,
    URL_CHECK_NAME,
    UrlReachabilityCheck,
    is_valid_url,
    status_passes,
)


# ── Helpers ──────────────────────────────────────────────────────────────


class TestHelpers:
    @pytest.mark.parametrize(
        "url",
        ["https://example.org", "http://example.org/path?q=1", "https://sub.example.org:8443"],
    )
    def test_valid_urls(self, url: str) -> None:
        assert is_valid_url(url)

    @pytest.mark.parametrize(
        "url",
        ["example.org", "ftp://example.org", "https://", "not a url", "", "javascript:alert(1)"],
    )
    def test_invalid_urls(self, url: str) -> None:
        assert not is_valid_url(url)

    def test_status_boundaries(self) -> None:
        assert status_passes(200)
        assert status_passes(301)
        assert status_passes(399)
        assert not status_passes(199)
        assert not status_passes(400)
        assert not status_passes(403)
        assert not status_passes(503)


# ── Applicability ─────────────────────────────────────────────────────────


class TestApplicability:
    def test_applies_with_website(self, fake_launcher, resource_factory) -> None:
        check = UrlReachabilityCheck(launch_browser=fake_launcher())
        assert check.name == URL_CHECK_NAME
        assert check.applies_to(resource_factory())

    def test_not_applicable_without_website(self, fake_launcher, resource_factory) -> None:
        check = UrlReachabilityCheck(launch_browser=fake_launcher())
        assert not check.applies_to(resource_factory(website=None))
        assert not check.applies_to(resource_factory(website="   "))


# ── Outcomes ──────────────────────────────────────────────────────────────


class TestOutcomes:
    @pytest.mark.asyncio
    async def test_200_passes(self, fake_launcher, resource_factory) -> None:
        launcher = fake_launcher(200)
        result = await UrlReachabilityCheck(launch_browser=launcher).run(resource_factory())

        assert result.passed is True
        assert result.status_code == 200
        assert result.error is None
        assert result.direct_check is not None
        assert result.direct_check.passed is True
        assert result.redundant_check is None

    @pytest.mark.asyncio
    async def test_redirect_passes(self, fake_launcher, resource_factory) -> None:
        result = await UrlReachabilityCheck(launch_browser=fake_launcher(302)).run(
            resource_factory()
        )
        assert result.passed is True
        assert result.status_code == 302

    @pytest.mark.asyncio
    async def test_403_fails_with_status(self, fake_launcher, resource_factory) -> None:
        result = await UrlReachabilityCheck(launch_browser=fake_launcher(403)).run(
            resource_factory()
        )
        assert result.passed is False
        assert result.status_code == 403
        assert result.error == "HTTP 403"

    @pytest.mark.asyncio
    async def test_404_fails(self, fake_launcher, resource_factory) -> None:
        result = await UrlReachabilityCheck(launch_browser=fake_launcher(404)).run(
            resource_factory()
        )
        assert result.passed is False
        assert result.status_code == 404

    @pytest.mark.asyncio
    async def test_navigation_timeout(self, fake_launcher, resource_factory) -> None:
        launcher = fake_launcher(PlaywrightTimeoutError("Timeout 10000ms exceeded"))
        result = await UrlReachabilityCheck(timeout_seconds=10, launch_browser=launcher).run(
            resource_factory()
        )
        assert result.passed is False
        assert result.error == "Navigation timeout after 10s"
        assert result.status_code is None

    @pytest.mark.asyncio
    async def test_dns_failure(self, fake_launcher, resource_factory) -> None:
        launcher = fake_launcher(PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))
        result = await UrlReachabilityCheck(launch_browser=launcher).run(resource_factory())
        assert result.passed is False
        assert "ERR_NAME_NOT_RESOLVED" in result.error

    @pytest.mark.asyncio
    async def test_no_response(self, fake_launcher, resource_factory) -> None:
        result = await UrlReachabilityCheck(launch_browser=fake_launcher(None)).run(
            resource_factory()
        )
        assert result.passed is False
        assert result.status_code == 0
        assert result.error == "No navigation response"

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_failure(
        self, fake_launcher, resource_factory
    ) -> None:
        launcher = fake_launcher(RuntimeError("browser crashed"))
        result = await UrlReachabilityCheck(launch_browser=launcher).run(resource_factory())
        assert result.passed is False
        assert "RuntimeError" in result.error

    @pytest.mark.asyncio
    async def test_invalid_url_never_launches_browser(
        self, fake_launcher, resource_factory
    ) -> None:
        launcher = fake_launcher(200)
        result = await UrlReachabilityCheck(launch_browser=launcher).run(
            resource_factory(website="eastsidepantry dot org")
        )
        assert result.passed is False
        assert result.error.startswith("Invalid URL")
        assert launcher.browsers == []

    @pytest.mark.asyncio
    async def test_hard_limit_when_navigation_hangs(
        self, fake_launcher, resource_factory, monkeypatch
    ) -> None:
        monkeypatch.setattr("directory_verifier.checks.url_check.LAUNCH_GRACE_SECONDS", 0.0)

        async def hang(url: str) -> int:
            await asyncio.sleep(5)
            return 200

        launcher = fake_launcher(hang)
        result = await UrlReachabilityCheck(timeout_seconds=0.05, launch_browser=launcher).run(
            resource_factory()
        )
        assert result.passed is False
        assert "hard limit" in result.error
        assert launcher.contexts[0].closed is True
        assert launcher.browsers[0].closed is True


# ── Browser lifetime & fingerprint ───────────────────────────────────────


class TestBrowserScope:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "outcome",
        [200, 403, None, PlaywrightTimeoutError("t"), PlaywrightError("x"), ValueError("boom")],
    )
    async def test_context_and_browser_always_closed(
        self, fake_launcher, resource_factory, outcome
    ) -> None:
        launcher = fake_launcher(outcome)
        await UrlReachabilityCheck(launch_browser=launcher).run(resource_factory())

        assert len(launcher.contexts) == 1
        assert launcher.contexts[0].closed is True
        assert launcher.browsers[0].closed is True

    @pytest.mark.asyncio
    async def test_fresh_browser_per_check(self, fake_launcher, resource_factory) -> None:
        launcher = fake_launcher(200)
        check = UrlReachabilityCheck(launch_browser=launcher)
        await check.run(resource_factory())
        await check.run(resource_factory())
        assert len(launcher.browsers) == 2

    @pytest.mark.asyncio
    async def test_realistic_context_options(self, fake_launcher, resource_factory) -> None:
        launcher = fake_launcher(200)
        check = UrlReachabilityCheck(
            timeout_seconds=7, user_agent="Mozilla/5.0 Test", launch_browser=launcher
        )
        await check.run(resource_factory())

        context = launcher.contexts[0]
        assert context.options["user_agent"] == "Mozilla/5.0 Test"
        assert context.options["viewport"] == {"width": 1920, "height": 1080}
        assert context.options["locale"] == "en-US"
        assert "Accept-Language" in context.options["extra_http_headers"]
        assert context.page.init_scripts == [HIDE_WEBDRIVER_SCRIPT]
        assert context.page.goto_kwargs == {"wait_until": "domcontentloaded", "timeout": 7000}
        assert context.page.visited == ["https://eastsidepantry.org"]
