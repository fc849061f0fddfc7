"""Shared fixtures: a throwaway SQLite store and a fake Playwright browser."""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Union

import pytest
import pytest_asyncio

from directory_verifier.data_management.database import Database
from directory_verifier.data_management.resource_store import ResourceStore
from directory_verifier.data_management.schemas import Resource
from directory_verifier.data_management.verification_run_store import VerificationRunStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# ── Store ────────────────────────────────────────────────────────────────


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'verifier.db'}"


@pytest_asyncio.fixture
async def database(database_url: str):
    db = Database(database_url)
    await db.connect()
    yield db
    await db.close()


@pytest.fixture
def resource_store(database: Database) -> ResourceStore:
    return ResourceStore(database)


@pytest.fixture
def run_store(database: Database) -> VerificationRunStore:
    return VerificationRunStore(database)


def make_resource(**overrides: Any) -> Resource:
    """A fully populated active listing; override any field."""
    fields: dict[str, Any] = {
        "name": "Eastside Food Pantry",
        "address": "123 Main St",
        "city": "Oakland",
        "state": "CA",
        "zip": "94601",
        "phone": "(510) 555-0100",
        "email": "info@eastsidepantry.org",
        "website": "https://eastsidepantry.org",
        "hours": {"monday": "9am-5pm"},
        "services_offered": ["food"],
        "verification_source": "https://eastsidepantry.org/contact",
        "created_at": NOW - timedelta(days=30),
        "updated_at": NOW - timedelta(days=30),
    }
    fields.update(overrides)
    return Resource(**fields)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def resource_factory() -> Callable[..., Resource]:
    return make_resource


# ── Fake browser ─────────────────────────────────────────────────────────


class FakeResponse:
    def __init__(self, status: int) -> None:
        self.status = status


class FakePage:
    def __init__(self, outcome: Union[int, None, BaseException, Callable[[str], Any]]) -> None:
        self.outcome = outcome
        self.visited: list[str] = []
        self.init_scripts: list[str] = []
        self.goto_kwargs: dict[str, Any] = {}

    async def add_init_script(self, script: str) -> None:
        self.init_scripts.append(script)

    async def goto(self, url: str, **kwargs: Any) -> Optional[FakeResponse]:
        self.visited.append(url)
        self.goto_kwargs = kwargs
        outcome = self.outcome
        if callable(outcome) and not isinstance(outcome, BaseException):
            outcome = await outcome(url)
        if isinstance(outcome, BaseException):
            raise outcome
        if outcome is None:
            return None
        return FakeResponse(outcome)


class FakeContext:
    def __init__(self, page: FakePage, options: dict[str, Any]) -> None:
        self.page = page
        self.options = options
        self.closed = False

    async def new_page(self) -> FakePage:
        return self.page

    async def close(self) -> None:
        self.closed = True


class FakeBrowser:
    def __init__(self, outcome: Any) -> None:
        self.outcome = outcome
        self.contexts: list[FakeContext] = []
        self.closed = False

    async def new_context(self, **options: Any) -> FakeContext:
        context = FakeContext(FakePage(self.outcome), options)
        self.contexts.append(context)
        return context


class FakeLauncher:
    """
    Stands in for chromium_browser: each call yields a fresh FakeBrowser.

    ``outcome`` is what page.goto produces: an int status, None (no
    response), an exception to raise, or an async callable of the URL.
    """

    def __init__(self, outcome: Any = 200) -> None:
        self.outcome = outcome
        self.browsers: list[FakeBrowser] = []

    @asynccontextmanager
    async def __call__(self):
        browser = FakeBrowser(self.outcome)
        self.browsers.append(browser)
        try:
            yield browser
        finally:
            browser.closed = True

    @property
    def contexts(self) -> list[FakeContext]:
        return [c for b in self.browsers for c in b.contexts]


@pytest.fixture
def fake_launcher() -> Callable[..., FakeLauncher]:
    return FakeLauncher
