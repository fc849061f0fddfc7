"""Relational persistence: SQLAlchemy declarative tables and session management.

Architecture:
- Single declarative base for the two tables (resources, verification_logs)
- Async engine created by Database.connect(), which also proves the store
  is reachable before any batch work starts
- session_scope() gives a transactional unit; stores accept an outer
  session so a run insert and a resource update commit or roll back together
"""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional

import structlog
from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from directory_verifier.config.settings import settings
from directory_verifier.data_management.schemas import (
    DecisionKind,
    ResourceStatus,
    VerificationStatus,
    VerificationType,
)
from directory_verifier.errors import StoreUnavailableError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_column(enum_cls: type) -> Enum:
    """Store an enum by value, validated on both sides of the driver."""
    return Enum(
        enum_cls,
        native_enum=False,
        validate_strings=True,
        values_callable=lambda members: [m.value for m in members],
        length=32,
    )


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetimes stored as naive UTC.

    SQLite drops tzinfo on the way back; this type reattaches UTC so every
    datetime leaving the store is aware and comparable.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetime passed to UTCDateTime column")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base for all tables."""


class ResourceRow(Base):
    """Directory listing with its verification state."""

    __tablename__ = "resources"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[ResourceStatus] = mapped_column(
        _enum_column(ResourceStatus), default=ResourceStatus.ACTIVE, index=True
    )

    address: Mapped[Optional[str]] = mapped_column(String(255))
    city: Mapped[Optional[str]] = mapped_column(String(128))
    state: Mapped[Optional[str]] = mapped_column(String(64))
    zip: Mapped[Optional[str]] = mapped_column(String(16))
    phone: Mapped[Optional[str]] = mapped_column(String(64))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    website: Mapped[Optional[str]] = mapped_column(String(2048))
    hours: Mapped[Optional[dict]] = mapped_column(JSON)
    services_offered: Mapped[Optional[list]] = mapped_column(JSON)
    eligibility_requirements: Mapped[Optional[str]] = mapped_column(Text)
    primary_category: Mapped[Optional[str]] = mapped_column(String(128))

    verification_status: Mapped[VerificationStatus] = mapped_column(
        _enum_column(VerificationStatus), default=VerificationStatus.PENDING, index=True
    )
    verification_confidence: Mapped[Optional[float]] = mapped_column(Float)
    last_verified_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    next_verification_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, index=True)
    human_review_required: Mapped[bool] = mapped_column(Boolean, default=False, index=True)

    verification_source: Mapped[Optional[str]] = mapped_column(Text)
    verified_by: Mapped[Optional[str]] = mapped_column(String(255))
    correction_notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)


class VerificationRunRow(Base):
    """Append-only audit log of verification runs."""

    __tablename__ = "verification_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    resource_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("resources.id", ondelete="CASCADE"), index=True
    )
    verification_type: Mapped[VerificationType] = mapped_column(
        _enum_column(VerificationType), nullable=False
    )
    agent_version: Mapped[str] = mapped_column(String(64), nullable=False)
    overall_score: Mapped[Optional[float]] = mapped_column(Float)
    checks_performed: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    decision: Mapped[DecisionKind] = mapped_column(
        _enum_column(DecisionKind), nullable=False, index=True
    )
    decision_reason: Mapped[str] = mapped_column(Text, nullable=False)
    conflicts_found: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    ip_block_detected: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    started_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    duration_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Database:
    """Async engine and session factory for the verification store.

    Usage:
        db = Database("sqlite+aiosqlite:///verifier.db")
        await db.connect()
        async with db.session_scope() as session:
            ...
        await db.close()
    """

    def __init__(self, url: Optional[str] = None, echo: bool = False) -> None:
        """
        Initialize database handle (no connection is made yet).

        Args:
            url: SQLAlchemy async URL; defaults to settings.database_url
            echo: Log emitted SQL
        """
        self.url = url or settings.database_url
        self.echo = echo
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._logger = structlog.get_logger().bind(component="Database")

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    async def connect(self, create_tables: bool = True) -> None:
        """
        Create the engine, prove connectivity and optionally create tables.

        Raises:
            StoreUnavailableError: If the store cannot be reached or initialised
        """
        if self._engine is not None:
            return

        try:
            engine = create_async_engine(self.url, echo=self.echo)
        except (SQLAlchemyError, ImportError, ValueError) as e:
            raise StoreUnavailableError(f"Invalid database configuration: {e}") from e

        try:
            async with engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
                if create_tables:
                    await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as e:
            await engine.dispose()
            raise StoreUnavailableError(f"Cannot reach data store: {e}") from e

        self._engine = engine
        self._session_factory = async_sessionmaker(engine, expire_on_commit=False)
        self._logger.info("database_connected", url=engine.url.render_as_string(hide_password=True))

    async def close(self) -> None:
        """Dispose of the engine and its pooled connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            self._logger.info("database_closed")

    @asynccontextmanager
    async def session_scope(
        self, session: Optional[AsyncSession] = None
    ) -> AsyncIterator[AsyncSession]:
        """
        Provide a transactional scope.

        When an outer session is passed, it is reused and the caller owns
        commit/rollback.

        Yields:
            AsyncSession bound to the engine
        """
        if session is not None:
            yield session
            return

        if self._session_factory is None:
            raise RuntimeError("Database not connected. Call connect() first.")

        new_session = self._session_factory()
        try:
            yield new_session
            await new_session.commit()
        except BaseException:
            await new_session.rollback()
            raise
        finally:
            await new_session.close()


__all__ = [
    "Base",
    "Database",
    "ResourceRow",
    "UTCDateTime",
    "VerificationRunRow",
]
