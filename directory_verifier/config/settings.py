"""Application settings using Pydantic BaseSettings for environment variable management."""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)


class PolicyConfig(BaseModel):
    """
    Tunable thresholds for the decision, cadence and review-priority rules.

    Attributes:
        approve_threshold: Minimum overall score for auto-approval
        flagged_interval_days: Days until a flagged resource is re-checked
        verified_interval_days: Days until a verified resource is re-checked
        skipped_interval_days: Days until a resource with nothing to check is revisited
        stale_after_days: Age after which a human verification is considered stale
        missing_email_priority: Review priority for resources without email
        missing_source_priority: Review priority for undocumented verification source
        no_contact_priority: Review priority for resources with no phone and no email
        routine_priority: Review priority for routine re-verification
    """

    approve_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    flagged_interval_days: int = Field(default=7, gt=0)
    verified_interval_days: int = Field(default=60, gt=0)
    skipped_interval_days: int = Field(default=60, gt=0)
    stale_after_days: int = Field(default=180, gt=0)
    missing_email_priority: int = 100
    missing_source_priority: int = 90
    no_contact_priority: int = 70
    routine_priority: int = 50


class Settings(BaseSettings):
    """
    Global application settings loaded from environment variables.

    Attributes:
        database_url: SQLAlchemy async database URL
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log output format (json for production, console for dev)
        log_file: Optional file that also receives JSON logs, rotated by size
        agent_version: Version tag written into every verification run
        batch_limit: Default number of resources processed per batch run
        browser_timeout_seconds: Hard cap for a single page render
        browser_user_agent: User agent presented by the rendering browser
        browser_headless: Run Chromium headless
        geocoder_url: Nominatim-compatible search endpoint (address checks disabled if unset)
        geocoder_timeout_seconds: Timeout for geocoder requests
        policy: Decision, cadence and review-priority thresholds
    """

    database_url: str = Field(
        default="sqlite+aiosqlite:///directory_verifier.db",
        description="SQLAlchemy async database URL"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: json or console"
    )
    log_file: str | None = Field(
        default=None,
        description="Also write JSON logs to this file (rotated at 10 MB)"
    )
    agent_version: str = Field(
        default="periodic-verification-v1.0.0",
        description="Agent version tag recorded on verification runs"
    )
    batch_limit: int = Field(
        default=50,
        gt=0,
        description="Default number of resources per batch run"
    )
    browser_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Hard cap for page rendering in the URL check"
    )
    browser_user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="Realistic desktop user agent for the rendering browser"
    )
    browser_headless: bool = Field(
        default=True,
        description="Launch Chromium in headless mode"
    )
    geocoder_url: str | None = Field(
        default=None,
        description="Nominatim-compatible search endpoint for address checks"
    )
    geocoder_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for geocoder requests"
    )
    policy: PolicyConfig = Field(default_factory=PolicyConfig)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "extra": "ignore",
    }


# Singleton instance - import this throughout the application
settings = Settings()
