"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- One place that sets up structured logging for the whole package
"""

import logging
import os
from functools import lru_cache
from typing import Literal, cast

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator

from healthscore.domain.models import Period
from healthscore.errors import ConfigurationError

# Load environment variables from .env file
load_dotenv()

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class FetchConfig(BaseModel):
    """Provider fetch behaviour: retries, timeouts and fan-out width."""

    max_attempts: int = Field(default=3, ge=1, description="Attempts per metric type")
    base_delay_seconds: float = Field(
        default=1.0, ge=0.0, description="Delay before the first retry"
    )
    backoff_factor: float = Field(default=2.0, ge=1.0, description="Delay multiplier per retry")
    max_delay_seconds: float = Field(default=30.0, ge=0.0, description="Upper bound on any delay")
    timeout_seconds: float = Field(
        default=10.0, gt=0.0, description="Timeout for a single fetch attempt"
    )
    max_concurrent_fetches: int = Field(
        default=8, gt=0, description="Maximum number of concurrent provider fetches"
    )
    default_period: Period = Field(default=Period.WEEK, description="Look-back window")


class ScoringConfig(BaseModel):
    """Thresholds used when labelling domain scores."""

    strength_threshold: float = Field(
        default=80.0, ge=0.0, le=100.0, description="Domain score counted as a strength"
    )
    weakness_threshold: float = Field(
        default=60.0, ge=0.0, le=100.0, description="Domain score below which it is a weakness"
    )

    @model_validator(mode="after")
    def weakness_below_strength(self) -> "ScoringConfig":
        if self.weakness_threshold > self.strength_threshold:
            raise ValueError("weakness_threshold must not exceed strength_threshold")
        return self


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(default="INFO", description="Logging level")
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Component configs
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> LogLevel:
        v = val.strip().upper()
        return cast(
            LogLevel,
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    def _period(val: str) -> Period:
        try:
            return Period(val.strip().lower())
        except ValueError as e:
            raise ConfigurationError(
                f"DEFAULT_PERIOD must be one of day/week/month/year, got {val!r}"
            ) from e

    def _number(name: str, default: str, cast_to: type[int] | type[float]) -> int | float:
        raw = os.getenv(name, default)
        try:
            return cast_to(raw)
        except ValueError as e:
            raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e

    # Detect environment
    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    try:
        fetch_config = FetchConfig(
            max_attempts=_number("FETCH_MAX_ATTEMPTS", "3", int),
            base_delay_seconds=_number("FETCH_BASE_DELAY_SECONDS", "1.0", float),
            timeout_seconds=_number("FETCH_TIMEOUT_SECONDS", "10.0", float),
            max_concurrent_fetches=_number("FETCH_MAX_CONCURRENCY", "8", int),
            default_period=_period(os.getenv("DEFAULT_PERIOD", "week")),
        )

        scoring_config = ScoringConfig(
            strength_threshold=_number("STRENGTH_THRESHOLD", "80", float),
            weakness_threshold=_number("WEAKNESS_THRESHOLD", "60", float),
        )

        logging_config = LoggingConfig(
            level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
            format="console" if debug else "json",
        )

        return AppConfig(
            environment=environment,
            debug=debug,
            fetch=fetch_config,
            scoring=scoring_config,
            logging=logging_config,
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def configure_logging(config: LoggingConfig | None = None) -> None:
    """
    Configure structlog for the package.

    JSON output for machines, console rendering for local development. The
    stdlib logger level gates what structlog's `filter_by_level` lets through.
    """
    config = config or LoggingConfig()
    renderer = (
        structlog.dev.ConsoleRenderer()
        if config.format == "console"
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if not logging.getLogger().handlers:
        logging.basicConfig(format="%(message)s")
    logging.getLogger("healthscore").setLevel(config.level)


# Development helpers
def print_config_summary() -> None:
    """Print configuration summary for debugging."""
    config = get_config()

    print("\n🔧 CONFIGURATION SUMMARY")
    print(f"Environment: {config.environment}")
    print(f"Debug Mode: {config.debug}")
    print(f"Log Level: {config.logging.level}")

    print("\n📡 FETCH CONFIGURATION")
    print(f"Max Attempts: {config.fetch.max_attempts}")
    print(f"Base Delay: {config.fetch.base_delay_seconds}s (x{config.fetch.backoff_factor})")
    print(f"Timeout: {config.fetch.timeout_seconds}s")
    print(f"Concurrency: {config.fetch.max_concurrent_fetches}")
    print(f"Default Period: {config.fetch.default_period.value}")

    print("\n🏅 SCORING CONFIGURATION")
    print(f"Strength Threshold: {config.scoring.strength_threshold}")
    print(f"Weakness Threshold: {config.scoring.weakness_threshold}")


if __name__ == "__main__":
    print_config_summary()
