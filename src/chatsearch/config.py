"""Configuration helpers for the chat search service."""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import TYPE_CHECKING, Final

from dotenv import load_dotenv

load_dotenv()

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from .observability import MetricsRecorder

_DEFAULT_DATA_DIR: Final[str] = "data"
_DEFAULT_SEARCH_LIMIT: Final[int] = 20
_DEFAULT_SEARCH_MAX_LIMIT: Final[int] = 100
_DEFAULT_SEARCH_CANDIDATE_LIMIT: Final[int] = 500
_DEFAULT_SUGGESTION_LIMIT: Final[int] = 5
_DEFAULT_SUGGESTION_MAX_LIMIT: Final[int] = 20
_DEFAULT_FUZZY_SIMILARITY_FLOOR: Final[float] = 0.4
_DEFAULT_FUZZY_SCORE_DISCOUNT: Final[float] = 0.8
_DEFAULT_FUZZY_POOL_SIZE: Final[int] = 1000
_DEFAULT_SEARCH_LOG_RETENTION_DAYS: Final[int] = 30
_DEFAULT_AUTH_USER_HEADER: Final[str] = "X-User-Id"
_DEFAULT_OBSERVABILITY_NAMESPACE: Final[str] = "chatsearch"


def _env_optional_bool(name: str) -> bool | None:
    """Read an optional boolean environment variable."""

    raw = os.getenv(name)
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    msg = f"Environment variable {name} must be a boolean value (true/false)."
    raise ValueError(msg)


def _env_optional_int(name: str) -> int | None:
    """Read an optional integer environment variable."""

    raw = os.getenv(name)
    if raw is None:
        return None
    value = raw.strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer") from exc


def _env_optional_float(name: str) -> float | None:
    """Read an optional float environment variable."""

    raw = os.getenv(name)
    if raw is None:
        return None
    value = raw.strip()
    if not value:
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a float") from exc


def _env_int(name: str, default: int, *, minimum: int | None = None) -> int:
    value = _env_optional_int(name)
    if value is None:
        value = default
    if minimum is not None:
        value = max(minimum, value)
    return value


def _env_float(name: str, default: float) -> float:
    """Read a float environment variable with a fallback (preserving zero)."""

    value = _env_optional_float(name)
    return default if value is None else value


def _env_bool(name: str, default: bool) -> bool:
    value = _env_optional_bool(name)
    if value is None:
        return default
    return value


@dataclass(slots=True)
class Settings:
    """Runtime settings loaded from environment variables."""

    data_dir: str = _DEFAULT_DATA_DIR
    chat_db_path: str | None = None
    search_default_limit: int = _DEFAULT_SEARCH_LIMIT
    search_max_limit: int = _DEFAULT_SEARCH_MAX_LIMIT
    search_candidate_limit: int = _DEFAULT_SEARCH_CANDIDATE_LIMIT
    suggestion_default_limit: int = _DEFAULT_SUGGESTION_LIMIT
    suggestion_max_limit: int = _DEFAULT_SUGGESTION_MAX_LIMIT
    fuzzy_similarity_floor: float = _DEFAULT_FUZZY_SIMILARITY_FLOOR
    fuzzy_score_discount: float = _DEFAULT_FUZZY_SCORE_DISCOUNT
    fuzzy_pool_size: int = _DEFAULT_FUZZY_POOL_SIZE
    search_logging_enabled: bool = True
    search_log_retention_days: int = _DEFAULT_SEARCH_LOG_RETENTION_DAYS
    search_log_dir: str | None = None
    auth_user_header: str = _DEFAULT_AUTH_USER_HEADER
    observability_metrics_enabled: bool = True
    observability_namespace: str = _DEFAULT_OBSERVABILITY_NAMESPACE
    observability_prometheus_enabled: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings by reading environment variables."""

        floor = _env_float("FUZZY_SIMILARITY_FLOOR", _DEFAULT_FUZZY_SIMILARITY_FLOOR)
        discount = _env_float("FUZZY_SCORE_DISCOUNT", _DEFAULT_FUZZY_SCORE_DISCOUNT)
        if not 0.0 <= floor <= 1.0:
            raise ValueError("Environment variable FUZZY_SIMILARITY_FLOOR must be between 0 and 1")
        if not 0.0 <= discount <= 1.0:
            raise ValueError("Environment variable FUZZY_SCORE_DISCOUNT must be between 0 and 1")

        return cls(
            data_dir=os.getenv("DATA_DIR", _DEFAULT_DATA_DIR),
            chat_db_path=os.getenv("CHAT_DB_PATH") or None,
            search_default_limit=_env_int("SEARCH_DEFAULT_LIMIT", _DEFAULT_SEARCH_LIMIT, minimum=1),
            search_max_limit=_env_int("SEARCH_MAX_LIMIT", _DEFAULT_SEARCH_MAX_LIMIT, minimum=1),
            search_candidate_limit=_env_int(
                "SEARCH_CANDIDATE_LIMIT", _DEFAULT_SEARCH_CANDIDATE_LIMIT, minimum=1
            ),
            suggestion_default_limit=_env_int(
                "SUGGESTION_DEFAULT_LIMIT", _DEFAULT_SUGGESTION_LIMIT, minimum=1
            ),
            suggestion_max_limit=_env_int("SUGGESTION_MAX_LIMIT", _DEFAULT_SUGGESTION_MAX_LIMIT, minimum=1),
            fuzzy_similarity_floor=floor,
            fuzzy_score_discount=discount,
            fuzzy_pool_size=_env_int("FUZZY_POOL_SIZE", _DEFAULT_FUZZY_POOL_SIZE, minimum=1),
            search_logging_enabled=_env_bool("SEARCH_LOGGING_ENABLED", True),
            search_log_retention_days=_env_int(
                "SEARCH_LOG_RETENTION_DAYS", _DEFAULT_SEARCH_LOG_RETENTION_DAYS, minimum=0
            ),
            search_log_dir=os.getenv("SEARCH_LOG_DIR") or None,
            auth_user_header=os.getenv("AUTH_USER_HEADER", _DEFAULT_AUTH_USER_HEADER),
            observability_metrics_enabled=_env_bool("OBSERVABILITY_METRICS_ENABLED", True),
            observability_namespace=os.getenv(
                "OBSERVABILITY_NAMESPACE", _DEFAULT_OBSERVABILITY_NAMESPACE
            ),
            observability_prometheus_enabled=_env_bool("OBSERVABILITY_PROMETHEUS_ENABLED", False),
        )

    def chat_db_file(self) -> Path:
        """Return the SQLite file holding chats and messages."""

        if self.chat_db_path:
            return Path(self.chat_db_path).expanduser().resolve()
        return Path(self.data_dir).resolve() / "chats.sqlite"

    def search_log_path(self) -> Path:
        """Return the directory where search logs should be stored."""

        if self.search_log_dir:
            return Path(self.search_log_dir).expanduser().resolve()
        return Path(self.data_dir).resolve() / "search_logs"

    def build_metrics_recorder(self) -> "MetricsRecorder":
        """Instantiate the configured metrics recorder."""

        from .observability import MetricsRecorder

        return MetricsRecorder(
            enabled=self.observability_metrics_enabled,
            namespace=self.observability_namespace,
            prometheus_enabled=self.observability_prometheus_enabled,
        )
