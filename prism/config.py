# prism/config.py
# Configuration system for the Prism framework question merger
# Created: 2026-10-16

"""
Settings for the merger, read from PRISM_* environment variables
(and a local .env) once, when this module is first imported.

    from prism.config import APP_CONFIG

    APP_CONFIG.merge.merge_timeout
    APP_CONFIG.llm_profiles["merge"]
    APP_CONFIG.providers["openai"].base_url

Nothing else in the package reads os.environ.
"""

import os
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TypeVar
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ENDPOINT = "https://nc4r71glhhp1qbx8.us-east-1.aws.endpoints.huggingface.cloud/v1/"
DEFAULT_FRAMEWORKS_PATH = Path(__file__).resolve().parent / "data" / "prism.frameworks.json"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


# ============================================================================
# Environment Readers
# ============================================================================

def _env(key: str, default: str = "") -> str:
    return os.environ.get(key, default)


def _env_as(key: str, cast: Callable[[str], T], default: T) -> T:
    """Cast a variable; unset, blank or unparseable values give `default`."""
    raw = os.environ.get(key, "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning(f"Ignoring {key}={raw!r}, using {default!r}")
        return default


def _env_flag(key: str, default: bool = False) -> bool:
    raw = os.environ.get(key, "").strip().lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    return default


# ============================================================================
# Configuration Dataclasses
# ============================================================================

@dataclass(frozen=True)
class ProviderConfig:
    """Connection settings for one text-generation backend."""
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    timeout: float = 10.0
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DataConfig:
    frameworks_path: Path


@dataclass(frozen=True)
class MergeConfig:
    """Ranking, merging and output limits."""
    candidate_chunk_size: int = 50
    merge_concurrency: int = 10
    merge_timeout: float = 5.0
    cache_capacity: int = 100
    similarity_shortcut: float = 0.8
    min_length: int = 10
    max_length: int = 500
    use_deterministic_fallback: bool = False
    random_seed: Optional[int] = None


@dataclass(frozen=True)
class AppConfig:
    providers: Dict[str, ProviderConfig]
    llm_profiles: Dict[str, Dict[str, Any]]
    data: DataConfig
    merge: MergeConfig
    debug_mode: bool
    log_file: Optional[str]


# ============================================================================
# Configuration Loader
# ============================================================================

class ConfigLoader:
    """Builds an AppConfig from the current environment."""

    @staticmethod
    def _providers() -> Dict[str, ProviderConfig]:
        endpoint = dict(
            base_url=_env("PRISM_LLM_BASE_URL", DEFAULT_ENDPOINT),
            api_key=_env("PRISM_LLM_API_KEY") or _env("OPENAI_API_KEY"),
            timeout=_env_as("PRISM_LLM_TIMEOUT", float, 10.0),
        )
        # Both names reach the same OpenAI-compatible endpoint
        return {
            "openai": ProviderConfig(
                options={"max_retries": _env_as("PRISM_LLM_MAX_RETRIES", int, 2)},
                **endpoint,
            ),
            "http": ProviderConfig(**endpoint),
        }

    @staticmethod
    def _profiles() -> Dict[str, Dict[str, Any]]:
        shared = {
            "provider": _env("PRISM_LLM_PROVIDER", "openai"),
            "model": _env("PRISM_LLM_MODEL", "tgi"),
        }
        return {
            "merge": {**shared, "temperature": 0.3, "max_tokens": 100, "top_p": 0.9},
            "merge_fallback": {**shared, "temperature": 0.2, "max_tokens": 75},
            "refine": {**shared, "model": _env("PRISM_REFINE_MODEL", shared["model"]), "temperature": 0.7},
            "ping": {**shared, "temperature": 0.0, "max_tokens": 50},
        }

    @staticmethod
    def _merge() -> MergeConfig:
        defaults = MergeConfig()
        return MergeConfig(
            candidate_chunk_size=_env_as("PRISM_CANDIDATE_CHUNK_SIZE", int, defaults.candidate_chunk_size),
            merge_concurrency=_env_as("PRISM_MERGE_CONCURRENCY", int, defaults.merge_concurrency),
            merge_timeout=_env_as("PRISM_MERGE_TIMEOUT", float, defaults.merge_timeout),
            cache_capacity=_env_as("PRISM_CACHE_CAPACITY", int, defaults.cache_capacity),
            similarity_shortcut=_env_as("PRISM_SIMILARITY_SHORTCUT", float, defaults.similarity_shortcut),
            min_length=_env_as("PRISM_MIN_QUESTION_LENGTH", int, defaults.min_length),
            max_length=_env_as("PRISM_MAX_QUESTION_LENGTH", int, defaults.max_length),
            use_deterministic_fallback=_env_flag("PRISM_DETERMINISTIC_FALLBACK"),
            random_seed=_env_as("PRISM_RANDOM_SEED", int, None),
        )

    @classmethod
    def from_env(cls) -> AppConfig:
        frameworks_path = _env("PRISM_FRAMEWORKS_PATH")
        return AppConfig(
            providers=cls._providers(),
            llm_profiles=cls._profiles(),
            data=DataConfig(
                frameworks_path=Path(frameworks_path).expanduser() if frameworks_path else DEFAULT_FRAMEWORKS_PATH,
            ),
            merge=cls._merge(),
            debug_mode=_env_flag("PRISM_DEBUG"),
            log_file=_env("PRISM_LOG_FILE") or None,
        )


def with_overrides(config: MergeConfig, **overrides) -> MergeConfig:
    """Copy of `config` with every non-None override applied."""
    changes = {key: value for key, value in overrides.items() if value is not None}
    return replace(config, **changes) if changes else config


def config_issues(config: AppConfig) -> list:
    """Human-readable problems with a loaded configuration."""
    issues = []
    if not config.providers["openai"].api_key and config.llm_profiles["merge"]["provider"] == "openai":
        issues.append("PRISM_LLM_API_KEY / OPENAI_API_KEY not set, merges will fall back to source questions")
    if not config.data.frameworks_path.exists():
        issues.append(f"Framework data not found at {config.data.frameworks_path}")
    if config.merge.merge_concurrency < 1:
        issues.append("PRISM_MERGE_CONCURRENCY must be at least 1")
    if config.merge.min_length > config.merge.max_length:
        issues.append("PRISM_MIN_QUESTION_LENGTH is larger than PRISM_MAX_QUESTION_LENGTH")
    return issues


# ============================================================================
# Global Configuration Instance
# ============================================================================

APP_CONFIG = ConfigLoader.from_env()

if APP_CONFIG.debug_mode:
    for _issue in config_issues(APP_CONFIG):
        logger.warning(f"Configuration: {_issue}")


__all__ = [
    "APP_CONFIG",
    "AppConfig",
    "ConfigLoader",
    "DataConfig",
    "MergeConfig",
    "ProviderConfig",
    "config_issues",
    "with_overrides",
]
