"""
Server Configuration

Loads configuration from environment variables and provides defaults.
A .env file at the project root is loaded with python-dotenv.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

root_env = Path(__file__).resolve().parent.parent / ".env"
if root_env.exists():
    load_dotenv(root_env)

FEATURE_STORE_SOURCES = ("memory", "json", "http")


@dataclass
class ServerConfig:
    """Server configuration."""

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # Feature store: "memory" | "json" | "http"
    feature_store_source: str = "memory"
    # When feature_store_source=json: {scenario: [candidate, ...]}
    features_json_path: Optional[Path] = None
    # When feature_store_source=http: GET {url}/candidates?scenario=...
    feature_store_url: Optional[str] = None
    # Optional {scenario: HierarchicalConfig} seed for the tuning layers
    tuning_json_path: Optional[Path] = None

    # Circuit breakers
    breaker_failure_threshold: int = 3
    breaker_failure_window_seconds: float = 600.0
    breaker_cooldown_seconds: float = 600.0
    breaker_trial_timeout_seconds: float = 60.0

    # Decisions
    decision_retention: int = 10000
    decision_log_path: Optional[Path] = None

    # Segment metrics
    segment_window_hours: int = 24
    lkg_ttl_seconds: float = 1800.0

    # Exploration defaults (per-scenario settings override)
    default_epsilon: float = 0.10
    default_top_k: int = 3
    safe_defaults: List[str] = field(default_factory=list)

    # Deadlines
    feature_store_timeout_seconds: float = 2.0
    persistence_timeout_seconds: float = 1.0

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        base_dir = Path(__file__).parent.parent
        source = os.getenv("FEATURE_STORE_SOURCE", "").strip().lower() or "memory"

        def _path_env(key: str, default: Optional[Path] = None) -> Optional[Path]:
            v = os.getenv(key)
            if not v:
                return default
            p = Path(v)
            return p if p.is_absolute() else (base_dir / p).resolve()

        safe_defaults = [s.strip() for s in os.getenv("SAFE_DEFAULTS", "").split(",") if s.strip()]

        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            feature_store_source=source,
            features_json_path=_path_env("FEATURES_JSON_PATH"),
            feature_store_url=os.getenv("FEATURE_STORE_URL") or None,
            tuning_json_path=_path_env("TUNING_JSON_PATH"),
            breaker_failure_threshold=int(os.getenv("BREAKER_FAILURE_THRESHOLD", "3")),
            breaker_failure_window_seconds=float(os.getenv("BREAKER_FAILURE_WINDOW_SECONDS", "600")),
            breaker_cooldown_seconds=float(os.getenv("BREAKER_COOLDOWN_SECONDS", "600")),
            breaker_trial_timeout_seconds=float(os.getenv("BREAKER_TRIAL_TIMEOUT_SECONDS", "60")),
            decision_retention=int(os.getenv("DECISION_RETENTION", "10000")),
            decision_log_path=_path_env("DECISION_LOG_PATH"),
            segment_window_hours=int(os.getenv("SEGMENT_WINDOW_HOURS", "24")),
            lkg_ttl_seconds=float(os.getenv("LKG_TTL_SECONDS", "1800")),
            default_epsilon=float(os.getenv("DEFAULT_EPSILON", "0.10")),
            default_top_k=int(os.getenv("DEFAULT_TOP_K", "3")),
            safe_defaults=safe_defaults,
            feature_store_timeout_seconds=float(os.getenv("FEATURE_STORE_TIMEOUT_SECONDS", "2.0")),
            persistence_timeout_seconds=float(os.getenv("PERSISTENCE_TIMEOUT_SECONDS", "1.0")),
        )

    def validate(self) -> tuple[bool, list[str]]:
        """
        Validate the configuration.

        Returns:
            (is_valid, list_of_errors)
        """
        errors = []

        if self.feature_store_source not in FEATURE_STORE_SOURCES:
            errors.append(f"Unknown feature store source: {self.feature_store_source}")
        if self.feature_store_source == "json":
            if not self.features_json_path or not self.features_json_path.exists():
                errors.append(f"Features JSON not found: {self.features_json_path}")
        if self.feature_store_source == "http" and not self.feature_store_url:
            errors.append("FEATURE_STORE_URL is required when FEATURE_STORE_SOURCE=http")
        if self.tuning_json_path and not self.tuning_json_path.exists():
            errors.append(f"Tuning JSON not found: {self.tuning_json_path}")

        if self.breaker_failure_threshold < 1:
            errors.append("BREAKER_FAILURE_THRESHOLD must be >= 1")
        if self.decision_retention < 1:
            errors.append("DECISION_RETENTION must be >= 1")
        if not 1 <= self.segment_window_hours <= 24 * 7:
            errors.append("SEGMENT_WINDOW_HOURS must be within [1, 168]")
        if not 0.0 <= self.default_epsilon <= 1.0:
            errors.append("DEFAULT_EPSILON must be within [0, 1]")
        if self.default_top_k < 1:
            errors.append("DEFAULT_TOP_K must be >= 1")
        # Decision log directory will be created if needed

        return len(errors) == 0, errors

    def ensure_directories(self):
        """Create required directories if they don't exist."""
        if self.decision_log_path:
            self.decision_log_path.parent.mkdir(parents=True, exist_ok=True)


# Global config instance
_config: Optional[ServerConfig] = None


def get_config() -> ServerConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = ServerConfig.from_env()
        _config.ensure_directories()
    return _config


def reload_config() -> ServerConfig:
    """Reload configuration from environment."""
    global _config
    _config = None
    return get_config()
