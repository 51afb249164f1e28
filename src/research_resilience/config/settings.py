"""ResilienceSettings dataclass and global settings state.

Settings load in layers: defaults, then TOML files, then environment
variables. ``get_settings`` / ``set_settings`` manage the process-wide
instance.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

import tomllib

from research_resilience.config.endpoints import (
    ENDPOINT_CONFIGS,
    EndpointConfig,
    get_endpoint_config,
    normalize_endpoint_name,
)
from research_resilience.config.parsing import (
    _parse_float,
    _parse_int,
    _try_parse_bool,
)

logger = logging.getLogger(__name__)

_ENV_PREFIX = "RESEARCH_RESILIENCE_"
_PROJECT_CONFIG_NAME = "research-resilience.toml"
_HANDLER_NAME = "research_resilience.stream"

# Endpoint keys accepted in [endpoints.<name>] tables: name -> (kind, minimum)
_ENDPOINT_FIELDS: Dict[str, tuple[str, float]] = {
    "timeout": ("float", 0.0),
    "max_attempts": ("int", 1),
    "retry_delay": ("float", 0.0),
    "circuit_breaker_threshold": ("int", 1),
    "health_check_interval": ("float", 0.0),
}


@dataclass
class ResilienceSettings:
    """Settings for the resilient call layer with TOML and env overrides."""

    # Logging configuration
    log_level: str = "INFO"
    structured_logging: bool = True

    # Local admission control
    rate_limit_ceiling: int = 10
    rate_limit_window: float = 1.0
    rate_limit_delay: float = 0.1

    # Health probes
    health_check_timeout: float = 5.0

    # Effective endpoint table
    endpoints: Dict[str, EndpointConfig] = field(default_factory=lambda: dict(ENDPOINT_CONFIGS))

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "ResilienceSettings":
        """
        Create settings from environment variables and optional TOML files.

        Priority (highest to lowest):
        1. Environment variables
        2. Explicit config file (argument or RESEARCH_RESILIENCE_CONFIG_FILE)
           or project config (./research-resilience.toml)
        3. XDG config (~/.config/research-resilience/config.toml)
        4. Default values
        """
        settings = cls()

        toml_path = config_file or os.environ.get(f"{_ENV_PREFIX}CONFIG_FILE")
        if toml_path:
            settings._load_toml(Path(toml_path))
        else:
            xdg_config_home = os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
            xdg_config = Path(xdg_config_home) / "research-resilience" / "config.toml"
            if xdg_config.exists():
                settings._load_toml(xdg_config)
                logger.debug(f"Loaded XDG config from {xdg_config}")

            project_config = Path(_PROJECT_CONFIG_NAME)
            if project_config.exists():
                settings._load_toml(project_config)
                logger.debug(f"Loaded project config from {project_config}")

        settings._load_env()
        return settings

    def _load_toml(self, path: Path) -> None:
        """Load settings from a TOML file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.error(f"Error loading config file {path}: {e}")
            return

        if "logging" in data:
            log = data["logging"]
            if "level" in log:
                self.log_level = str(log["level"]).upper()
            if "structured" in log:
                parsed = _try_parse_bool(log["structured"])
                if parsed is not None:
                    self.structured_logging = parsed

        if "rate_limit" in data:
            self._apply_rate_limit(data["rate_limit"], source=str(path))

        if "health" in data and "timeout" in data["health"]:
            timeout = _parse_float(data["health"]["timeout"], setting="health.timeout")
            if timeout is not None:
                self.health_check_timeout = timeout

        for raw_name, overrides in data.get("endpoints", {}).items():
            if not isinstance(overrides, dict):
                logger.warning("Ignoring endpoints.%s in %s: expected a table", raw_name, path)
                continue
            self._merge_endpoint(raw_name, overrides)

    def _apply_rate_limit(self, section: Dict[str, Any], *, source: str) -> None:
        if "ceiling" in section:
            ceiling = _parse_int(section["ceiling"], setting=f"{source}: rate_limit.ceiling", minimum=1)
            if ceiling is not None:
                self.rate_limit_ceiling = ceiling
        if "window" in section:
            window = _parse_float(section["window"], setting=f"{source}: rate_limit.window")
            if window is not None:
                self.rate_limit_window = window
        if "delay" in section:
            delay = _parse_float(section["delay"], setting=f"{source}: rate_limit.delay")
            if delay is not None:
                self.rate_limit_delay = delay

    def _merge_endpoint(self, raw_name: str, overrides: Dict[str, Any]) -> None:
        """Merge a partial endpoint table over the built-in or default entry."""
        name = normalize_endpoint_name(raw_name)
        current = self.endpoints.get(name) or get_endpoint_config(name, self.endpoints)
        changes: Dict[str, Any] = {}

        if "url" in overrides:
            changes["url"] = str(overrides["url"])
        for key, (kind, minimum) in _ENDPOINT_FIELDS.items():
            if key not in overrides:
                continue
            setting = f"endpoints.{name}.{key}"
            if kind == "int":
                value = _parse_int(overrides[key], setting=setting, minimum=int(minimum))
            else:
                value = _parse_float(overrides[key], setting=setting, minimum=minimum)
            if value is not None:
                changes[key] = value

        unknown = set(overrides) - set(_ENDPOINT_FIELDS) - {"url"}
        if unknown:
            logger.warning(
                "Ignoring unknown keys for endpoints.%s: %s", name, ", ".join(sorted(unknown))
            )

        self.endpoints[name] = replace(current, **changes)

    def _load_env(self) -> None:
        """Load settings from environment variables."""
        if level := os.environ.get(f"{_ENV_PREFIX}LOG_LEVEL"):
            self.log_level = level.upper()

        if structured := os.environ.get(f"{_ENV_PREFIX}STRUCTURED_LOGGING"):
            parsed = _try_parse_bool(structured)
            if parsed is not None:
                self.structured_logging = parsed

        env_rate_limit = {
            key: value
            for key, env_name in (
                ("ceiling", "RATE_LIMIT_CEILING"),
                ("window", "RATE_LIMIT_WINDOW"),
                ("delay", "RATE_LIMIT_DELAY"),
            )
            if (value := os.environ.get(f"{_ENV_PREFIX}{env_name}"))
        }
        if env_rate_limit:
            self._apply_rate_limit(env_rate_limit, source="environment")

        if timeout := os.environ.get(f"{_ENV_PREFIX}HEALTH_CHECK_TIMEOUT"):
            parsed_timeout = _parse_float(timeout, setting=f"{_ENV_PREFIX}HEALTH_CHECK_TIMEOUT")
            if parsed_timeout is not None:
                self.health_check_timeout = parsed_timeout

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        level = getattr(logging, self.log_level, logging.INFO)

        if self.structured_logging:
            # JSON-style structured logging
            formatter = logging.Formatter(
                '{"timestamp":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}'
            )
        else:
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        handler.set_name(_HANDLER_NAME)

        root_logger = logging.getLogger("research_resilience")
        root_logger.setLevel(level)
        # Repeated setup replaces our handler instead of stacking another
        for existing in list(root_logger.handlers):
            if existing.get_name() == _HANDLER_NAME:
                root_logger.removeHandler(existing)
        root_logger.addHandler(handler)


# Global settings instance
_settings: Optional[ResilienceSettings] = None


def get_settings() -> ResilienceSettings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = ResilienceSettings.from_env()
    return _settings


def set_settings(settings: Optional[ResilienceSettings]) -> None:
    """Set (or clear, with None) the global settings instance."""
    global _settings
    _settings = settings
