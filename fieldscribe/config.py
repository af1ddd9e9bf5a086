"""Configuration for fieldscribe.

Priority (lowest to highest):
1. Dataclass defaults
2. ``<data dir>/config.json`` (or an explicit path)
3. Environment variables (``FIELDSCRIBE_*``)

The data dir is ``FIELDSCRIBE_DATA_DIR`` when set, else ``~/.fieldscribe``.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlparse

from fieldscribe.protocols import ConfigError

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}

_ENV_KEYS = {
    "semantic_mapping_enabled": "FIELDSCRIBE_SEMANTIC_MAPPING",
    "matcher_url": "FIELDSCRIBE_MATCHER_URL",
    "matcher_api_key": "FIELDSCRIBE_MATCHER_API_KEY",
    "matcher_timeout": "FIELDSCRIBE_MATCHER_TIMEOUT",
    "max_depth": "FIELDSCRIBE_MAX_DEPTH",
    "profile": "FIELDSCRIBE_PROFILE",
    "log_level": "FIELDSCRIBE_LOG_LEVEL",
}


def get_data_dir(env: Optional[Mapping[str, str]] = None) -> Path:
    """Directory for config and logs."""
    env = os.environ if env is None else env
    override = env.get("FIELDSCRIBE_DATA_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".fieldscribe"


LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})


def validate_matcher_url(url: str) -> Optional[str]:
    """Normalize a semantic matcher base URL, or reject it.

    The matcher appends ``/suggest`` to the base and may send an API key, so
    only a plain base URL is accepted: anything after the path is refused.
    Plain http is accepted only for loopback hosts.

    Returns:
        The base URL with surrounding whitespace and trailing slashes
        removed, or ``None`` (with a warning) when rejected.
    """
    text = str(url or "").strip()
    if not text:
        return None
    parsed = urlparse(text)
    if parsed.scheme not in {"https", "http"} or not parsed.hostname:
        logger.warning("Invalid matcher_url %r; expected http(s)://host[/path].", text)
        return None
    if parsed.query or parsed.fragment or parsed.username or parsed.password:
        logger.warning("matcher_url must be a plain base URL, got %r.", text)
        return None
    if parsed.scheme == "http" and parsed.hostname not in LOCAL_HOSTS:
        logger.warning("Refusing non-local http matcher_url %r.", text)
        return None
    return text.rstrip("/")


def _parse_bool(name: str, raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    text = str(raw).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def _parse_int(name: str, raw: Any, minimum: int = 1) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _parse_float(name: str, raw: Any) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


@dataclass
class FieldscribeConfig:
    """Settings threaded into resolvers and the aggregator."""

    semantic_mapping_enabled: bool = False
    matcher_url: Optional[str] = None
    matcher_api_key: Optional[str] = None
    matcher_timeout: float = 5.0
    max_depth: int = 6
    profile: Optional[str] = None
    log_level: str = "INFO"

    def to_dict(self, *, redact: bool = True) -> Dict[str, Any]:
        data = asdict(self)
        if redact and data.get("matcher_api_key"):
            data["matcher_api_key"] = "***"
        return data

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "FieldscribeConfig":
        """Build a config from raw values (file or environment strings).

        Unknown keys are ignored with a debug log.
        """
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, raw in data.items():
            if key not in known:
                logger.debug("Ignoring unknown config key %r", key)
                continue
            if raw is None:
                values[key] = None
            elif key == "semantic_mapping_enabled":
                values[key] = _parse_bool(key, raw)
            elif key == "max_depth":
                values[key] = _parse_int(key, raw)
            elif key == "matcher_timeout":
                values[key] = _parse_float(key, raw)
            elif key == "log_level":
                values[key] = str(raw).upper()
            elif key == "profile":
                values[key] = str(raw).strip().lower() or None
            else:
                values[key] = str(raw).strip() or None
        return cls(**values)


def _read_config_file(path: Path) -> Dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a JSON object")
    return data


def load_config(
    path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> FieldscribeConfig:
    """Load configuration from file and environment.

    Args:
        path: Explicit config file. Must exist when given. Defaults to
            ``<data dir>/config.json``, which is optional.
        env: Environment mapping (defaults to ``os.environ``).

    Raises:
        ConfigError: If the file is unreadable or a value is invalid.
    """
    env = os.environ if env is None else env
    merged: Dict[str, Any] = {}

    config_path = Path(path) if path is not None else get_data_dir(env) / "config.json"
    if path is not None or config_path.exists():
        merged.update(_read_config_file(config_path))

    for key, env_name in _ENV_KEYS.items():
        raw = env.get(env_name)
        if raw is not None and raw != "":
            merged[key] = raw

    config = FieldscribeConfig.from_mapping(merged)
    if config.matcher_url:
        validated = validate_matcher_url(config.matcher_url)
        if not validated:
            raise ConfigError(f"Refusing matcher_url {config.matcher_url!r}")
        config.matcher_url = validated
    return config
