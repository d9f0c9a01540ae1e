"""Configuration management for Screenshot Annotator.

Configuration priority (highest to lowest):
1. CLI overrides (passed to load_config)
2. Environment variables (SCREENSHOT_ANNOTATOR_<KEY>)
3. Config file (~/.config/screenshot-annotator/config.yaml)
4. Built-in defaults

Defaults, the JSON schema and the env var names are all derived from the
Config dataclass, so adding a field there is enough to expose it.
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml
from platformdirs import user_cache_dir, user_config_dir

log = logging.getLogger(__name__)

APP_NAME = "screenshot-annotator"
ENV_PREFIX = "SCREENSHOT_ANNOTATOR"
CONFIG_DIR = Path(user_config_dir(APP_NAME))
DEFAULT_CONFIG_PATH = CONFIG_DIR / "config.yaml"

EXPORT_FORMATS = {"png", "jpg", "jpeg", "webp"}
BROWSERS = {"chrome", "firefox"}
TRUE_STRINGS = ("true", "1", "yes", "on")


@dataclass
class Config:
    """Screenshot annotator configuration."""

    # Capture backends
    wayland_capture: str = "wayland-capture"
    browser: str = "chrome"
    headless: bool = False
    window_width: int = 1280
    window_height: int = 1000

    # Scroll capture pacing (must stay above the snapshot rate limit)
    settle_delay_ms: int = 1000

    # Output settings
    cache_dir: Path = field(default_factory=lambda: Path(user_cache_dir(APP_NAME)))
    output_dir: Path = field(default_factory=lambda: Path.home() / "Pictures" / "screenshots")
    export_format: str = "jpg"
    export_quality: int = 90

    # Editor defaults
    stroke_color: str = "#ef4444"
    stroke_width: int = 4
    font_size: int = 24
    font_family: str = "sans-serif"

    # Behavior
    enable_clipboard: bool = True
    enable_notification: bool = True

    def __post_init__(self):
        for key in PATH_KEYS:
            value = getattr(self, key)
            if isinstance(value, str):
                setattr(self, key, Path(value))

    @property
    def pending_image_file(self) -> Path:
        return self.cache_dir / "pending.png"


PATH_KEYS = ("cache_dir", "output_dir")

CHOICES = {
    "browser": BROWSERS,
    "export_format": EXPORT_FORMATS,
}

LIMITS = {
    "window_width": {"minimum": 1},
    "window_height": {"minimum": 1},
    "settle_delay_ms": {"minimum": 0},
    "export_quality": {"minimum": 1, "maximum": 100},
    "stroke_width": {"minimum": 1},
    "font_size": {"minimum": 1},
}


def _json_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    return "string"


def config_to_dict(config: Config) -> dict:
    """Plain, JSON-serializable view of a Config."""
    result = {}
    for f in fields(config):
        value = getattr(config, f.name)
        result[f.name] = str(value) if isinstance(value, Path) else value
    return result


def config_defaults() -> dict:
    return config_to_dict(Config())


def config_schema() -> dict:
    properties = {}
    for key, value in config_defaults().items():
        prop: dict[str, Any] = {"type": _json_type(value)}
        if key in CHOICES:
            prop["enum"] = sorted(CHOICES[key])
        prop.update(LIMITS.get(key, {}))
        properties[key] = prop

    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "type": "object",
        "properties": properties,
        "additionalProperties": False,
    }


def _env(name: str) -> Optional[str]:
    return os.environ.get(f"{ENV_PREFIX}_{name}")


def _config_path_from_env() -> Optional[Path]:
    value = _env("CONFIG") or _env("CONFIG_PATH")
    return Path(value).expanduser() if value else None


def _read_config_file(path: Path, strict: bool = False) -> dict:
    """Parse a YAML config file. Unreadable files count as empty unless strict."""
    if not path.exists():
        return {}

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except (OSError, yaml.YAMLError) as exc:
        if strict:
            raise ValueError(f"Failed to parse config file {path}: {exc}")
        log.warning("Ignoring unreadable config file %s: %s", path, exc)
        return {}

    if isinstance(data, dict):
        return data
    if strict:
        raise ValueError(f"Config file {path} must be a mapping")
    log.warning("Ignoring config file %s: not a mapping", path)
    return {}


def _expand_path(value: Any) -> Any:
    return value if value is None else str(Path(value).expanduser())


def _env_overrides() -> dict:
    """Values from SCREENSHOT_ANNOTATOR_<KEY>, converted to each key's type."""
    overrides: dict[str, Any] = {}
    for key, prop in config_schema()["properties"].items():
        raw = _env(key.upper())
        if raw is None:
            continue

        kind = prop["type"]
        if kind == "integer":
            try:
                overrides[key] = int(raw)
            except ValueError:
                log.warning("Ignoring %s_%s=%r: not an integer", ENV_PREFIX, key.upper(), raw)
        elif kind == "boolean":
            overrides[key] = raw.lower() in TRUE_STRINGS
        else:
            overrides[key] = raw

    return overrides


def resolve_config_path(config_path: Optional[Path] = None) -> Path:
    return config_path or _config_path_from_env() or DEFAULT_CONFIG_PATH


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[dict] = None,
    strict: bool = False,
) -> Config:
    """Merge defaults, config file, environment and explicit overrides."""
    merged = config_defaults()
    merged.update(_read_config_file(resolve_config_path(config_path), strict=strict))
    merged.update(_env_overrides())
    merged.update({k: v for k, v in (overrides or {}).items() if v is not None})

    for key in PATH_KEYS:
        merged[key] = _expand_path(merged.get(key))

    return Config(**merged)


_config: Optional[Config] = None


def get_config() -> Config:
    """Process-wide configuration, loaded on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def _check_value(key: str, value: Any, prop: dict) -> Optional[str]:
    kind = prop["type"]
    if kind == "string" and not isinstance(value, str):
        return f"{key} must be a string"
    if kind == "integer" and (not isinstance(value, int) or isinstance(value, bool)):
        return f"{key} must be an integer"
    if kind == "boolean" and not isinstance(value, bool):
        return f"{key} must be a boolean"

    if "enum" in prop and value not in prop["enum"]:
        return f"{key} must be one of: {', '.join(prop['enum'])}"
    if "minimum" in prop and value < prop["minimum"]:
        return f"{key} must be >= {prop['minimum']}"
    if "maximum" in prop and value > prop["maximum"]:
        return f"{key} must be <= {prop['maximum']}"
    return None


def validate_config_dict(data: Any) -> list[str]:
    if not isinstance(data, dict):
        return ["Config must be a mapping/object"]

    props = config_schema()["properties"]
    errors = [f"Unknown config key: {key}" for key in data if key not in props]
    for key, value in data.items():
        if key in props:
            error = _check_value(key, value, props[key])
            if error:
                errors.append(error)
    return errors


def validate_config_file(config_path: Optional[Path] = None) -> list[str]:
    path = resolve_config_path(config_path)
    if not path.exists():
        return []
    return validate_config_dict(_read_config_file(path, strict=True))
