"""Configuration loading & validation.

Precedence (last wins): base.yaml → overrides.local.yaml → ENV (DIALOG__*).

Each top-level section is validated by its own schema class
(`dialogcore.config.schemas.*`); unknown keys are rejected.
"""
from __future__ import annotations

import logging
import os
import pathlib
import threading
from functools import lru_cache
from typing import Any, Dict, Type

import yaml
from dialogcore import metrics
from dialogcore.errors import DialogError, validate_error_type
from pydantic import BaseModel, ConfigDict

from .schemas.dialog import DialogConfig
from .schemas.observability import LoggingConfig, MetricsConfig


class AggregatedConfig(BaseModel):
    schema_version: int = 1
    dialog: DialogConfig = DialogConfig()
    logging: LoggingConfig = LoggingConfig()
    metrics: MetricsConfig = MetricsConfig()

    model_config = ConfigDict(extra="forbid")


DEFAULT_CONFIG_DIR = "configs"
ENV_PREFIX = "DIALOG__"

SUB_SCHEMA_CLASSES: Dict[str, Type[BaseModel]] = {
    "dialog": DialogConfig,
    "logging": LoggingConfig,
    "metrics": MetricsConfig,
}

# Values <= 0 fall back to these defaults instead of failing validation.
_NON_POSITIVE_DEFAULTS: Dict[str, float] = {
    "history_window": 10,
    "sweep_interval_s": 3600.0,
    "retention_s": 86400.0,
}

_log = logging.getLogger("dialog.config")


class ConfigError(DialogError):
    code = "config-invalid"


def _load_yaml_if_exists(path: pathlib.Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path.name}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path.name} must contain a mapping at top level")
    return data


def _merge_dict(
    base: Dict[str, Any], override: Dict[str, Any]
) -> Dict[str, Any]:
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            base[k] = _merge_dict(base[k], v)
        else:
            base[k] = v
    return base


def _cast_env_value(value: str) -> Any:
    if value.lower() in {"true", "false"}:
        return value.lower() == "true"
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    if "," in value:
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


def _apply_env(cfg: Dict[str, Any]) -> None:
    prefix_len = len(ENV_PREFIX)
    for env_key, value in os.environ.items():
        if not env_key.startswith(ENV_PREFIX):
            continue
        path_parts = env_key[prefix_len:].lower().split("__")
        target = cfg
        for part in path_parts[:-1]:
            if part not in target or not isinstance(target[part], dict):
                target[part] = {}
            target = target[part]
        target[path_parts[-1]] = _cast_env_value(value)
        dotted_path = ".".join(path_parts)
        metrics.inc("env_override_total", {"path": dotted_path})
        _log.info("config env override path=%s value=***", dotted_path)


_lock = threading.Lock()


def _resolve_config_dir() -> pathlib.Path:
    """Resolve config directory each call honoring env var changes."""
    return pathlib.Path(os.getenv("DIALOG_CONFIG_DIR", DEFAULT_CONFIG_DIR))


def _normalize_and_validate(raw: Dict[str, Any]) -> None:
    """Apply cross-field normalizations and bounds validation.

    Normalizations:
      - dialog.history_window / sweep_interval_s / retention_s: <= 0 → default
    Validations (error → raise):
      - dialog.attempt_timeout_ms >= 0
      - dialog.max_response_tokens > 0
      - dialog.prompt_max_tokens > 0
    """
    dialog = raw.get("dialog")
    if not isinstance(dialog, dict):
        return
    for key, default in _NON_POSITIVE_DEFAULTS.items():
        val = dialog.get(key)
        if isinstance(val, (int, float)) and val <= 0:
            dialog[key] = default

    errors: list[tuple[str, str, str]] = []  # (path, code, msg)
    timeout = dialog.get("attempt_timeout_ms")
    if isinstance(timeout, (int, float)) and timeout < 0:
        errors.append(
            ("dialog.attempt_timeout_ms", "config-out-of-range", ">=0 required")
        )
    for key in ("max_response_tokens", "prompt_max_tokens"):
        val = dialog.get(key)
        if isinstance(val, (int, float)) and val <= 0:
            errors.append(
                (f"dialog.{key}", "config-out-of-range", ">0 required")
            )

    if errors:
        for path, code, _ in errors:
            metrics.inc(
                "config_validation_errors_total",
                {"path": path, "code": validate_error_type(code)},
            )
        details = ", ".join(f"{p}:{c}:{m}" for p, c, m in errors)
        raise ConfigError(f"config validation failed: {details}")


def build_config(raw: Dict[str, Any]) -> AggregatedConfig:
    """Validate an already merged raw mapping into AggregatedConfig."""
    data = dict(raw)
    data.setdefault("schema_version", 1)
    _normalize_and_validate(data)
    unknown = set(data) - set(SUB_SCHEMA_CLASSES) - {"schema_version"}
    if unknown:
        raise ConfigError(f"Unknown config sections: {sorted(unknown)}")
    validated: Dict[str, Any] = {"schema_version": data["schema_version"]}
    for name, cls in SUB_SCHEMA_CLASSES.items():
        if name in data:
            try:
                validated[name] = cls.model_validate(data[name] or {})
            except Exception as e:  # noqa: BLE001
                raise ConfigError(
                    f"Validation failed for section '{name}': {e}"
                ) from e
    return AggregatedConfig(**validated)


def validate_dialog_config(cfg: DialogConfig) -> None:
    """Cross-field checks for an enabled dialog system.

    Rules:
      - an enabled system needs a default backend
      - confidence_threshold within [0, 1]
      - attempt_timeout_ms non-negative
    A disabled system is accepted as-is.
    """
    if not cfg.enabled:
        return
    if not cfg.default_backend:
        raise ConfigError("dialog.default_backend is required when enabled")
    if not 0.0 <= cfg.confidence_threshold <= 1.0:
        raise ConfigError("dialog.confidence_threshold must be in [0, 1]")
    if cfg.attempt_timeout_ms < 0:
        raise ConfigError("dialog.attempt_timeout_ms must be >= 0")


@lru_cache(maxsize=1)
def get_config() -> AggregatedConfig:  # noqa: D401
    with _lock:
        cfg_dir = _resolve_config_dir()
        base_cfg = _load_yaml_if_exists(cfg_dir / "base.yaml")
        overrides_cfg = _load_yaml_if_exists(cfg_dir / "overrides.local.yaml")
        merged = _merge_dict(base_cfg, overrides_cfg)
        _apply_env(merged)
        return build_config(merged)


def clear_config_cache() -> None:
    """Clear cached config (primarily for tests)."""
    get_config.cache_clear()


def as_dict() -> Dict[str, Any]:
    return get_config().model_dump()
