"""Strict loader for the syncback runtime configuration.

What:
  Locate, parse, validate and cache ``config.yaml``.

Why:
  Configuration lives outside the package and may be malformed. Centralising
  discovery and validation means every worker, CLI invocation, and IMAP client
  sees the same validated model.

How:
  Resolve candidate paths from an explicit argument, the
  ``SYNCBACK_CONFIG_PATH`` environment variable, and well-known defaults. Parse
  YAML with ``yaml.safe_load`` and validate with
  :meth:`RuntimeConfig.model_validate`. The first successful result is cached
  until :func:`reset_runtime_config` or ``reload=True``.

Interfaces:
  :func:`load_runtime_config`, :func:`get_runtime_config`,
  :func:`reset_runtime_config`, :class:`RuntimeConfigError`.

Invariants:
  - Payloads never reach callers without passing strict Pydantic validation.
  - File and parsing failures surface as :class:`RuntimeConfigError` carrying
    the offending path.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Iterable, Optional, Tuple

import yaml
from pydantic import ValidationError as _PydanticValidationError

from ..errors import ConfigurationError
from .schema import RuntimeConfig


class RuntimeConfigError(ConfigurationError):
    """Raised when ``config.yaml`` cannot be located, read, or validated."""


_CONFIG_ENV = "SYNCBACK_CONFIG_PATH"
_DEFAULT_LOCATIONS: Tuple[Path, ...] = (
    Path("config.yaml"),
    Path("/etc/syncback/config.yaml"),
)
_RUNTIME_CACHE: Optional[Tuple[Path, RuntimeConfig]] = None


def _candidate_paths(path: Optional[Path]) -> Iterable[Path]:
    """Yield configuration file locations in priority order.

    Args:
      path: Explicit path requested by the caller, or ``None`` to rely on the
        environment and defaults.

    Yields:
      Deduplicated candidate paths ordered from most to least specific.
    """

    seen: set[Path] = set()
    candidates = []
    if path is not None:
        candidates.append(path)
    env_path = os.environ.get(_CONFIG_ENV)
    if env_path:
        candidates.append(Path(env_path))
    candidates.extend(_DEFAULT_LOCATIONS)
    for candidate in candidates:
        candidate = candidate.expanduser()
        if candidate not in seen:
            seen.add(candidate)
            yield candidate


def _parse_config_payload(text: str, source: Path) -> dict[str, Any]:
    try:
        payload = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise RuntimeConfigError(f"Invalid YAML in {source}: {exc}") from exc
    if not isinstance(payload, dict):
        raise RuntimeConfigError("config.yaml must contain a mapping at the top-level")
    return payload


def _load_runtime_from_path(path: Path) -> RuntimeConfig:
    try:
        text = path.read_text()
    except FileNotFoundError as exc:
        raise RuntimeConfigError(f"Configuration file missing: {path}") from exc
    except OSError as exc:  # pragma: no cover - filesystem surface
        raise RuntimeConfigError(f"Unable to read configuration file {path}: {exc}") from exc
    payload = _parse_config_payload(text, path)
    try:
        return RuntimeConfig.model_validate(payload)
    except _PydanticValidationError as exc:
        raise RuntimeConfigError(f"Invalid config.yaml: {exc}") from exc


def load_runtime_config(
    path: Optional[Path | str] = None,
    *,
    reload: bool = False,
) -> RuntimeConfig:
    """Resolve, parse, and cache the runtime configuration.

    What:
      Locate ``config.yaml`` using the precedence chain and return the
      validated :class:`RuntimeConfig`.

    How:
      Consult the cache unless ``reload`` is requested or a different explicit
      path is given, then walk candidate paths until one exists.

    Args:
      path: Optional explicit location of ``config.yaml``.
      reload: Force a fresh load bypassing the cache.

    Raises:
      RuntimeConfigError: If no candidate exists or the file fails validation.
    """

    global _RUNTIME_CACHE

    requested_path = Path(path).expanduser() if isinstance(path, (str, Path)) else None
    if not reload and _RUNTIME_CACHE is not None:
        cached_path, cached_config = _RUNTIME_CACHE
        if requested_path is None or cached_path == requested_path:
            return cached_config

    searched: list[str] = []
    for candidate in _candidate_paths(requested_path):
        if not candidate.exists():
            searched.append(str(candidate))
            continue
        config = _load_runtime_from_path(candidate)
        _RUNTIME_CACHE = (candidate, config)
        return config

    raise RuntimeConfigError(
        f"Unable to locate config.yaml (searched: {', '.join(searched) or '<none>'})"
    )


def get_runtime_config() -> RuntimeConfig:
    """Return the cached runtime configuration, loading it on demand."""

    return load_runtime_config()


def reset_runtime_config() -> None:
    """Clear the runtime configuration cache."""

    global _RUNTIME_CACHE
    _RUNTIME_CACHE = None
