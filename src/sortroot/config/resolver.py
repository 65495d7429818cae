"""Layered configuration resolution: defaults < file < environment < CLI."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import SortRootConfig

ENV_PREFIX = "SORTROOT__"


def resolve_with_precedence(
    *,
    defaults: SortRootConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> SortRootConfig:
    """Apply each override layer on top of ``defaults`` and validate the result.

    Layers may use nested mappings, dotted keys (``"watch.debounce_seconds"``),
    or a mix of both. Each layer is validated as soon as it is applied so an
    invalid value is reported against the source that introduced it.

    Raises:
        ConfigError: If a layer is malformed or produces invalid settings.
    """

    data = defaults.model_dump(mode="python")
    config = defaults.model_copy(deep=True)
    for source, layer in (
        ("file", file_overrides),
        ("environment", env_overrides),
        ("cli", cli_overrides),
    ):
        if not layer:
            continue
        data = merge_layers(data, expand_dotted(layer, source=source))
        try:
            config = SortRootConfig.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration values from {source}: {exc}") from exc
    return config


def overrides_from_env(env: Mapping[str, str], *, prefix: str = ENV_PREFIX) -> dict[str, Any]:
    """Collect ``SORTROOT__SECTION__KEY`` variables into a nested mapping.

    Values are parsed as YAML so ``0``, ``false`` and ``[a, b]`` arrive with
    their natural types; unparsable values are kept as strings.
    """

    overrides: dict[str, Any] = {}
    for name, raw in env.items():
        if not name.startswith(prefix):
            continue
        path = [part.lower() for part in name[len(prefix) :].split("__") if part]
        if not path:
            continue
        try:
            value: Any = yaml.safe_load(raw)
        except yaml.YAMLError:
            value = raw
        set_dotted(overrides, path, value, source="environment")
    return overrides


def expand_dotted(layer: Mapping[str, Any], *, source: str) -> dict[str, Any]:
    """Turn dotted keys into nested mappings, recursing into mapping values."""
    if not isinstance(layer, MappingABC):
        raise ConfigError(f"{source.capitalize()} overrides must be a mapping.")

    expanded: dict[str, Any] = {}
    for key, value in layer.items():
        if not isinstance(key, str):
            raise ConfigError(f"{source.capitalize()} override keys must be strings.")
        if isinstance(value, MappingABC):
            value = expand_dotted(value, source=source)
        set_dotted(expanded, key.split("."), value, source=source)
    return expanded


def set_dotted(target: dict[str, Any], path: list[str], value: Any, *, source: str) -> None:
    """Assign ``value`` at ``path`` inside ``target``, creating mappings on the way.

    Raises:
        ConfigError: If an intermediate segment holds a non-mapping value.
    """

    node = target
    for segment in path[:-1]:
        child = node.get(segment)
        if child is None:
            child = node[segment] = {}
        elif not isinstance(child, dict):
            raise ConfigError(
                f"Cannot assign {'.'.join(path)} from {source}: '{segment}' is not a mapping."
            )
        node = child

    leaf = path[-1]
    current = node.get(leaf)
    if isinstance(value, MappingABC) and isinstance(current, MappingABC):
        node[leaf] = merge_layers(current, value)
    else:
        node[leaf] = value


def merge_layers(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``base`` deep-merged with ``overrides``; lists and scalars are replaced."""
    merged = deepcopy(dict(base))
    for key, value in overrides.items():
        if isinstance(value, MappingABC) and isinstance(merged.get(key), MappingABC):
            merged[key] = merge_layers(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


__all__ = [
    "ENV_PREFIX",
    "expand_dotted",
    "merge_layers",
    "overrides_from_env",
    "resolve_with_precedence",
    "set_dotted",
]
