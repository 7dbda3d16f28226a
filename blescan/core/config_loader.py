"""Configuration loading and validation for YAML-based blescan settings."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from blescan.core.errors import ConfigLoadError, ConfigValidationError

_BLUETOOTH_BASE_UUID_SUFFIX = "-0000-1000-8000-00805f9b34fb"
_UUID_RE = re.compile(r"^[0-9a-f]{4}$|^[0-9a-f]{8}$|^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")
CONFIG_ENV_VAR = "BLESCAN_CONFIG"
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class ScanConfig:
    scan_timeout_s: float = 5.0
    service_uuids: tuple[str, ...] = ()
    connect_timeout_s: float = 10.0
    settle_s: float = 1.0
    adapter: str | None = None
    log_level: str = "WARNING"


@dataclass(frozen=True)
class LoadedConfig:
    config: ScanConfig
    sources: tuple[str, ...]
    warnings: tuple[str, ...]


def _load_schema_validator() -> Any:
    schema_text = resources.files("blescan.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def user_config_path() -> Path:
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        return Path(explicit)
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "blescan/config.yaml"


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigValidationError(f"Config file {path} must contain a mapping at root")
    return loaded


def _validate(doc: dict[str, Any], source: Path | Traversable) -> None:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc


def _normalize_uuid(value: str, *, context: str) -> str:
    normalized = value.strip().lower()
    if not _UUID_RE.match(normalized):
        raise ConfigValidationError(
            f"{context} must be a 16-bit, 32-bit, or 128-bit UUID string"
        )
    if len(normalized) == 4:
        return f"0000{normalized}{_BLUETOOTH_BASE_UUID_SUFFIX}"
    if len(normalized) == 8:
        return f"{normalized}{_BLUETOOTH_BASE_UUID_SUFFIX}"
    return normalized


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _build_config(doc: dict[str, Any], warnings: list[str]) -> ScanConfig:
    scan = doc.get("scan", {})
    connect = doc.get("connect", {})

    service_uuids: list[str] = []
    for index, raw in enumerate(scan.get("service_uuids", [])):
        uuid = _normalize_uuid(raw, context=f"scan.service_uuids[{index}]")
        if uuid in service_uuids:
            warning = f"Duplicate service UUID '{uuid}' in scan.service_uuids ignored"
            LOGGER.warning(warning)
            warnings.append(warning)
            continue
        service_uuids.append(uuid)

    return ScanConfig(
        scan_timeout_s=float(scan.get("timeout_s", 5.0)),
        service_uuids=tuple(service_uuids),
        connect_timeout_s=float(connect.get("timeout_s", 10.0)),
        settle_s=float(connect.get("settle_s", 1.0)),
        adapter=doc.get("adapter"),
        log_level=doc.get("log_level", "WARNING"),
    )


def normalize_uuids(values: list[str] | tuple[str, ...]) -> tuple[str, ...]:
    """Validate UUID strings and expand 16/32-bit forms to 128-bit."""
    return tuple(_normalize_uuid(value, context=f"UUID '{value}'") for value in values)


def load_config() -> LoadedConfig:
    packaged = resources.files("blescan.defaults").joinpath("config.yaml")
    doc = _read_yaml(packaged)
    _validate(doc, packaged)
    sources = [str(packaged)]

    user_path = user_config_path()
    if user_path.is_file():
        user_doc = _read_yaml(user_path)
        _validate(user_doc, user_path)
        doc = _merge(doc, user_doc)
        sources.append(str(user_path))
    elif os.environ.get(CONFIG_ENV_VAR):
        raise ConfigLoadError(f"Config file {user_path} named by {CONFIG_ENV_VAR} does not exist")

    warnings: list[str] = []
    config = _build_config(doc, warnings)
    return LoadedConfig(config=config, sources=tuple(sources), warnings=tuple(warnings))
