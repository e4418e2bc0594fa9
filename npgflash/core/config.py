"""Configuration loading and validation for npgflash."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from npgflash.core.errors import ConfigError
from npgflash.core.model import FirmwareKind

LOGGER = logging.getLogger(__name__)

CONFIG_ENV = "NPGFLASH_CONFIG"
_NESTED_KEYS = ("builtin_firmware", "flasher")


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class EsptoolSettings:
    chip: str = "esp32c6"
    baud: int = 921600
    address: int = 0x10000
    connect_attempts: int = 3


@dataclass(frozen=True)
class FlasherConfig:
    poll_interval_s: float
    discovery_timeout_s: float
    download_timeout_s: float
    release_repository: str | None
    firmware_extensions: tuple[str, ...]
    storage_dir: Path
    builtin_firmware: dict[FirmwareKind, Path]
    flasher: EsptoolSettings = field(default_factory=EsptoolSettings)
    source: Path | None = None
    warnings: tuple[str, ...] = ()


def _load_schema_validator() -> Any:
    schema_text = resources.files("npgflash.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at root")
    return loaded


def _validate(doc: dict[str, Any], source: Path | Traversable) -> None:
    try:
        _load_schema_validator().validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigError(f"Schema validation failed for {source}{where}: {exc.message}") from exc


def user_config_path() -> Path:
    explicit = os.environ.get(CONFIG_ENV)
    if explicit:
        return Path(explicit).expanduser()
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "npgflash/config.yaml"


def default_storage_dir() -> Path:
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return xdg_data / "npgflash/firmware"


def packaged_firmware_dir() -> Path:
    return Path(str(resources.files("npgflash.firmware")))


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if key in _NESTED_KEYS and isinstance(value, dict):
            merged[key] = {**base.get(key, {}), **value}
        else:
            merged[key] = value
    return merged


def load_config(path: Path | None = None) -> FlasherConfig:
    """Load packaged defaults, then overlay the user config file if present.

    An explicit `path` must exist; the implicit XDG location is optional.
    """
    defaults_path = resources.files("npgflash.defaults").joinpath("config.yaml")
    doc = _read_yaml(defaults_path)
    _validate(doc, defaults_path)

    warnings: list[str] = []
    source: Path | None = None
    user_path = path or user_config_path()
    if path is not None and not path.exists():
        raise ConfigError(f"Config file {path} does not exist")
    if user_path.is_file():
        user_doc = _read_yaml(user_path)
        _validate(user_doc, user_path)
        for key in sorted(set(user_doc) & {"storage_dir", "builtin_dir"}):
            value = user_doc[key]
            if value is not None and not Path(value).expanduser().is_absolute():
                warning = f"'{key}' in {user_path} is relative and resolves against {Path.cwd()}"
                LOGGER.warning(warning)
                warnings.append(warning)
        doc = _merge(doc, user_doc)
        source = user_path

    return _build_config(doc, source=source, warnings=tuple(warnings))


def _build_config(doc: dict[str, Any], *, source: Path | None, warnings: tuple[str, ...]) -> FlasherConfig:
    builtin_dir = Path(doc["builtin_dir"]).expanduser() if doc.get("builtin_dir") else packaged_firmware_dir()
    storage_dir = Path(doc["storage_dir"]).expanduser() if doc.get("storage_dir") else default_storage_dir()
    builtins = {
        FirmwareKind(kind): builtin_dir / filename
        for kind, filename in doc["builtin_firmware"].items()
    }
    missing = [kind.value for kind in FirmwareKind if kind not in builtins]
    if missing:
        raise ConfigError(f"No built-in firmware configured for: {', '.join(missing)}")

    return FlasherConfig(
        poll_interval_s=float(doc["poll_interval_s"]),
        discovery_timeout_s=float(doc["discovery_timeout_s"]),
        download_timeout_s=float(doc["download_timeout_s"]),
        release_repository=doc.get("release_repository"),
        firmware_extensions=tuple(ext.lower() for ext in doc["firmware_extensions"]),
        storage_dir=storage_dir,
        builtin_firmware=builtins,
        flasher=EsptoolSettings(**doc["flasher"]),
        source=source,
        warnings=warnings,
    )
