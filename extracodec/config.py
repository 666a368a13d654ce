"""Configuration loading for extracodec (.extracodec.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".extracodec.yml"

DEFAULT_INCLUDE = ("**/*.py",)
DEFAULT_OUTPUT_FOLDER = "generated/router"
DEFAULT_OUTPUT_FILENAME = "router_extra_codec.py"
DEFAULT_CODEC_CLASS_NAME = "RouterExtraCodec"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class GenerateForConfig:
    """Include/exclude globs selecting the files to scan."""

    include: List[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE))
    exclude: List[str] = field(default_factory=list)


@dataclass
class MarkerConfig:
    """Decorator names treated as markers."""

    encodable: str = "page_extra"
    serializer: str = "extra_encoder"
    deserializer: str = "extra_decoder"


@dataclass
class ContractConfig:
    """Names and type prefixes the contract validator checks for."""

    serialize_method: str = "to_json"
    deserialize_constructor: str = "from_json"
    map_type_names: List[str] = field(default_factory=lambda: ["dict", "Dict", "Mapping"])


@dataclass
class CodecConfig:
    """Represents the settings defined in .extracodec.yml."""

    root: Path
    generate_for: GenerateForConfig = field(default_factory=GenerateForConfig)
    source_root: str = "."
    output_folder: str = DEFAULT_OUTPUT_FOLDER
    output_filename: str = DEFAULT_OUTPUT_FILENAME
    codec_class_name: str = DEFAULT_CODEC_CLASS_NAME
    markers: MarkerConfig = field(default_factory=MarkerConfig)
    contract: ContractConfig = field(default_factory=ContractConfig)
    workers: int = 1

    @property
    def output_path(self) -> Path:
        return self.root / self.output_folder / self.output_filename

    @property
    def source_root_path(self) -> Path:
        return (self.root / self.source_root).resolve()

    def with_overrides(
        self,
        *,
        include: Sequence[str] | None = None,
        exclude: Sequence[str] | None = None,
        output_folder: str | None = None,
        output_filename: str | None = None,
        codec_class_name: str | None = None,
    ) -> "CodecConfig":
        """Return a copy with CLI-supplied values taking precedence."""
        generate_for = GenerateForConfig(
            include=list(include) if include else list(self.generate_for.include),
            exclude=list(exclude) if exclude else list(self.generate_for.exclude),
        )
        updated = replace(
            self,
            generate_for=generate_for,
            output_folder=output_folder or self.output_folder,
            output_filename=output_filename or self.output_filename,
            codec_class_name=codec_class_name or self.codec_class_name,
        )
        _validate(updated)
        return updated


def load_config(config_path: Path) -> CodecConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return CodecConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    generate_for = GenerateForConfig()
    generate_data = _as_dict(data.get("generate_for"))
    if generate_data:
        include = _as_str_list(generate_data.get("include"))
        if include:
            generate_for.include = include
        generate_for.exclude = _as_str_list(generate_data.get("exclude"))

    markers = MarkerConfig()
    marker_data = _as_dict(data.get("markers"))
    if marker_data:
        markers = MarkerConfig(
            encodable=_as_str(marker_data.get("encodable")) or markers.encodable,
            serializer=_as_str(marker_data.get("serializer")) or markers.serializer,
            deserializer=_as_str(marker_data.get("deserializer")) or markers.deserializer,
        )

    contract = ContractConfig()
    contract_data = _as_dict(data.get("contract"))
    if contract_data:
        contract.serialize_method = (
            _as_str(contract_data.get("serialize_method")) or contract.serialize_method
        )
        contract.deserialize_constructor = (
            _as_str(contract_data.get("deserialize_constructor")) or contract.deserialize_constructor
        )
        map_names = _as_str_list(contract_data.get("map_type_names"))
        if map_names:
            contract.map_type_names = map_names

    workers = _as_int(data.get("workers"))
    if workers is not None and workers < 1:
        raise ConfigError("workers must be a positive integer")

    config = CodecConfig(
        root=root,
        generate_for=generate_for,
        source_root=_as_str(data.get("source_root")) or ".",
        output_folder=_as_str(data.get("output_folder")) or DEFAULT_OUTPUT_FOLDER,
        output_filename=_as_str(data.get("output_filename")) or DEFAULT_OUTPUT_FILENAME,
        codec_class_name=_as_str(data.get("codec_class_name")) or DEFAULT_CODEC_CLASS_NAME,
        markers=markers,
        contract=contract,
        workers=workers or 1,
    )
    _validate(config)
    return config


def _validate(config: CodecConfig) -> None:
    identifiers = {
        "codec_class_name": config.codec_class_name,
        "markers.encodable": config.markers.encodable,
        "markers.serializer": config.markers.serializer,
        "markers.deserializer": config.markers.deserializer,
        "contract.serialize_method": config.contract.serialize_method,
        "contract.deserialize_constructor": config.contract.deserialize_constructor,
    }
    for key, value in identifiers.items():
        if not value.isidentifier():
            raise ConfigError(f"{key} must be a valid Python identifier, got {value!r}")
    if not config.output_filename.endswith(".py"):
        raise ConfigError(f"output_filename must end with .py, got {config.output_filename!r}")
    for key in ("include", "exclude"):
        for pattern in getattr(config.generate_for, key):
            if not pattern or Path(pattern).is_absolute():
                raise ConfigError(f"{key} patterns must be relative globs, got {pattern!r}")


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "CodecConfig",
    "ConfigError",
    "ContractConfig",
    "GenerateForConfig",
    "MarkerConfig",
    "load_config",
]
