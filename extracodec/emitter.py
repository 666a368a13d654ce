"""Renders the aggregated registry into the generated codec module."""

from __future__ import annotations

import json
import os
import re
import stat
import tempfile
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from jinja2 import Environment, FileSystemLoader

from .config import DEFAULT_CODEC_CLASS_NAME
from .logging import get_logger
from .models import AggregationResult

GENERATOR_NAME = "ExtraCodecGenerator"
HEADER_LINE = "# GENERATED CODE - DO NOT MODIFY BY HAND"

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


class ArtifactWriteError(RuntimeError):
    """Raised when the generated module cannot be persisted."""


def instance_name_for(codec_class_name: str) -> str:
    """Return the module-level codec instance name, e.g. ``generated_router_extra_codec``."""
    return f"generated_{_CAMEL_BOUNDARY.sub('_', codec_class_name).lower()}"


class RegistryEmitter:
    """Deterministically renders and writes the codec module."""

    TEMPLATE_NAME = "codec.py.j2"

    def __init__(self, templates_dir: Path | None = None) -> None:
        self.templates_dir = templates_dir
        self._env = self._create_env(templates_dir)
        self.logger = get_logger("emitter")

    def render(
        self,
        result: AggregationResult,
        *,
        codec_class_name: str = DEFAULT_CODEC_CLASS_NAME,
        generated_at: datetime,
        deserialize_constructor: str = "from_json",
    ) -> str:
        if result.is_empty:
            raise ValueError("Refusing to render a registry with zero entries")

        candidates = sorted(result.candidates, key=lambda candidate: (candidate.name, candidate.module))
        imports = sorted({candidate.module for candidate in candidates})
        override_imports: List[str] = sorted(
            {
                binding.module
                for binding in (result.serializer, result.deserializer)
                if binding is not None and binding.module and binding.module not in imports
            }
        )
        self._warn_duplicate_keys([candidate.registry_key for candidate in candidates])

        template = self._env.get_template(self.TEMPLATE_NAME)
        rendered = template.render(
            generator=GENERATOR_NAME,
            header_line=HEADER_LINE,
            generated_at=_format_timestamp(generated_at),
            imports=imports,
            override_imports=override_imports,
            codec_class_name=codec_class_name,
            instance_name=instance_name_for(codec_class_name),
            serializer=result.serializer,
            deserializer=result.deserializer,
            candidates=candidates,
            deserialize_constructor=deserialize_constructor,
        )
        return rendered.rstrip() + "\n"

    def write(self, path: Path, text: str) -> bool:
        """Persist ``text`` at ``path`` all-or-nothing; returns False when already up to date."""
        try:
            if path.is_file() and path.read_text(encoding="utf-8") == text:
                self.logger.info("Generated module already up to date: %s", path)
                return False
        except (OSError, UnicodeDecodeError):
            self.logger.debug("Unable to compare existing %s; rewriting", path, exc_info=True)

        tmp_path: Optional[Path] = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            mode = stat.S_IMODE(path.stat().st_mode) if path.is_file() else _default_file_mode()
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", delete=False, dir=path.parent, suffix=".tmp"
            ) as handle:
                tmp_path = Path(handle.name)
                handle.write(text)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, path)
            tmp_path = None
        except OSError as exc:
            raise ArtifactWriteError(f"Failed to write {path}: {exc}") from exc
        finally:
            if tmp_path is not None and tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError:
                    self.logger.debug("Unable to remove temporary file %s", tmp_path)
        return True

    def _warn_duplicate_keys(self, keys: List[str]) -> None:
        for key, count in sorted(Counter(keys).items()):
            if count > 1:
                self.logger.warning(
                    "Registry key %r is used by %d classes; the last one in name order wins", key, count
                )

    @staticmethod
    def _create_env(templates_dir: Path | None) -> Environment:
        directories = []
        if templates_dir:
            directories.append(str(templates_dir))
        directories.append(str(Path(__file__).with_name("templates")))
        env = Environment(
            loader=FileSystemLoader(directories),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=False,
        )
        env.filters["pystr"] = python_string_literal
        return env


def python_string_literal(value: str) -> str:
    """Double-quoted Python literal that evaluates back to exactly ``value``."""
    literal = json.dumps(value, ensure_ascii=False)
    try:
        literal.encode("utf-8")
    except UnicodeEncodeError:
        # Lone surrogates cannot be written as UTF-8; repr escapes them.
        return repr(value)
    return literal


def _default_file_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


__all__ = [
    "ArtifactWriteError",
    "GENERATOR_NAME",
    "HEADER_LINE",
    "RegistryEmitter",
    "instance_name_for",
    "python_string_literal",
]
