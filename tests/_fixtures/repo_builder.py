"""Helper utilities for constructing temporary source trees in tests."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Mapping

from extracodec.models import SourceFile
from extracodec.repo_scanner import module_identifier

MARKERS_MODULE = '''
def page_extra(name=None):
    def wrap(cls):
        return cls

    return wrap


def extra_encoder(cls):
    return cls


def extra_decoder(cls):
    return cls
'''


def extra_class(name: str, marker: str = "@page_extra()") -> str:
    """Return source for a class that satisfies the encodable contract."""
    return f'''
from typing import Any, Dict

from markers import page_extra


{marker}
class {name}:
    def __init__(self, value: str) -> None:
        self.value = value

    def to_json(self) -> Dict[str, Any]:
        return {{"value": self.value}}

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "{name}":
        return cls(data["value"])
'''


class RepoBuilder:
    """Utility for writing files into a throwaway source tree."""

    def __init__(self, tmp_path: Path) -> None:
        self.root = tmp_path / "repo"
        self.root.mkdir()

    def write(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries into the tree."""
        for relative, content in files.items():
            path = self.root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            normalised = textwrap.dedent(content).lstrip("\n")
            path.write_text(normalised, encoding="utf-8")

    def source(self, relative: str) -> SourceFile:
        """Return the SourceFile for an already written path."""
        path = (self.root / relative).resolve()
        return SourceFile(
            path=path,
            rel_path=relative,
            module=module_identifier(path, self.root.resolve()),
        )

    def path(self) -> Path:
        """Return the tree root path."""
        return self.root


__all__ = ["MARKERS_MODULE", "RepoBuilder", "extra_class"]
