"""Source discovery: which files a generation run scans."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Sequence, Set, Tuple, Union

from .models import SourceFile

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".tox",
    ".idea",
}

_GENERATED_SUFFIXES = (
    "_pb2.py",
    "_pb2_grpc.py",
    ".g.py",
    ".gen.py",
    "_generated.py",
    ".router_extra.py",
)

_GENERATED_SEGMENT = "generated"


def is_generated_output(rel_path: str, output_rel: str | None = None) -> bool:
    """Return True for files that are themselves generator output."""
    normalized = rel_path.replace("\\", "/")
    if normalized.endswith(_GENERATED_SUFFIXES):
        return True
    if _GENERATED_SEGMENT in normalized.split("/")[:-1]:
        return True
    if output_rel:
        output_dir = output_rel.rsplit("/", 1)[0] if "/" in output_rel else ""
        if normalized == output_rel:
            return True
        if output_dir and normalized.startswith(f"{output_dir}/"):
            return True
    return False


def module_identifier(path: Path, source_root: Path) -> Optional[str]:
    """Return the dotted import path for ``path`` or None when it is not importable."""
    try:
        relative = path.relative_to(source_root)
    except ValueError:
        return None
    if relative.suffix != ".py":
        return None
    parts = list(relative.with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts.pop()
    if not parts or not all(part.isidentifier() for part in parts):
        return None
    return ".".join(parts)


@dataclass
class SourceSelector:
    """Selects scan targets from include/exclude globs."""

    include: Sequence[str]
    exclude: Sequence[str] = ()
    source_root: Union[str, Path] = "."
    output_rel: str | None = None

    def is_skipped(self, rel_path: str) -> bool:
        """True for tool directories and prior generator output."""
        parts = rel_path.split("/")
        if any(part in _EXCLUDED_DIRS for part in parts[:-1]):
            return True
        return is_generated_output(rel_path, self.output_rel)

    def expand_excludes(self, root_path: Path) -> Tuple[Set[Path], Set[Path]]:
        """Expand exclude globs with ``Path.glob`` so both sides share one matching rule.

        Returns ``(files, trees)``. A directory matched by a pattern ending in
        ``**`` or ``/`` excludes everything below it; any other match excludes
        only that exact path.
        """
        files: Set[Path] = set()
        trees: Set[Path] = set()
        for pattern in self.exclude:
            whole_tree = pattern.endswith(("**", "/"))
            for path in root_path.glob(pattern):
                if path.is_dir():
                    if whole_tree:
                        trees.add(path)
                else:
                    files.add(path)
        return files, trees

    def iter_sources(self, root: Path) -> Iterator[SourceFile]:
        """Yield matched files in glob iteration order, each at most once."""
        root_path = root.expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Source path not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Source path is not a directory: {root}")

        source_root = (root_path / self.source_root).resolve()
        excluded_files, excluded_trees = self.expand_excludes(root_path)
        seen: Set[Path] = set()
        for pattern in self.include:
            for path in root_path.glob(pattern):
                if path in seen or not path.is_file():
                    continue
                seen.add(path)
                rel_path = path.relative_to(root_path).as_posix()
                if self.is_skipped(rel_path) or path in excluded_files:
                    continue
                if excluded_trees and not excluded_trees.isdisjoint(path.parents):
                    continue
                yield SourceFile(
                    path=path,
                    rel_path=rel_path,
                    module=module_identifier(path, source_root),
                )


__all__ = ["SourceSelector", "is_generated_output", "module_identifier"]
