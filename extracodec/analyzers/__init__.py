"""Declaration scanners."""

from __future__ import annotations

from .base import DeclarationScanner
from .tree_sitter import TreeSitterScanner

__all__ = ["DeclarationScanner", "TreeSitterScanner"]
