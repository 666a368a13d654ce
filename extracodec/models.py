"""Core data models shared across extracodec components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union


class MarkerKind(str, Enum):
    """Declaration-level markers recognised by the scanner."""

    ENCODABLE = "encodable"
    SERIALIZER = "serializer"
    DESERIALIZER = "deserializer"


@dataclass(frozen=True)
class SourceFile:
    """A source file selected for scanning."""

    path: Path
    rel_path: str
    module: Optional[str]


@dataclass(frozen=True)
class ParamFacts:
    """A formal parameter as written in source."""

    name: str
    annotation: Optional[str]
    kind: str = "plain"


@dataclass(frozen=True)
class MethodFacts:
    """A function defined directly in a class body."""

    name: str
    kind: str
    params: Tuple[ParamFacts, ...]
    return_type: Optional[str]
    line: int


@dataclass(frozen=True)
class MarkerUse:
    """A decorator on a class that resolved to a known marker."""

    kind: MarkerKind
    name: str
    argument: Optional[str] = None
    literal: bool = True


@dataclass(frozen=True)
class DeclarationFacts:
    """Structural facts about one module-level class."""

    name: str
    module: str
    line: int
    markers: Tuple[MarkerUse, ...] = ()
    methods: Tuple[MethodFacts, ...] = ()

    def marker(self, kind: MarkerKind) -> Optional[MarkerUse]:
        for use in self.markers:
            if use.kind is kind:
                return use
        return None

    def has_marker(self, kind: MarkerKind) -> bool:
        return self.marker(kind) is not None


@dataclass(frozen=True)
class ModuleFacts:
    """Everything the scanner extracted from a single file."""

    source: SourceFile
    declarations: Tuple[DeclarationFacts, ...] = ()

    def encodables(self) -> List[DeclarationFacts]:
        return [decl for decl in self.declarations if decl.has_marker(MarkerKind.ENCODABLE)]

    def serializers(self) -> List[DeclarationFacts]:
        return [decl for decl in self.declarations if decl.has_marker(MarkerKind.SERIALIZER)]

    def deserializers(self) -> List[DeclarationFacts]:
        return [decl for decl in self.declarations if decl.has_marker(MarkerKind.DESERIALIZER)]


@dataclass(frozen=True)
class CandidateDeclaration:
    """A declaration that passed contract validation."""

    name: str
    module: str
    custom_key: str = ""

    @property
    def identity(self) -> Tuple[str, str]:
        return (self.name, self.module)

    @property
    def registry_key(self) -> str:
        return self.custom_key if self.custom_key else self.name


@dataclass(frozen=True)
class OverrideBinding:
    """User-supplied serializer or deserializer replacing the fallback converter."""

    name: str
    module: str


@dataclass(frozen=True)
class Qualifies:
    """Verdict: the declaration satisfies the contract."""

    candidate: CandidateDeclaration


@dataclass(frozen=True)
class Rejected:
    """Verdict: the declaration is marked but violates the contract."""

    name: str
    module: str
    reason: str
    missing: str

    @property
    def identity(self) -> Tuple[str, str]:
        return (self.name, self.module)


@dataclass(frozen=True)
class NotApplicable:
    """Verdict: there is nothing to validate (or nothing to scan)."""

    reason: str


Verdict = Union[Qualifies, Rejected, NotApplicable]


@dataclass
class FileFindings:
    """Per-file output of a scan/validate step, merged by the aggregator."""

    source: SourceFile
    candidates: List[CandidateDeclaration] = field(default_factory=list)
    rejections: List[Rejected] = field(default_factory=list)
    serializer: Optional[OverrideBinding] = None
    deserializer: Optional[OverrideBinding] = None

    @property
    def contributes(self) -> bool:
        return bool(self.candidates) or self.serializer is not None or self.deserializer is not None


@dataclass
class AggregationResult:
    """Accumulated findings of one generation run."""

    serializer: Optional[OverrideBinding] = None
    deserializer: Optional[OverrideBinding] = None
    sources: List[Path] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)
    _candidates: Dict[Tuple[str, str], CandidateDeclaration] = field(default_factory=dict, repr=False)
    _rejections: Dict[Tuple[str, str], Rejected] = field(default_factory=dict, repr=False)

    @property
    def candidates(self) -> List[CandidateDeclaration]:
        return list(self._candidates.values())

    @property
    def rejections(self) -> List[Rejected]:
        return list(self._rejections.values())

    @property
    def is_empty(self) -> bool:
        return not self._candidates

    def absorb(self, findings: FileFindings) -> "AggregationResult":
        """Merge one file's findings; identity-keyed so re-absorbing never duplicates."""
        for candidate in findings.candidates:
            self._candidates[candidate.identity] = candidate
        for rejection in findings.rejections:
            self._rejections[rejection.identity] = rejection
        if findings.serializer is not None:
            self.serializer = findings.serializer
        if findings.deserializer is not None:
            self.deserializer = findings.deserializer
        if findings.contributes and findings.source.path not in self.sources:
            self.sources.append(findings.source.path)
        return self


__all__ = [
    "AggregationResult",
    "CandidateDeclaration",
    "DeclarationFacts",
    "FileFindings",
    "MarkerKind",
    "MarkerUse",
    "MethodFacts",
    "ModuleFacts",
    "NotApplicable",
    "OverrideBinding",
    "ParamFacts",
    "Qualifies",
    "Rejected",
    "SourceFile",
    "Verdict",
]
