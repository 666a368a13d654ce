"""Structural contract checks for encodable declarations."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from ..config import ContractConfig
from ..models import (
    CandidateDeclaration,
    DeclarationFacts,
    MarkerKind,
    MethodFacts,
    NotApplicable,
    Qualifies,
    Rejected,
    Verdict,
)

MISSING_SERIALIZE = "serialize"
MISSING_DESERIALIZE = "deserialize"
MISSING_MARKER_ARGUMENT = "marker-argument"


def is_map_like(annotation: Optional[str], type_names: Iterable[str]) -> bool:
    """Return True when the printed annotation starts with a map container name.

    This is a deliberately loose string-prefix test: ``dict[str, Any]``,
    ``Dict[str, object]`` and ``Mapping[str, Any]`` pass, but so would a
    hypothetical ``dictionary_like`` type. No type resolution happens.
    """
    if not annotation:
        return False
    printed = annotation.strip()
    if len(printed) >= 2 and printed[0] == printed[-1] and printed[0] in {'"', "'"}:
        printed = printed[1:-1].strip()
    return any(name and printed.startswith(name) for name in type_names)


class ContractValidator:
    """Checks the serialize method and deserialize constructor of an encodable class."""

    name = "contract"

    def __init__(self, contract: ContractConfig | None = None) -> None:
        contract = contract or ContractConfig()
        self.serialize_method = contract.serialize_method
        self.deserialize_constructor = contract.deserialize_constructor
        self.map_type_names: Sequence[str] = tuple(contract.map_type_names)

    def validate(self, declaration: DeclarationFacts) -> Verdict:
        marker = declaration.marker(MarkerKind.ENCODABLE)
        if marker is None:
            return NotApplicable(f"{declaration.name}: not marked encodable")

        if not any(self._is_serialize_method(method) for method in declaration.methods):
            return self._reject(
                declaration,
                f"missing {self.serialize_method}() method",
                MISSING_SERIALIZE,
            )

        if not any(self._is_deserialize_constructor(method) for method in declaration.methods):
            return self._reject(
                declaration,
                f"missing {self.deserialize_constructor} constructor",
                MISSING_DESERIALIZE,
            )

        if not marker.literal:
            return self._reject(
                declaration,
                f"@{marker.name} name must be a string literal",
                MISSING_MARKER_ARGUMENT,
            )

        return Qualifies(
            CandidateDeclaration(
                name=declaration.name,
                module=declaration.module,
                custom_key=marker.argument or "",
            )
        )

    def _is_serialize_method(self, method: MethodFacts) -> bool:
        if method.name != self.serialize_method or method.kind != "instance":
            return False
        if method.params:
            return False
        return is_map_like(method.return_type, self.map_type_names)

    def _is_deserialize_constructor(self, method: MethodFacts) -> bool:
        if method.name != self.deserialize_constructor or method.kind != "class":
            return False
        if len(method.params) != 1:
            return False
        param = method.params[0]
        if param.kind != "plain":
            return False
        return is_map_like(param.annotation, self.map_type_names)

    @staticmethod
    def _reject(declaration: DeclarationFacts, detail: str, missing: str) -> Rejected:
        return Rejected(
            name=declaration.name,
            module=declaration.module,
            reason=f"{declaration.name}: {detail}",
            missing=missing,
        )


__all__ = [
    "ContractValidator",
    "MISSING_DESERIALIZE",
    "MISSING_MARKER_ARGUMENT",
    "MISSING_SERIALIZE",
    "is_map_like",
]
