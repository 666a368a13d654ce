"""Declaration validators."""

from .contract import (
    MISSING_DESERIALIZE,
    MISSING_MARKER_ARGUMENT,
    MISSING_SERIALIZE,
    ContractValidator,
    is_map_like,
)

__all__ = [
    "ContractValidator",
    "MISSING_DESERIALIZE",
    "MISSING_MARKER_ARGUMENT",
    "MISSING_SERIALIZE",
    "is_map_like",
]
