"""Base classes for declaration scanners."""

from abc import ABC, abstractmethod
from typing import Union

from ..models import ModuleFacts, NotApplicable, SourceFile


class DeclarationScanner(ABC):
    """Contract for scanners that extract declaration facts from one source file."""

    @abstractmethod
    def supports(self, source: SourceFile) -> bool:
        """Return True when this scanner can resolve the file."""

    @abstractmethod
    def scan(self, source: SourceFile) -> Union[ModuleFacts, NotApplicable]:
        """Return the file's marked declarations, or NotApplicable when it cannot be resolved."""
