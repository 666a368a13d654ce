"""Cross-file aggregation of scan and validation results."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable, Optional

from .analyzers import DeclarationScanner, TreeSitterScanner
from .logging import get_logger
from .models import (
    AggregationResult,
    FileFindings,
    NotApplicable,
    OverrideBinding,
    Qualifies,
    Rejected,
    SourceFile,
)
from .validators import ContractValidator


class Aggregator:
    """Runs the scanner and validator over every source file and merges the findings.

    With ``workers > 1`` files are scanned on a thread pool. Findings are still
    merged on the calling thread, one file at a time, in completion order, so
    override bindings become "last completed wins" rather than "last scanned
    wins".
    """

    def __init__(
        self,
        scanner: DeclarationScanner | None = None,
        validator: ContractValidator | None = None,
        *,
        workers: int = 1,
    ) -> None:
        self.scanner = scanner or TreeSitterScanner()
        self.validator = validator or ContractValidator()
        self.workers = max(1, workers)
        self.logger = get_logger("aggregator")

    def aggregate(self, sources: Iterable[SourceFile]) -> AggregationResult:
        result = AggregationResult()
        scanned = 0
        if self.workers == 1:
            for source in sources:
                scanned += 1
                self._absorb(result, self._guarded_scan(result, source))
        else:
            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                futures = {executor.submit(self.scan_file, source): source for source in sources}
                scanned = len(futures)
                for future in as_completed(futures):
                    source = futures[future]
                    try:
                        findings = future.result()
                    except Exception as exc:
                        findings = self._record_failure(result, source, exc)
                    self._absorb(result, findings)

        self.logger.info(
            "Scanned %d file(s): %d accepted, %d rejected, %d failed",
            scanned,
            len(result.candidates),
            len(result.rejections),
            len(result.failures),
        )
        return result

    def scan_file(self, source: SourceFile) -> Optional[FileFindings]:
        """Scan and validate one file; returns None when the file is not applicable."""
        if not self.scanner.supports(source):
            self.logger.debug(
                "Skipping %s: unsupported by %s", source.rel_path, type(self.scanner).__name__
            )
            return None
        facts = self.scanner.scan(source)
        if isinstance(facts, NotApplicable):
            self.logger.debug("Skipping %s", facts.reason)
            return None

        findings = FileFindings(source=source)
        for declaration in facts.encodables():
            verdict = self.validator.validate(declaration)
            if isinstance(verdict, Qualifies):
                findings.candidates.append(verdict.candidate)
                self.logger.info("  Found extra: %s (%s)", verdict.candidate.name, source.rel_path)
            elif isinstance(verdict, Rejected):
                findings.rejections.append(verdict)

        for declaration in facts.serializers():
            findings.serializer = OverrideBinding(name=declaration.name, module=declaration.module)
            self.logger.info("  Found encoder: %s (%s)", declaration.name, source.rel_path)
        for declaration in facts.deserializers():
            findings.deserializer = OverrideBinding(name=declaration.name, module=declaration.module)
            self.logger.info("  Found decoder: %s (%s)", declaration.name, source.rel_path)
        return findings

    def _guarded_scan(self, result: AggregationResult, source: SourceFile) -> Optional[FileFindings]:
        try:
            return self.scan_file(source)
        except Exception as exc:
            return self._record_failure(result, source, exc)

    def _record_failure(self, result: AggregationResult, source: SourceFile, exc: Exception) -> None:
        self.logger.warning("Error processing %s: %s", source.rel_path, exc, exc_info=True)
        result.failures.append(source.rel_path)
        return None

    def _absorb(self, result: AggregationResult, findings: Optional[FileFindings]) -> None:
        if findings is None:
            return
        known = {rejection.identity for rejection in result.rejections}
        for rejection in findings.rejections:
            if rejection.identity not in known:
                self.logger.warning("%s", rejection.reason)
        if result.serializer is not None and findings.serializer is not None:
            self.logger.debug(
                "Encoder %s replaces %s", findings.serializer.name, result.serializer.name
            )
        if result.deserializer is not None and findings.deserializer is not None:
            self.logger.debug(
                "Decoder %s replaces %s", findings.deserializer.name, result.deserializer.name
            )
        result.absorb(findings)


__all__ = ["Aggregator"]
