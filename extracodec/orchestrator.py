"""Pipeline orchestration for a single generation run."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from .aggregator import Aggregator
from .analyzers import TreeSitterScanner
from .config import CodecConfig, load_config
from .emitter import ArtifactWriteError, RegistryEmitter
from .logging import get_logger
from .models import AggregationResult
from .repo_scanner import SourceSelector
from .validators import ContractValidator


@dataclass
class GenerateOutcome:
    """Result of a generation run that produced a registry."""

    path: Path
    text: str
    written: bool
    declarations: int
    dry_run: bool = False


class Orchestrator:
    """Wires discovery, aggregation and emission for one invocation."""

    def __init__(self, emitter: RegistryEmitter | None = None) -> None:
        self.emitter = emitter or RegistryEmitter()
        self.logger = get_logger("orchestrator")

    def run_generate(
        self,
        path: str,
        *,
        dry_run: bool = False,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> Optional[GenerateOutcome]:
        """Generate the codec module; returns None when no encodable classes exist."""
        config = self.load(path, overrides)
        self.logger.info("Starting codec generation for %s", config.root)
        result = self.collect(config)

        if result.is_empty:
            self.logger.warning("No @%s classes found; nothing generated", config.markers.encodable)
            return None

        self.logger.info("Found %d extra classes", len(result.candidates))
        text = self.emitter.render(
            result,
            codec_class_name=config.codec_class_name,
            generated_at=self._timestamp(result.sources),
            deserialize_constructor=config.contract.deserialize_constructor,
        )
        output_path = config.output_path
        if dry_run:
            self.logger.info("Dry-run completed; %s not written", output_path)
            return GenerateOutcome(
                path=output_path,
                text=text,
                written=False,
                declarations=len(result.candidates),
                dry_run=True,
            )

        try:
            written = self.emitter.write(output_path, text)
        except ArtifactWriteError as exc:
            self.logger.error("Codec generation failed: %s", exc)
            raise
        if written:
            self.logger.info(
                "Generated: %s with %d extra classes", output_path, len(result.candidates)
            )
        return GenerateOutcome(
            path=output_path,
            text=text,
            written=written,
            declarations=len(result.candidates),
        )

    def run_list(self, path: str, *, overrides: Optional[Dict[str, Any]] = None) -> AggregationResult:
        """Aggregate without emitting, for inspection."""
        return self.collect(self.load(path, overrides))

    def load(self, path: str, overrides: Optional[Dict[str, Any]] = None) -> CodecConfig:
        root = Path(path).expanduser().resolve()
        if not root.exists():
            raise FileNotFoundError(f"Source path not found: {path}")
        config = load_config(root)
        if overrides:
            config = config.with_overrides(**overrides)
        return config

    def collect(self, config: CodecConfig) -> AggregationResult:
        selector = SourceSelector(
            include=config.generate_for.include,
            exclude=config.generate_for.exclude,
            source_root=config.source_root_path,
            output_rel=Path(config.output_folder, config.output_filename).as_posix(),
        )
        aggregator = Aggregator(
            TreeSitterScanner(config.markers),
            ContractValidator(config.contract),
            workers=config.workers,
        )
        return aggregator.aggregate(selector.iter_sources(config.root))

    @staticmethod
    def _timestamp(sources: Iterable[Path]) -> datetime:
        epoch = os.environ.get("SOURCE_DATE_EPOCH")
        if epoch and epoch.strip().isdigit():
            return datetime.fromtimestamp(int(epoch), tz=timezone.utc)
        newest = 0.0
        for source in sources:
            try:
                newest = max(newest, source.stat().st_mtime)
            except OSError:
                continue
        return datetime.fromtimestamp(newest, tz=timezone.utc)


__all__ = ["GenerateOutcome", "Orchestrator"]
