"""Coordinates scanning, classification and the staging pipeline for a package."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .classifier import classify
from .config import SymDedupeConfig, load_config
from .deduper import DedupeRunner
from .events import EventSink
from .fsops import LocalFilesystem
from .journal import InterruptedRunError, JournalState, RunJournal
from .logging import get_logger
from .models import Classification
from .module_scanner import ModuleScanner
from .pipeline import StagingPipeline


@dataclass
class RunOutcome:
    """Result of a completed staging run."""

    package_dir: Path
    classification: Classification
    result: str


class Orchestrator:
    """Runs symdedupe commands against a package directory."""

    def __init__(
        self,
        *,
        scanner: ModuleScanner | None = None,
        fs: LocalFilesystem | None = None,
        deduper: DedupeRunner | None = None,
        sink: EventSink | None = None,
        deduper_command: str | None = None,
    ) -> None:
        self._scanner = scanner
        self._fs = fs
        self._deduper = deduper
        self._sink = sink
        self._deduper_command = deduper_command
        self.logger = get_logger("orchestrator")

    def run_scan(self, path: str | Path) -> Classification:
        """Return the linked modules of ``path`` without touching the filesystem."""
        _, config = self._prepare(path)
        return self._classify(config)

    def run_dedupe(self, path: str | Path) -> RunOutcome:
        """Stage every linked module, run the deduper and restore the links."""
        package_dir, config = self._prepare(path)
        journal = RunJournal(package_dir)
        previous = journal.load()
        if previous is not None:
            raise InterruptedRunError(journal.path, previous)

        classification = self._classify(config)
        if not classification.modules:
            self.logger.info("No linked modules found in %s; running deduper directly", config.module_path)

        pipeline = self._build_pipeline(config, journal)
        result = asyncio.run(pipeline.run(package_dir, classification))
        self.logger.info(
            "Deduped %s (%d modules, %d links restored)",
            package_dir,
            len(classification.modules),
            len(classification.symlinks),
        )
        return RunOutcome(package_dir=package_dir, classification=classification, result=result)

    def run_status(self, path: str | Path, *, clear: bool = False) -> Optional[JournalState]:
        """Return the unfinished run recorded for ``path``, optionally discarding it."""
        package_dir = Path(path).expanduser().resolve()
        journal = RunJournal(package_dir)
        state = journal.load()
        if clear and state is not None:
            journal.clear()
            self.logger.info("Cleared journal at %s", journal.path)
        return state

    # ------------------------------------------------------------------
    # Internals

    def _prepare(self, path: str | Path) -> tuple[Path, SymDedupeConfig]:
        package_dir = Path(path).expanduser().resolve()
        if not package_dir.is_dir():
            raise FileNotFoundError(f"Package directory not found: {path}")
        config = load_config(package_dir)
        self.logger.debug("Loaded configuration from %s", package_dir)
        return package_dir, config

    def _classify(self, config: SymDedupeConfig) -> Classification:
        scanner = self._scanner or ModuleScanner(scope_prefix=config.scope_prefix)
        directory = scanner.scan(config.module_path)
        classification = classify(directory)
        self.logger.debug(
            "Found %d linked modules behind %d links",
            len(classification.modules),
            len(classification.symlinks),
        )
        return classification

    def _build_pipeline(self, config: SymDedupeConfig, journal: RunJournal) -> StagingPipeline:
        deduper = self._deduper or DedupeRunner(
            self._deduper_command or config.deduper.command,
            config.deduper.args,
            sink=self._sink,
        )
        return StagingPipeline(
            fs=self._fs or LocalFilesystem(link_type=config.link_type),
            deduper=deduper,
            sink=self._sink,
            journal=journal,
            concurrency=config.concurrency,
            descriptor=config.descriptor,
            dependency_dir=config.dependency_dir,
        )


__all__ = ["Orchestrator", "RunOutcome"]
