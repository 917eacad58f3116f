"""Staged filesystem pipeline: unlink, stage, dedupe, unstage, remove, relink."""

from __future__ import annotations

import asyncio
import os
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from . import events
from .deduper import DedupeRunner
from .events import EventSink, SafeSink, logging_sink
from .fsops import LocalFilesystem
from .journal import RunJournal
from .logging import get_logger
from .models import Classification, SymlinkedModule, Symlink

DONE = "DONE"

T = TypeVar("T")


class Phase(str, Enum):
    """Pipeline phases in execution order."""

    UNLINK = "unlink"
    STAGE = "stage"
    DEDUPE = "dedupe"
    UNSTAGE = "unstage"
    REMOVE = "remove"
    RELINK = "relink"


class StagingIOError(RuntimeError):
    """Raised when a filesystem step fails after the pipeline started mutating."""

    def __init__(self, phase: Phase | str, path: str, cause: BaseException | str) -> None:
        phase_name = Phase(phase).value
        super().__init__(f"{phase_name} failed for {path}: {cause}")
        self.phase = phase_name
        self.path = path
        self.cause = cause


class StagingPipeline:
    """Runs the six phases with a barrier between each and fan-out within each.

    Every element of a phase completes before the next phase starts. The first
    failure stops the phase from starting more elements and is raised
    unchanged once the running ones settle; earlier phases are not undone.
    """

    def __init__(
        self,
        fs: LocalFilesystem | None = None,
        deduper: DedupeRunner | None = None,
        *,
        sink: EventSink | None = None,
        journal: RunJournal | None = None,
        concurrency: int = 8,
        descriptor: str = "package.json",
        dependency_dir: str = "node_modules",
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.fs = fs or LocalFilesystem()
        self._sink = SafeSink(sink or logging_sink())
        self.deduper = deduper or DedupeRunner(sink=self._sink)
        self.journal = journal
        self.concurrency = concurrency
        self.descriptor = descriptor
        self.dependency_dir = dependency_dir
        self.logger = get_logger("pipeline")

    async def run(self, package_dir: str | Path, classification: Classification) -> str:
        """Stage, dedupe and restore ``classification`` under ``package_dir``."""
        package = str(package_dir)
        modules = list(classification.modules)
        symlinks = list(classification.symlinks)
        self.logger.debug(
            "Running pipeline in %s for %d modules behind %d links",
            package,
            len(modules),
            len(symlinks),
        )

        steps: Sequence[tuple[Phase, Callable[[], Awaitable[None]]]] = (
            (Phase.UNLINK, lambda: self._fan_out(Phase.UNLINK, symlinks, self._unlink)),
            (Phase.STAGE, lambda: self._fan_out(Phase.STAGE, modules, self._stage)),
            (Phase.DEDUPE, lambda: self._dedupe(package)),
            (Phase.UNSTAGE, lambda: self._fan_out(Phase.UNSTAGE, modules, self._unstage)),
            (
                Phase.REMOVE,
                lambda: self._fan_out(Phase.REMOVE, symlinks, self._remover(modules)),
            ),
            (Phase.RELINK, lambda: self._fan_out(Phase.RELINK, symlinks, self._relink)),
        )

        self._journal(Phase.UNLINK, lambda journal: journal.begin(symlinks))
        current: Optional[Phase] = None
        try:
            for current, step in steps:
                self._journal(current, lambda journal: journal.enter(current.value))
                self._sink.emit(events.PHASE, f"phase {current.value}")
                await step()
        except asyncio.CancelledError:
            self.logger.error("Pipeline cancelled during %s phase", _phase_name(current))
            self._journal_failure(lambda journal: journal.fail("cancelled", interrupted=True))
            raise
        except Exception as exc:
            self.logger.error("Pipeline failed during %s phase: %s", _phase_name(current), exc)
            self._journal_failure(lambda journal: journal.fail(exc))
            raise

        self._journal(Phase.RELINK, lambda journal: journal.finish())
        self._sink.emit(events.DONE, DONE)
        return DONE

    # ------------------------------------------------------------------
    # Phase steps

    async def _unlink(self, link: Symlink) -> None:
        self._sink.emit(events.UNLINK, f"unlinking '{link.path}' from '{link.target}'", link.path)
        await self._io(Phase.UNLINK, link.path, self.fs.unlink(link.path))

    async def _stage(self, module: SymlinkedModule) -> None:
        self._sink.emit(
            events.STAGE, f"staging '{module.target}' into '{module.path}'", module.path
        )
        await self._io(Phase.STAGE, module.path, self._stage_module(module))

    async def _stage_module(self, module: SymlinkedModule) -> None:
        await self.fs.ensure_dir(module.path)
        descriptor = os.path.join(module.target, self.descriptor)
        if await self.fs.exists(descriptor):
            await self.fs.copy_file(descriptor, os.path.join(module.path, self.descriptor))
        source = os.path.join(module.target, self.dependency_dir)
        if await self.fs.exists(source):
            await self.fs.move(source, os.path.join(module.path, self.dependency_dir))

    async def _dedupe(self, package: str) -> None:
        await self._io(Phase.DEDUPE, package, self.deduper.run(package))

    async def _unstage(self, module: SymlinkedModule) -> None:
        staged = os.path.join(module.path, self.dependency_dir)
        self._sink.emit(
            events.UNSTAGE,
            f"moving {self.dependency_dir} from '{module.path}' back to '{module.target}'",
            module.path,
        )
        await self._io(Phase.UNSTAGE, module.path, self._move_back(staged, module.target))

    async def _move_back(self, staged: str, target: str) -> None:
        if await self.fs.exists(staged):
            await self.fs.move(staged, os.path.join(target, self.dependency_dir))

    def _remover(
        self, modules: Iterable[SymlinkedModule]
    ) -> Callable[[Symlink], Awaitable[None]]:
        staged_by_link: Dict[str, List[SymlinkedModule]] = {}
        for module in modules:
            key = module.scope_path if module.has_symlinked_scope else module.path
            staged_by_link.setdefault(key, []).append(module)

        async def _remove(link: Symlink) -> None:
            self._sink.emit(events.REMOVE, f"removing directory '{link.path}'", link.path)
            for module in staged_by_link.get(link.path, []):
                leftover = os.path.join(module.path, self.dependency_dir)
                if await self._io(Phase.REMOVE, leftover, self.fs.exists(leftover)):
                    raise StagingIOError(
                        Phase.REMOVE,
                        leftover,
                        f"{self.dependency_dir} was not moved back; refusing to delete",
                    )
            await self._io(Phase.REMOVE, link.path, self.fs.remove_tree(link.path))

        return _remove

    async def _relink(self, link: Symlink) -> None:
        self._sink.emit(events.RELINK, f"relinking '{link.path}' to '{link.target}'", link.path)
        await self._io(Phase.RELINK, link.path, self.fs.symlink(link.target, link.path))

    # ------------------------------------------------------------------
    # Internals

    async def _fan_out(
        self,
        phase: Phase,
        items: Sequence[T],
        action: Callable[[T], Awaitable[None]],
    ) -> None:
        """Run ``action`` for every item and wait for all of them.

        After the first failure no further item is started; items already
        running finish before the failure is raised.
        """
        semaphore = asyncio.Semaphore(self.concurrency)
        failures: List[Exception] = []

        async def _bounded(item: T) -> None:
            async with semaphore:
                if failures:
                    return
                try:
                    await action(item)
                except Exception as exc:
                    failures.append(exc)

        await asyncio.gather(*(_bounded(item) for item in items))
        if failures:
            self.logger.debug(
                "%s phase aborted after first failure (%d failed)", phase.value, len(failures)
            )
            raise failures[0]

    async def _io(self, phase: Phase, path: str, operation: Awaitable[T]) -> T:
        try:
            return await operation
        except OSError as exc:
            raise StagingIOError(phase, path, exc) from exc

    def _journal(self, phase: Phase, update: Callable[[RunJournal], None]) -> None:
        if self.journal is None:
            return
        try:
            update(self.journal)
        except OSError as exc:
            raise StagingIOError(
                phase, str(self.journal.path), f"journal update failed: {exc}"
            ) from exc

    def _journal_failure(self, update: Callable[[RunJournal], None]) -> None:
        # The original error must reach the caller even if the journal is unwritable.
        if self.journal is None:
            return
        try:
            update(self.journal)
        except OSError as exc:
            self.logger.error("Could not record failure in %s: %s", self.journal.path, exc)


def _phase_name(phase: Optional[Phase]) -> str:
    return phase.value if phase is not None else "startup"


__all__ = ["DONE", "Phase", "StagingIOError", "StagingPipeline"]
