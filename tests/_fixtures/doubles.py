"""Recording and failing test doubles for the pipeline collaborators."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from symdedupe.deduper import DedupeProcessError
from symdedupe.events import PipelineEvent
from symdedupe.fsops import LocalFilesystem

LogEntry = Tuple[str, str, Tuple[str, ...]]
FailurePredicate = Callable[[str, Tuple[str, ...]], bool]


class RecordingFilesystem(LocalFilesystem):
    """Real filesystem that logs the start and end of every primitive.

    ``fail_when(op, args)`` returning True makes that call raise OSError
    instead of touching the disk.
    """

    def __init__(
        self,
        log: Optional[List[LogEntry]] = None,
        *,
        fail_when: FailurePredicate | None = None,
        link_type: str = "dir",
    ) -> None:
        super().__init__(link_type=link_type)
        self.log: List[LogEntry] = log if log is not None else []
        self._fail_when = fail_when

    async def _record(self, op: str, args: Tuple[str, ...], call: Callable[[], object]) -> object:
        self.log.append(("start", op, args))
        await asyncio.sleep(0)
        if self._fail_when is not None and self._fail_when(op, args):
            self.log.append(("fail", op, args))
            raise OSError(f"injected failure for {op} {args}")
        result = await call()  # type: ignore[misc]
        self.log.append(("end", op, args))
        return result

    async def exists(self, path: str) -> bool:
        return await self._record("exists", (path,), lambda: super(RecordingFilesystem, self).exists(path))  # type: ignore[return-value]

    async def ensure_dir(self, path: str) -> None:
        await self._record("ensure_dir", (path,), lambda: super(RecordingFilesystem, self).ensure_dir(path))

    async def copy_file(self, source: str, destination: str) -> None:
        await self._record(
            "copy_file",
            (source, destination),
            lambda: super(RecordingFilesystem, self).copy_file(source, destination),
        )

    async def move(self, source: str, destination: str) -> None:
        await self._record(
            "move",
            (source, destination),
            lambda: super(RecordingFilesystem, self).move(source, destination),
        )

    async def unlink(self, path: str) -> None:
        await self._record("unlink", (path,), lambda: super(RecordingFilesystem, self).unlink(path))

    async def remove_tree(self, path: str) -> None:
        await self._record("remove_tree", (path,), lambda: super(RecordingFilesystem, self).remove_tree(path))

    async def symlink(self, target: str, path: str) -> None:
        await self._record(
            "symlink", (target, path), lambda: super(RecordingFilesystem, self).symlink(target, path)
        )

    def ops(self, *, kind: str = "start") -> List[Tuple[str, Tuple[str, ...]]]:
        return [(op, args) for entry_kind, op, args in self.log if entry_kind == kind]


class FakeDeduper:
    """Stands in for ``npm dedupe``; records calls and can inspect the staged tree."""

    def __init__(
        self,
        *,
        log: Optional[List[LogEntry]] = None,
        on_run: Callable[[Path], None] | None = None,
        exit_code: int = 0,
    ) -> None:
        self.calls: List[str] = []
        self.log = log
        self.on_run = on_run
        self.exit_code = exit_code

    async def run(self, cwd: str | Path) -> None:
        self.calls.append(str(cwd))
        if self.log is not None:
            self.log.append(("start", "dedupe", (str(cwd),)))
        await asyncio.sleep(0)
        if self.on_run is not None:
            self.on_run(Path(cwd))
        if self.log is not None:
            self.log.append(("end", "dedupe", (str(cwd),)))
        if self.exit_code:
            raise DedupeProcessError("npm dedupe", self.exit_code)


class HangingDeduper:
    """Deduper that never finishes, for cancellation tests."""

    def __init__(self) -> None:
        self.calls: List[str] = []

    async def run(self, cwd: str | Path) -> None:
        self.calls.append(str(cwd))
        await asyncio.Event().wait()


class RecordingSink:
    """Sink that keeps every event in arrival order."""

    def __init__(self) -> None:
        self.events: List[PipelineEvent] = []

    def __call__(self, event: PipelineEvent) -> None:
        self.events.append(event)

    def kinds(self) -> List[str]:
        return [event.kind for event in self.events]


__all__ = [
    "FakeDeduper",
    "HangingDeduper",
    "RecordingFilesystem",
    "RecordingSink",
]
