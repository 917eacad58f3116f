"""On-disk record of an in-flight staging run."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .models import Symlink

_JOURNAL_VERSION = 1
JOURNAL_DIRNAME = ".symdedupe"
JOURNAL_FILENAME = "state.json"

STATUS_RUNNING = "running"
STATUS_FAILED = "failed"
STATUS_INTERRUPTED = "interrupted"
STATUS_CORRUPT = "corrupt"


class InterruptedRunError(RuntimeError):
    """Raised when a previous run left its journal behind."""

    def __init__(self, journal_path: Path, state: "JournalState") -> None:
        detail = f"phase '{state.phase}'" if state.phase else "before the first phase"
        super().__init__(
            f"A previous run did not finish ({state.status} in {detail}); "
            f"inspect {journal_path} and the module directory, then run "
            "`symdedupe status --clear` once the links are repaired."
        )
        self.journal_path = journal_path
        self.state = state


@dataclass
class JournalState:
    """Snapshot of the journal file."""

    status: str
    phase: Optional[str] = None
    error: Optional[str] = None
    started_at: Optional[str] = None
    updated_at: Optional[str] = None
    symlinks: List[Symlink] = field(default_factory=list)
    completed_phases: List[str] = field(default_factory=list)


class RunJournal:
    """Tracks pipeline progress so an unfinished run is never mistaken for idle."""

    def __init__(self, package_dir: Path | str) -> None:
        self.path = Path(package_dir) / JOURNAL_DIRNAME / JOURNAL_FILENAME
        self._state: Optional[JournalState] = None

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Optional[JournalState]:
        """Return the recorded state, or None when no run is in flight."""
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError):
            return JournalState(status=STATUS_CORRUPT)
        if not isinstance(data, dict) or data.get("version") != _JOURNAL_VERSION:
            return JournalState(status=STATUS_CORRUPT)
        return _state_from_dict(data)

    def begin(self, symlinks: Iterable[Symlink]) -> None:
        now = _timestamp()
        self._state = JournalState(
            status=STATUS_RUNNING,
            started_at=now,
            updated_at=now,
            symlinks=list(symlinks),
        )
        self._persist()

    def enter(self, phase: str) -> None:
        state = self._require_state()
        if state.phase and state.phase not in state.completed_phases:
            state.completed_phases.append(state.phase)
        state.phase = phase
        state.updated_at = _timestamp()
        self._persist()

    def fail(self, error: BaseException | str, *, interrupted: bool = False) -> None:
        state = self._require_state()
        state.status = STATUS_INTERRUPTED if interrupted else STATUS_FAILED
        state.error = str(error) or error.__class__.__name__
        state.updated_at = _timestamp()
        self._persist()

    def finish(self) -> None:
        """Remove the journal after a fully successful run."""
        self._state = None
        self.clear()

    def clear(self) -> bool:
        """Delete the journal file; return True when one was removed."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        try:
            self.path.parent.rmdir()
        except OSError:
            pass
        return True

    # ------------------------------------------------------------------
    # Internal helpers

    def _require_state(self) -> JournalState:
        if self._state is None:
            raise RuntimeError("Journal has not been started")
        return self._state

    def _persist(self) -> None:
        state = self._require_state()
        payload = {
            "version": _JOURNAL_VERSION,
            "status": state.status,
            "phase": state.phase,
            "completed_phases": state.completed_phases,
            "error": state.error,
            "started_at": state.started_at,
            "updated_at": state.updated_at,
            "symlinks": [{"path": link.path, "target": link.target} for link in state.symlinks],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")


def _timestamp() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def _state_from_dict(data: Dict[str, object]) -> JournalState:
    status = data.get("status")
    if not isinstance(status, str):
        return JournalState(status=STATUS_CORRUPT)
    symlinks: List[Symlink] = []
    raw_links = data.get("symlinks")
    if isinstance(raw_links, list):
        for raw in raw_links:
            if not isinstance(raw, dict):
                continue
            path = raw.get("path")
            target = raw.get("target")
            if isinstance(path, str) and isinstance(target, str):
                symlinks.append(Symlink(path=path, target=target))
    completed = data.get("completed_phases")
    return JournalState(
        status=status,
        phase=_optional_str(data.get("phase")),
        error=_optional_str(data.get("error")),
        started_at=_optional_str(data.get("started_at")),
        updated_at=_optional_str(data.get("updated_at")),
        symlinks=symlinks,
        completed_phases=[item for item in completed if isinstance(item, str)]
        if isinstance(completed, list)
        else [],
    )


def _optional_str(value: object) -> Optional[str]:
    return value if isinstance(value, str) else None


__all__ = ["InterruptedRunError", "JournalState", "RunJournal"]
