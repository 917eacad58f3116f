"""Adapter around the external dependency deduplication tool."""

from __future__ import annotations

import asyncio
import os
import shlex
import signal
import subprocess
from pathlib import Path
from typing import Optional, Sequence

from . import events
from .events import EventSink, SafeSink, logging_sink

_CHUNK_SIZE = 65536


class DedupeProcessError(RuntimeError):
    """Raised when the deduper exits with a non-zero status."""

    def __init__(self, command: str, exit_code: int) -> None:
        super().__init__(f"'{command}' exited with code {exit_code}")
        self.command = command
        self.exit_code = exit_code


class DedupeRunner:
    """Runs ``npm dedupe`` (or a configured replacement) through the shell."""

    DEFAULT_COMMAND = "npm"
    DEFAULT_ARGS: Sequence[str] = ("dedupe",)
    ENV_COMMAND_KEYS = ("SYMDEDUPE_DEDUPE_COMMAND",)

    def __init__(
        self,
        command: str | None = None,
        args: Sequence[str] | None = None,
        *,
        sink: EventSink | None = None,
    ) -> None:
        self.command = self._resolve_command(command)
        self.args = list(self.DEFAULT_ARGS if args is None else args)
        self._sink = SafeSink(sink or logging_sink())

    @property
    def command_line(self) -> str:
        parts = [self.command, *self.args]
        if os.name == "nt":
            return subprocess.list2cmdline(parts)
        return shlex.join(parts)

    async def run(self, cwd: str | Path) -> None:
        """Run the deduper in ``cwd`` and wait for it to exit."""
        command_line = self.command_line
        self._sink.emit(events.DEDUPE_START, f"deduping {cwd} ({command_line})", str(cwd))

        # A shell is required for npm to be found on Windows.
        process = await asyncio.create_subprocess_shell(
            command_line,
            cwd=str(cwd),
            env=os.environ.copy(),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=os.name != "nt",
        )
        try:
            await asyncio.gather(
                self._pump(process.stdout, events.DEDUPE_STDOUT),
                self._pump(process.stderr, events.DEDUPE_STDERR),
            )
            exit_code = await process.wait()
        except BaseException:
            if process.returncode is None:
                _kill(process)
                await process.wait()
            raise

        self._sink.emit(events.DEDUPE_EXIT, f"'{command_line}' exited with code {exit_code}", str(cwd))
        if exit_code != 0:
            raise DedupeProcessError(command_line, exit_code)

    async def _pump(self, stream: Optional[asyncio.StreamReader], kind: str) -> None:
        if stream is None:
            return
        pending = b""
        while True:
            chunk = await stream.read(_CHUNK_SIZE)
            if not chunk:
                break
            pending += chunk
            *lines, pending = pending.split(b"\n")
            for line in lines:
                self._emit_line(kind, line)
            # Unterminated output is emitted in chunk-sized pieces.
            if len(pending) >= _CHUNK_SIZE:
                self._emit_line(kind, pending)
                pending = b""
        self._emit_line(kind, pending)

    def _emit_line(self, kind: str, line: bytes) -> None:
        text = line.decode("utf-8", errors="replace").rstrip()
        if text:
            self._sink.emit(kind, text)

    def _resolve_command(self, command: str | None) -> str:
        if command:
            return command
        for key in self.ENV_COMMAND_KEYS:
            value = os.environ.get(key)
            if value:
                return value
        return self.DEFAULT_COMMAND


def _kill(process: asyncio.subprocess.Process) -> None:
    """Kill the shell and everything it started."""
    if os.name == "nt":
        process.kill()
        return
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


__all__ = ["DedupeProcessError", "DedupeRunner"]
