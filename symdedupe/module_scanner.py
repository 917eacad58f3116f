"""Module directory scanning utilities."""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Sequence, Tuple

from .logging import get_logger
from .models import DirectoryListing, ModuleDirectory, ModuleEntry, ScopeEntry

DEFAULT_SCOPE_PREFIX = "@"


class ScanError(RuntimeError):
    """Raised when the module directory cannot be read or a link cannot be resolved."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Failed to scan {path}: {reason}")
        self.path = path
        self.reason = reason


def _list_directory(dir_path: str) -> DirectoryListing:
    try:
        entries = sorted(os.listdir(dir_path))
    except OSError as exc:
        raise ScanError(dir_path, exc.strerror or str(exc)) from exc
    return DirectoryListing(path=dir_path, entries=tuple(entries))


def _link_status(path: str) -> Tuple[bool, str]:
    """Return ``(is_symlink, resolved_target)`` for ``path``."""
    if not (os.path.islink(path) or _is_junction(path)):
        return False, ""
    try:
        resolved = os.path.realpath(path, strict=True)
    except OSError as exc:
        raise ScanError(path, f"broken symlink ({exc.strerror or exc})") from exc
    return True, resolved


def _is_junction(path: str) -> bool:
    isjunction = getattr(os.path, "isjunction", None)
    return bool(isjunction and isjunction(path))


def _module_entries(listing: DirectoryListing, names: Sequence[str]) -> List[ModuleEntry]:
    modules: List[ModuleEntry] = []
    for name in names:
        path = os.path.join(listing.path, name)
        is_link, target = _link_status(path)
        modules.append(
            ModuleEntry(name=name, path=path, is_symlink=is_link, resolved_target=target)
        )
    return modules


def _scope_entries(listing: DirectoryListing, names: Sequence[str]) -> List[ScopeEntry]:
    scopes: List[ScopeEntry] = []
    for name in names:
        path = os.path.join(listing.path, name)
        is_link, target = _link_status(path)
        if not os.path.isdir(path):
            raise ScanError(path, "scope is not a directory")
        # One level only: every child of a scope is a module.
        scope_listing = _list_directory(path)
        nested = _module_entries(scope_listing, scope_listing.entries)
        scopes.append(
            ScopeEntry(
                name=name,
                path=path,
                is_symlink=is_link,
                resolved_target=target,
                modules=tuple(nested),
            )
        )
    return scopes


class ModuleScanner:
    """Reads a module directory and records which scopes and modules are links."""

    def __init__(self, scope_prefix: str = DEFAULT_SCOPE_PREFIX) -> None:
        if not scope_prefix:
            raise ValueError("scope_prefix must not be empty")
        self.scope_prefix = scope_prefix
        self.logger = get_logger("scanner")

    def is_scope(self, name: str) -> bool:
        return name.startswith(self.scope_prefix)

    def scan(self, module_dir: str | Path) -> ModuleDirectory:
        """Return every scope and module one level below ``module_dir``."""
        dir_path = str(Path(module_dir).expanduser())
        if not os.path.isdir(dir_path):
            raise ScanError(dir_path, "module directory not found")

        listing = _list_directory(dir_path)
        scope_names = [name for name in listing.entries if self.is_scope(name)]
        module_names = [name for name in listing.entries if not self.is_scope(name)]
        scopes = _scope_entries(listing, scope_names)
        modules = _module_entries(listing, module_names)
        self.logger.debug(
            "Scanned %s: %d scopes, %d modules", dir_path, len(scopes), len(modules)
        )
        return ModuleDirectory(path=dir_path, scopes=tuple(scopes), modules=tuple(modules))
