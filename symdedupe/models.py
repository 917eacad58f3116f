"""Core data models shared across symdedupe components."""

from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class DirectoryListing:
    """Immediate children of a directory, as returned by one listing."""

    path: str
    entries: Tuple[str, ...]


@dataclass(frozen=True)
class ModuleEntry:
    """A single entry of a module directory and its link status."""

    name: str
    path: str
    is_symlink: bool
    resolved_target: str = ""


@dataclass(frozen=True)
class ScopeEntry:
    """A scope directory (``@name``) together with its nested modules."""

    name: str
    path: str
    is_symlink: bool
    resolved_target: str = ""
    modules: Tuple[ModuleEntry, ...] = ()


@dataclass(frozen=True)
class ModuleDirectory:
    """Scan result for a module directory, one level of scopes deep."""

    path: str
    scopes: Tuple[ScopeEntry, ...] = ()
    modules: Tuple[ModuleEntry, ...] = ()


@dataclass(frozen=True)
class SymlinkedModule:
    """A module that is linked directly or through its scope.

    ``path`` is where the link lives inside the module directory and where the
    staged copy is materialised; ``target`` is the real module directory.
    ``scope_path`` and ``scope_target`` are only set when the parent scope is
    the link.
    """

    name: str
    path: str
    target: str
    has_symlinked_scope: bool = False
    scope_path: str = ""
    scope_target: str = ""


@dataclass(frozen=True)
class Symlink:
    """A link to remove before staging and recreate afterwards."""

    path: str
    target: str


@dataclass(frozen=True)
class Classification:
    """Modules to stage and the deduplicated links that cover them."""

    modules: Tuple[SymlinkedModule, ...] = field(default_factory=tuple)
    symlinks: Tuple[Symlink, ...] = field(default_factory=tuple)
