"""Turns a scanned module directory into the modules and links to stage."""

from __future__ import annotations

import os
from typing import Dict, Iterable, List

from .models import Classification, ModuleDirectory, ScopeEntry, SymlinkedModule, Symlink


class ConflictingSymlinkError(RuntimeError):
    """Raised when a symlinked scope contains a module that is itself a symlink."""

    def __init__(self, scope_path: str, module_path: str) -> None:
        super().__init__(
            "Symlinked modules are not allowed inside symlinked scopes "
            f"({module_path} inside {scope_path})"
        )
        self.scope_path = scope_path
        self.module_path = module_path


def _qualified_name(scope: ScopeEntry, module_name: str) -> str:
    return f"{scope.name}/{module_name}"


def _modules_from_linked_scope(scope: ScopeEntry) -> List[SymlinkedModule]:
    conflicts = [module for module in scope.modules if module.is_symlink]
    if conflicts:
        raise ConflictingSymlinkError(scope.path, conflicts[0].path)
    return [
        SymlinkedModule(
            name=_qualified_name(scope, module.name),
            path=module.path,
            target=os.path.join(scope.resolved_target, module.name),
            has_symlinked_scope=True,
            scope_path=scope.path,
            scope_target=scope.resolved_target,
        )
        for module in scope.modules
    ]


def _linked_modules_in_scope(scope: ScopeEntry) -> List[SymlinkedModule]:
    return [
        SymlinkedModule(
            name=_qualified_name(scope, module.name),
            path=module.path,
            target=module.resolved_target,
        )
        for module in scope.modules
        if module.is_symlink
    ]


def collapse_symlinks(modules: Iterable[SymlinkedModule]) -> List[Symlink]:
    """Return the links to remove and recreate for ``modules``.

    Modules under a linked scope share one link per scope path; the first
    module seen for a scope supplies its target.
    """
    symlinks: List[Symlink] = []
    seen_scopes: Dict[str, Symlink] = {}
    for module in modules:
        if not module.has_symlinked_scope:
            symlinks.append(Symlink(path=module.path, target=module.target))
            continue
        if module.scope_path in seen_scopes:
            continue
        link = Symlink(path=module.scope_path, target=module.scope_target)
        seen_scopes[module.scope_path] = link
        symlinks.append(link)
    return symlinks


def classify(directory: ModuleDirectory) -> Classification:
    """Collect every linked module of ``directory`` and the links covering them.

    Three layouts are recognised, one level deep only:

    - ``node_modules/linked-module``
    - ``node_modules/@linked-scope/module``
    - ``node_modules/@scope/linked-module``
    """
    modules: List[SymlinkedModule] = []
    for scope in directory.scopes:
        if scope.is_symlink:
            modules.extend(_modules_from_linked_scope(scope))
        else:
            modules.extend(_linked_modules_in_scope(scope))

    for module in directory.modules:
        if module.is_symlink:
            modules.append(
                SymlinkedModule(name=module.name, path=module.path, target=module.resolved_target)
            )

    return Classification(modules=tuple(modules), symlinks=tuple(collapse_symlinks(modules)))


__all__ = ["ConflictingSymlinkError", "classify", "collapse_symlinks"]
