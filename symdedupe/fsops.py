"""Async wrappers around the filesystem primitives the pipeline sequences."""

from __future__ import annotations

import asyncio
import os
import shutil
from typing import Callable, TypeVar

T = TypeVar("T")


def _copy_file(source: str, destination: str) -> None:
    os.makedirs(os.path.dirname(destination), exist_ok=True)
    shutil.copy2(source, destination)


def _move(source: str, destination: str) -> None:
    if os.path.lexists(destination):
        raise FileExistsError(f"Refusing to overwrite existing path {destination}")
    os.makedirs(os.path.dirname(destination), exist_ok=True)
    shutil.move(source, destination)


def _remove_tree(path: str) -> None:
    if os.path.islink(path):
        raise IsADirectoryError(f"Expected a staged directory but found a link at {path}")
    shutil.rmtree(path)


def _symlink(target: str, path: str, link_type: str) -> None:
    if link_type == "junction" and os.name == "nt":
        import _winapi

        _winapi.CreateJunction(target, path)
        return
    os.symlink(target, path, target_is_directory=True)


class LocalFilesystem:
    """Runs each primitive in a worker thread so a phase can fan out."""

    def __init__(self, link_type: str = "junction") -> None:
        self.link_type = link_type

    async def _call(self, func: Callable[..., T], *args: object) -> T:
        return await asyncio.to_thread(func, *args)

    async def exists(self, path: str) -> bool:
        return await self._call(os.path.lexists, path)

    async def ensure_dir(self, path: str) -> None:
        await self._call(os.makedirs, path, 0o777, True)

    async def copy_file(self, source: str, destination: str) -> None:
        await self._call(_copy_file, source, destination)

    async def move(self, source: str, destination: str) -> None:
        await self._call(_move, source, destination)

    async def unlink(self, path: str) -> None:
        await self._call(os.unlink, path)

    async def remove_tree(self, path: str) -> None:
        await self._call(_remove_tree, path)

    async def symlink(self, target: str, path: str) -> None:
        await self._call(_symlink, target, path, self.link_type)


__all__ = ["LocalFilesystem"]
