from __future__ import annotations

import logging
from pathlib import Path

import pytest

from tests._fixtures.module_tree import ModuleTreeBuilder


@pytest.fixture(autouse=True)
def _reset_symdedupe_logger():
    """Drop handlers the CLI installs so later tests do not write to closed streams."""
    logger = logging.getLogger("symdedupe")
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def module_tree(tmp_path: Path) -> ModuleTreeBuilder:
    """Provide a package tree rooted at the pytest tmp_path."""
    return ModuleTreeBuilder(tmp_path)


@pytest.fixture
def scenario_tree(module_tree: ModuleTreeBuilder) -> ModuleTreeBuilder:
    """Package with a linked module, a linked module in a scope and a linked scope.

    node_modules/foo          -> real/foo
    node_modules/@scope/bar   -> real/bar
    node_modules/@libs        -> real/libs (holding baz and qux)
    """
    module_tree.link("foo", module_tree.real_module("foo"))
    module_tree.plain("@scope/plain")
    module_tree.link("@scope/bar", module_tree.real_module("bar", dependencies=("lodash",)))
    module_tree.real_module("libs/baz")
    module_tree.real_module("libs/qux", dependencies=())
    module_tree.link("@libs", module_tree.real / "libs")
    module_tree.plain("express")
    return module_tree
