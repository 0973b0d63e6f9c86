"""Shared pytest fixtures for the bundle-rewriter test suite."""

import logging
import pathlib
import shutil

import pytest


SAMPLE_CLI_DIR: pathlib.Path = pathlib.Path(__file__).resolve().parents[1] / "examples" / "sample_cli"


@pytest.fixture(autouse=True)
def _reset_bundle_rewriter_logger():
    """Undo CLI logging setup so `caplog` sees records in every test."""

    yield
    logger: logging.Logger = logging.getLogger("bundle_rewriter")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def sample_cli_source() -> str:
    """Minified CLI source containing every rewrite target shape."""

    return (SAMPLE_CLI_DIR / "cli.js").read_text(encoding="utf-8")


@pytest.fixture
def sample_sdk_source() -> str:
    return (SAMPLE_CLI_DIR / "sdk.mjs").read_text(encoding="utf-8")


@pytest.fixture
def make_resource_root(tmp_path: pathlib.Path):
    """Create a resource root holding the given relative files."""

    def _make(relpaths: list[str], root: pathlib.Path | None = None) -> pathlib.Path:
        base: pathlib.Path = root if root is not None else tmp_path / "resources"
        base.mkdir(parents=True, exist_ok=True)
        for rel in relpaths:
            p: pathlib.Path = base / rel
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_bytes(b"\x00binary")
        return base

    return _make


@pytest.fixture
def sample_project(tmp_path: pathlib.Path) -> pathlib.Path:
    """A project root with the sample cli.js and sdk.mjs copied in."""

    root: pathlib.Path = tmp_path / "project"
    root.mkdir()
    shutil.copy2(SAMPLE_CLI_DIR / "cli.js", root / "cli.js")
    shutil.copy2(SAMPLE_CLI_DIR / "sdk.mjs", root / "sdk.mjs")
    return root
