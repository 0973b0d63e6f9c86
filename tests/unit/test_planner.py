"""Unit tests for the resource embedding planner."""

import logging
import pathlib

import pytest

from bundle_rewriter.planner import import_base_for, plan_embedding
from bundle_rewriter.platforms import descriptors_for, resource_keys_for


_DARWIN_X64_PAIR: list[str] = [
    "yoga.wasm",
    "vendor/ripgrep/x64-darwin/rg",
    "vendor/ripgrep/x64-darwin/ripgrep.node",
]


def test_plan_keeps_only_existing_files(make_resource_root) -> None:
    """Layout resource plus the x64-darwin pair yields exactly three entries."""

    root: pathlib.Path = make_resource_root(_DARWIN_X64_PAIR)

    plan = plan_embedding(resource_root=root, descriptors=descriptors_for())

    assert plan.embedded_map() == {
        "yoga.wasm": "__embeddedYogaWasm",
        "vendor/ripgrep/x64-darwin/rg": "__embeddedRgDarwinX64",
        "vendor/ripgrep/x64-darwin/ripgrep.node": "__embeddedRgNodeDarwinX64",
    }
    assert len(plan.missing) == len(descriptors_for()) - 3


def test_lookup_for_uncovered_platform_falls_back_to_filesystem(make_resource_root) -> None:
    root: pathlib.Path = make_resource_root(_DARWIN_X64_PAIR)
    plan = plan_embedding(resource_root=root, descriptors=descriptors_for())

    arm_keys = resource_keys_for("darwin", "arm64")
    x64_keys = resource_keys_for("darwin", "x64")

    assert plan.lookup(arm_keys.executable, "/opt/app/vendor/ripgrep/arm64-darwin/rg") == (
        "/opt/app/vendor/ripgrep/arm64-darwin/rg"
    )
    assert plan.lookup(x64_keys.executable, "unused") == "__embeddedRgDarwinX64"


def test_render_references_only_discovered_bindings(make_resource_root) -> None:
    root: pathlib.Path = make_resource_root(_DARWIN_X64_PAIR)
    code: str = plan_embedding(resource_root=root, descriptors=descriptors_for()).render()

    import_lines = [line for line in code.splitlines() if line.startswith("import ")]
    assert import_lines == [
        'import __embeddedYogaWasm from "./yoga.wasm" with { type: "file" };',
        'import __embeddedRgDarwinX64 from "./vendor/ripgrep/x64-darwin/rg" with { type: "file" };',
        'import __embeddedRgNodeDarwinX64 from "./vendor/ripgrep/x64-darwin/ripgrep.node" with { type: "file" };',
    ]
    assert "  'vendor/ripgrep/x64-darwin/rg': __embeddedRgDarwinX64," in code
    assert "__embeddedRgDarwinArm64" not in code
    assert "function __embeddedPlatformKey()" in code
    assert "function __embeddedResourceKeys()" in code


def test_render_defaults_platform_key_when_process_is_unavailable(tmp_path: pathlib.Path) -> None:
    code: str = plan_embedding(resource_root=tmp_path, descriptors=descriptors_for()).render()

    assert 'if (typeof process === "undefined" || !process.platform) return "x64-win32";' in code
    assert 'if (process.platform === "win32") return "x64-win32";' in code
    assert "} catch {\n    return \"x64-win32\";" in code
    assert "bridgeLibrary: `vendor/ripgrep/${platform}/ripgrep.node`," in code


def test_empty_root_renders_an_empty_map(tmp_path: pathlib.Path) -> None:
    plan = plan_embedding(resource_root=tmp_path, descriptors=descriptors_for())
    code: str = plan.render()

    assert plan.resources == ()
    assert not any(line.startswith("import ") for line in code.splitlines())
    assert "const __embeddedFiles = {\n\n};" in code


def test_render_is_idempotent(make_resource_root) -> None:
    """Re-planning an unchanged root yields byte-identical Embedding Code."""

    root: pathlib.Path = make_resource_root(_DARWIN_X64_PAIR + ["vendor/ripgrep/x64-win32/rg.exe"])

    first: str = plan_embedding(resource_root=root, descriptors=descriptors_for()).render()
    second: str = plan_embedding(resource_root=root, descriptors=descriptors_for()).render()

    assert first == second


def test_directory_with_resource_name_is_not_embedded(tmp_path: pathlib.Path) -> None:
    (tmp_path / "yoga.wasm").mkdir()

    plan = plan_embedding(resource_root=tmp_path, descriptors=descriptors_for(("x64-linux",)))

    assert plan.resources == ()


def test_missing_resources_are_logged_at_debug(
    tmp_path: pathlib.Path, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.DEBUG, logger="bundle_rewriter")

    plan_embedding(resource_root=tmp_path, descriptors=descriptors_for(("x64-linux",)))

    assert "resource not found, not embedding: vendor/ripgrep/x64-linux/rg" in caplog.text
    assert "embedding 0 of 3 resources" in caplog.text


@pytest.mark.parametrize(
    ("resource_rel", "import_rel", "expected"),
    [
        ("project", "project", "."),
        ("project", "project/dist", ".."),
        ("project", "dist", "../project"),
        ("project/res", "project", "./res"),
    ],
)
def test_import_base_is_relative_to_the_importing_directory(
    tmp_path: pathlib.Path, resource_rel: str, import_rel: str, expected: str
) -> None:
    base: str = import_base_for(resource_root=tmp_path / resource_rel, import_dir=tmp_path / import_rel)

    assert base == expected


def test_imports_resolve_from_a_different_output_directory(make_resource_root, tmp_path: pathlib.Path) -> None:
    root: pathlib.Path = make_resource_root(_DARWIN_X64_PAIR)
    out_dir: pathlib.Path = tmp_path / "dist"

    plan = plan_embedding(resource_root=root, descriptors=descriptors_for(), import_dir=out_dir)
    code: str = plan.render()

    assert 'import __embeddedYogaWasm from "../resources/yoga.wasm" with { type: "file" };' in code
    assert "  'yoga.wasm': __embeddedYogaWasm," in code
    for line in code.splitlines():
        if line.startswith("import ") is True:
            spec: str = line.split('"')[1]
            assert (out_dir / spec).resolve().is_file()
