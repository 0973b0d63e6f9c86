"""Bundle preparation.

This module drives one preparation run:

- For the Windows target it first stages the auxiliary manifest, ``yoga.wasm``
  and the ``vendor/`` tree into a build directory; those staged copies are
  what gets embedded.
- It plans which platform resources exist and renders the Embedding Code for
  them, with import specifiers relative to the rewritten file's directory.
- It rewrites the CLI entry file: shim + environment indicators + Embedding
  Code go after the shebang, then the target's rewrite rules run in order.
- For the Windows target it also rewrites ``sdk.mjs`` into the build directory.

The result is handed to ``bun build --compile``, which this tool never runs.
Only failing to read the input or to write output is fatal.
"""

from dataclasses import dataclass
import logging
import os
import pathlib
import shutil
import time

from bundle_rewriter.planner import EmbeddingPlan, plan_embedding
from bundle_rewriter.platforms import LAYOUT_ENGINE_KEY, DetectedPlatform, descriptors_for, detect_platform
from bundle_rewriter.rewriter import RewriteResult, RewriteRule, rewrite
from bundle_rewriter.rules import create_require_aliases, rules_for_target, self_location_rules
from bundle_rewriter.shim import render_env_flags, render_shim
from bundle_rewriter.target import TargetConfig


class BuildError(RuntimeError):
    """Raised when an input cannot be read or an output cannot be written."""


MANIFEST_FILES: tuple[str, ...] = ("package.json", "sdk.d.ts")
DEFAULT_SOURCE_NAME: str = "cli.js"
SDK_NAME: str = "sdk.mjs"
WINDOWS_STAGING_NAME: str = ".windows-build-temp"


@dataclass(frozen=True, slots=True)
class CopyStats:
    """Stats collected while copying a directory tree.

    :ivar files_copied: Number of files copied.
    :ivar bytes_copied: Total bytes copied (best-effort).
    """

    files_copied: int
    bytes_copied: int


@dataclass(frozen=True, slots=True)
class BundleOutputs:
    """Files produced by :func:`prepare_bundle`.

    :ivar cli_path: Rewritten CLI entry file.
    :ivar sdk_path: Rewritten SDK module, if one was processed.
    :ivar staging_dir: Staging directory (Windows target only).
    :ivar plan: Embedding plan used for the CLI.
    :ivar rewrite: Rewrite diagnostics for the CLI.
    """

    cli_path: pathlib.Path
    sdk_path: pathlib.Path | None
    staging_dir: pathlib.Path | None
    plan: EmbeddingPlan
    rewrite: RewriteResult


def _read_source(path: pathlib.Path) -> str:
    """Read a source file as UTF-8.

    :param path: Source file.
    :returns: File contents.
    :raises BuildError: If the file cannot be read or decoded.
    """

    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise BuildError(f"Cannot read source file {path}: {exc}") from exc


def _write_output(path: pathlib.Path, text: str) -> None:
    """Write a rewritten source file as UTF-8.

    :param path: Output path.
    :param text: File contents.
    :raises BuildError: If the file cannot be written.
    """

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise BuildError(f"Cannot write output file {path}: {exc}") from exc


def render_header(*, target: TargetConfig, plan: EmbeddingPlan, prefer_argv: bool = True) -> str:
    """Render the text injected after the shebang of the CLI entry file.

    :param target: Build target.
    :param plan: Embedding plan.
    :param prefer_argv: Passed to :func:`~bundle_rewriter.shim.render_shim`.
    :returns: Shim, environment indicators and Embedding Code.
    """

    return render_shim(prefer_argv=prefer_argv) + render_env_flags(target.env_flags) + plan.render()


def rewrite_cli_source(
    source: str,
    *,
    target: TargetConfig,
    plan: EmbeddingPlan,
    logger: logging.Logger | None = None,
) -> RewriteResult:
    """Rewrite the CLI entry file text for ``target``.

    :param source: Original CLI source.
    :param target: Build target.
    :param plan: Embedding plan.
    :param logger: Optional logger for progress output.
    :returns: Rewrite result.
    """

    return rewrite(
        source,
        rules_for_target(target, require_aliases=create_require_aliases(source)),
        header=render_header(target=target, plan=plan),
        logger=logger,
    )


def rewrite_sdk_source(source: str, *, logger: logging.Logger | None = None) -> RewriteResult:
    """Rewrite the SDK module for the Windows executable.

    The SDK is loaded by a host script, so its shim resolves from
    ``__filename`` rather than ``process.argv[1]``.

    :param source: Original SDK source.
    :param logger: Optional logger for progress output.
    :returns: Rewrite result.
    """

    header: str = "\n// Windows executable compatibility wrapper" + render_shim(prefer_argv=False)
    rules: list[RewriteRule] = self_location_rules(require_aliases=create_require_aliases(source))
    return rewrite(source, rules, header=header, logger=logger)


def _copy_tree_all(*, src: pathlib.Path, dst: pathlib.Path) -> CopyStats:
    """Copy a directory tree without filtering.

    :param src: Source directory.
    :param dst: Destination directory.
    :returns: Copy statistics.
    """

    files_copied: int = 0
    bytes_copied: int = 0
    for p in sorted(src.rglob("*")):
        rel: pathlib.Path = p.relative_to(src)
        if p.is_dir() is True:
            (dst / rel).mkdir(parents=True, exist_ok=True)
            continue
        if p.is_file() is True:
            target_path: pathlib.Path = dst / rel
            target_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(p, target_path)
            files_copied += 1
            try:
                bytes_copied += p.stat().st_size
            except OSError:
                pass
    return CopyStats(files_copied=files_copied, bytes_copied=bytes_copied)


def _stage_support_files(
    *,
    project_root: pathlib.Path,
    resource_root: pathlib.Path,
    staging_dir: pathlib.Path,
    logger: logging.Logger,
) -> list[str]:
    """Copy the auxiliary manifest and the embeddable resources into the staging directory.

    The manifest comes from ``project_root``; ``yoga.wasm`` and the ``vendor/``
    tree come from ``resource_root``. Missing sources are skipped.

    :param project_root: Directory holding ``package.json`` and ``sdk.d.ts``.
    :param resource_root: Directory holding ``yoga.wasm`` and ``vendor/``.
    :param staging_dir: Destination directory.
    :param logger: Logger for progress output.
    :returns: Names of the copied entries.
    :raises BuildError: If a copy fails.
    """

    sources: list[pathlib.Path] = [project_root / name for name in MANIFEST_FILES]
    sources.append(resource_root / LAYOUT_ENGINE_KEY)

    copied: list[str] = []
    try:
        for src in sources:
            if src.is_file() is False:
                continue
            shutil.copy2(src, staging_dir / src.name)
            copied.append(src.name)
            logger.info(f"bundle-rewriter: ✓ copied {src.name}")

        vendor_src: pathlib.Path = resource_root / "vendor"
        if vendor_src.is_dir() is True:
            stats: CopyStats = _copy_tree_all(src=vendor_src, dst=staging_dir / "vendor")
            copied.append("vendor")
            logger.info(
                f"bundle-rewriter: ✓ copied vendor directory ({stats.files_copied} files, "
                f"{stats.bytes_copied / (1024 * 1024):.1f} MiB)"
            )
    except OSError as exc:
        raise BuildError(f"Cannot stage support files into {staging_dir}: {exc}") from exc
    return copied


def prepare_bundle(
    *,
    target: TargetConfig,
    project_root: pathlib.Path,
    source_path: pathlib.Path | None = None,
    output_path: pathlib.Path | None = None,
    staging_dir: pathlib.Path | None = None,
    resource_root: pathlib.Path | None = None,
    logger: logging.Logger | None = None,
) -> BundleOutputs:
    """Prepare the CLI (and for Windows, the SDK and staging tree) for compilation.

    :param target: Build target.
    :param project_root: Directory holding ``cli.js`` and its auxiliary files.
    :param source_path: CLI entry file; defaults to ``<project_root>/cli.js``.
    :param output_path: Rewritten CLI path; defaults to the target's output name
        next to the source (native) or in the staging directory (windows).
    :param staging_dir: Windows staging directory; defaults to
        ``<project_root>/.windows-build-temp``.
    :param resource_root: Root of ``yoga.wasm`` and ``vendor/``; defaults to ``project_root``.
    :param logger: Optional logger for progress output.
    :returns: Produced files and diagnostics.
    :raises BuildError: If an input cannot be read or an output cannot be written.
    """

    if logger is None:
        logger = logging.getLogger("bundle_rewriter")

    if source_path is None:
        source_path = project_root / DEFAULT_SOURCE_NAME
    if resource_root is None:
        resource_root = project_root

    stage: pathlib.Path | None = None
    if target.windows_only is True:
        stage = staging_dir if staging_dir is not None else project_root / WINDOWS_STAGING_NAME
    if output_path is None:
        out_dir: pathlib.Path = stage if stage is not None else source_path.parent
        output_path = out_dir / target.cli_output_name

    t_total0: float = time.perf_counter()
    logger.info(f"bundle-rewriter: preparing {target.name} bundle")
    logger.info(f"bundle-rewriter: source={source_path}")
    logger.info(f"bundle-rewriter: output={output_path}")
    if logger.isEnabledFor(logging.DEBUG) is True:
        host: DetectedPlatform = detect_platform()
        logger.debug(f"bundle-rewriter: host platform key={host.key} ({host.source})")
        logger.debug(f"bundle-rewriter: resource_root={resource_root} segments={list(target.segments)}")

    source: str = _read_source(source_path)

    # The Windows build embeds the staged copies, so staging happens before planning.
    embed_root: pathlib.Path = resource_root
    if stage is not None:
        try:
            stage.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BuildError(f"Cannot create staging directory {stage}: {exc}") from exc
        _stage_support_files(
            project_root=project_root,
            resource_root=resource_root,
            staging_dir=stage,
            logger=logger,
        )
        embed_root = stage

    plan: EmbeddingPlan = plan_embedding(
        resource_root=embed_root,
        descriptors=descriptors_for(target.segments),
        import_dir=output_path.parent,
        logger=logger,
    )
    result: RewriteResult = rewrite_cli_source(source, target=target, plan=plan, logger=logger)
    logger.info(
        f"bundle-rewriter: {len(result.fired)} rules applied, {len(result.skipped)} skipped"
    )

    _write_output(output_path, result.source)
    logger.info(f"bundle-rewriter: wrote {output_path}")

    sdk_out: pathlib.Path | None = None
    if stage is not None:
        sdk_src: pathlib.Path = source_path.parent / SDK_NAME
        if sdk_src.is_file() is True:
            logger.info(f"bundle-rewriter: processing {SDK_NAME}")
            sdk_result: RewriteResult = rewrite_sdk_source(_read_source(sdk_src), logger=logger)
            sdk_out = stage / SDK_NAME
            _write_output(sdk_out, sdk_result.source)
            logger.info(f"bundle-rewriter: wrote {sdk_out}")
        else:
            logger.info(f"bundle-rewriter: {SDK_NAME} not found; skipped")

    t_total1: float = time.perf_counter()
    logger.info(f"bundle-rewriter: done in {t_total1 - t_total0:.2f}s")

    compile_dir: pathlib.Path = output_path.parent
    logger.info("bundle-rewriter: compile with:")
    logger.info(f"  cd {os.fspath(compile_dir)}")
    logger.info(f"  {target.compile_hint}")

    return BundleOutputs(
        cli_path=output_path,
        sdk_path=sdk_out,
        staging_dir=stage,
        plan=plan,
        rewrite=result,
    )
