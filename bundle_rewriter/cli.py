"""Command line interface for bundle-rewriter."""

import argparse
import logging
import pathlib
import sys

from bundle_rewriter.builder import BuildError, prepare_bundle
from bundle_rewriter.target import TargetConfig, TargetResolutionError, resolve_target_config, target_names


def _configure_logging(*, verbose: int, quiet: int) -> logging.Logger:
    """Configure the bundle-rewriter logger.

    :param verbose: Verbosity count (0+).
    :param quiet: Quietness count (0+).
    :returns: Configured logger.
    """

    level: int = logging.INFO
    if quiet >= 2:
        level = logging.ERROR
    elif quiet >= 1:
        level = logging.WARNING
    elif verbose >= 1:
        level = logging.DEBUG

    logger: logging.Logger = logging.getLogger("bundle_rewriter")
    logger.setLevel(level)
    logger.propagate = False

    handler: logging.Handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger.handlers.clear()
    logger.addHandler(handler)
    return logger


def main(argv: list[str] | None = None) -> int:
    """Run the bundle-rewriter CLI.

    :param argv: Optional argv list (excluding program name).
    :returns: Exit code.
    """

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="bundle-rewriter",
        description=(
            "Rewrite a bundled JavaScript CLI so it runs from a single compiled executable "
            "with its platform resources embedded."
        ),
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_build = subparsers.add_parser(
        "build",
        help="Rewrite the CLI source and stage files for compilation.",
    )
    p_build.add_argument(
        "--target",
        type=str,
        default="native",
        help=f"Build target: one of {', '.join(target_names())}.",
    )
    p_build.add_argument(
        "--project-root",
        type=pathlib.Path,
        default=pathlib.Path("."),
        help="Directory holding cli.js, sdk.mjs, yoga.wasm and vendor/ (default: current directory).",
    )
    p_build.add_argument(
        "--source",
        type=pathlib.Path,
        default=None,
        help="CLI entry file to rewrite (default: <project-root>/cli.js).",
    )
    p_build.add_argument(
        "-o",
        "--output",
        type=pathlib.Path,
        default=None,
        help="Output path for the rewritten CLI (default depends on --target).",
    )
    p_build.add_argument(
        "--staging-dir",
        type=pathlib.Path,
        default=None,
        help="Staging directory for the windows target (default: <project-root>/.windows-build-temp).",
    )
    p_build.add_argument(
        "--resource-root",
        type=pathlib.Path,
        default=None,
        help="Directory holding yoga.wasm and vendor/ (default: --project-root).",
    )
    p_build.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable verbose logging. Pass multiple times for more detail.",
    )
    p_build.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Reduce logging. Pass multiple times to suppress more output.",
    )

    ns = parser.parse_args(argv)
    if ns.command == "build":
        logger: logging.Logger = _configure_logging(verbose=ns.verbose, quiet=ns.quiet)
        try:
            target_cfg: TargetConfig = resolve_target_config(target=ns.target)
        except TargetResolutionError as exc:
            parser.error(str(exc))

        try:
            prepare_bundle(
                target=target_cfg,
                project_root=ns.project_root,
                source_path=ns.source,
                output_path=ns.output,
                staging_dir=ns.staging_dir,
                resource_root=ns.resource_root,
                logger=logger,
            )
        except BuildError as exc:
            logger.error(f"bundle-rewriter: error: {exc}")
            return 1
        return 0

    raise AssertionError(f"Unhandled command: {ns.command}")
