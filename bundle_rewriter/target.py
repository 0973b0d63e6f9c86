"""Build target resolution.

Two targets are supported:

- ``native``: the cross-platform build. Every supported platform segment is a
  candidate for embedding and the platform is picked at runtime.
- ``windows``: the Windows executable build. Only the ``x64-win32`` resources
  are embedded and an additional self-location rewrite pass runs on top of the
  embedding pass.
"""

from dataclasses import dataclass

from bundle_rewriter.platforms import SUPPORTED_SEGMENTS, WINDOWS_SEGMENT


class TargetResolutionError(ValueError):
    """Raised when a target name cannot be resolved."""


@dataclass(frozen=True, slots=True)
class TargetConfig:
    """Build target configuration.

    :ivar name: Target name (``native`` or ``windows``).
    :ivar segments: Platform segments whose resources are candidates for embedding.
    :ivar env_flags: Environment indicators the rewritten program sets at startup.
    :ivar windows_only: Whether the target is the Windows executable variant.
    :ivar cli_output_name: File name of the rewritten CLI entry file.
    :ivar compile_hint: Follow-up compile command printed after a successful run.
    """

    name: str
    segments: tuple[str, ...]
    env_flags: tuple[str, ...]
    windows_only: bool
    cli_output_name: str
    compile_hint: str


BUNDLED_FLAG: str = "CLAUDE_CODE_BUNDLED"
WINDOWS_EXECUTABLE_FLAG: str = "CLAUDE_CODE_WINDOWS_EXECUTABLE"

_TARGETS: dict[str, TargetConfig] = {
    "native": TargetConfig(
        name="native",
        segments=SUPPORTED_SEGMENTS,
        env_flags=(BUNDLED_FLAG,),
        windows_only=False,
        cli_output_name="cli-native-bundled.js",
        compile_hint="bun build --compile --minify ./cli-native-bundled.js --outfile dist/claude-code",
    ),
    "windows": TargetConfig(
        name="windows",
        segments=(WINDOWS_SEGMENT,),
        env_flags=(BUNDLED_FLAG, WINDOWS_EXECUTABLE_FLAG),
        windows_only=True,
        cli_output_name="cli-windows.js",
        compile_hint=(
            "bun build --compile --minify --target=bun-windows-x64 ./cli-windows.js "
            "--outfile ../claude-code-windows.exe"
        ),
    ),
}


def target_names() -> list[str]:
    return sorted(_TARGETS)


def resolve_target_config(*, target: str) -> TargetConfig:
    """Resolve a user-supplied target name into a :class:`~TargetConfig`.

    :param target: Target name; ``win32`` and ``win`` are accepted as aliases of ``windows``.
    :returns: Resolved target config.
    :raises TargetResolutionError: If the target is not recognized.
    """

    name: str = target.strip().lower()
    if name in {"win", "win32"}:
        name = "windows"

    cfg: TargetConfig | None = _TARGETS.get(name)
    if cfg is None:
        raise TargetResolutionError(
            f"Unrecognized target {target!r}; expected one of: {', '.join(target_names())}."
        )
    return cfg
