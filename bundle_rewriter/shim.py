"""Runtime path/URL resolution shim.

Once the program is embedded in a compiled binary, ``import.meta.url`` no
longer names a file on disk. The shim injected at the top of the rewritten
source computes the executable location once at startup:

- ``__executablePath``: absolute path of the running executable,
- ``__executableDir``: its containing directory,
- ``__executableUrl``: a ``file://`` URL for it.

The precedence is ``process.argv[1]`` (made absolute), then a pre-existing
``__filename``, then ``<cwd>/claude-code.exe``.

:func:`resolve_executable_location` and :func:`to_file_url` model the same
resolution in Python.
"""

from dataclasses import dataclass
import ntpath
import posixpath
import textwrap
import types
import urllib.parse

from bundle_rewriter.platforms import WINDOWS_OS


PLACEHOLDER_EXECUTABLE_NAME: str = "claude-code.exe"


@dataclass(frozen=True, slots=True)
class ExecutableLocation:
    """Process-wide executable location, computed once at startup.

    :ivar path: Absolute executable path.
    :ivar directory: Directory containing ``path``.
    :ivar url: ``file://`` URL for ``path``.
    """

    path: str
    directory: str
    url: str


def _path_module(os_family: str) -> types.ModuleType:
    if os_family == WINDOWS_OS:
        return ntpath
    return posixpath


def to_file_url(path: str, *, cwd: str, os_family: str) -> str:
    """Build a ``file://`` URL from a path.

    The path is made absolute first. Backslashes become forward slashes, a
    path without a leading ``/`` (a drive-letter path) gets the third slash,
    and characters such as ``#``, ``?``, ``%`` and spaces are percent-encoded
    the way ``url.pathToFileURL`` does.

    :param path: Absolute or relative path.
    :param cwd: Working directory used to resolve relative paths.
    :param os_family: Node-style OS name that decides path semantics.
    :returns: File URL.
    """

    mod: types.ModuleType = _path_module(os_family)
    resolved: str = mod.normpath(mod.join(cwd, path))
    resolved = urllib.parse.quote(resolved.replace("\\", "/"), safe="/:")
    if resolved.startswith("/") is True:
        return "file://" + resolved
    return "file:///" + resolved


def is_valid_file_url(url: str) -> bool:
    """Check that ``url`` parses as a local, absolute ``file://`` URL.

    ``file://.`` and ``file://claude-code.exe`` put the path in the host
    position and are rejected. So is any URL with a query or fragment: an
    unencoded ``#`` or ``?`` in a path cuts the path short.

    :param url: Candidate URL.
    :returns: ``True`` if it is usable as a location identifier.
    """

    if "#" in url or "?" in url:
        return False
    try:
        parts = urllib.parse.urlsplit(url)
    except ValueError:
        return False

    if parts.scheme != "file":
        return False
    if parts.netloc not in {"", "localhost"}:
        return False
    if parts.path.startswith("/") is False:
        return False
    if "\\" in parts.path:
        return False
    return True


def resolve_executable_location(
    argv: list[str],
    *,
    cwd: str,
    os_family: str,
    preexisting: str | None = None,
    prefer_argv: bool = True,
) -> ExecutableLocation:
    """Resolve the executable location the way the injected shim does.

    :param argv: Invocation argument list (``process.argv``).
    :param cwd: Current working directory.
    :param os_family: Node-style OS name that decides path semantics.
    :param preexisting: Value of an already-defined ``__filename``, if any.
    :param prefer_argv: Consult ``argv[1]`` first (off for library modules).
    :returns: Executable location; never raises for missing inputs.
    """

    mod: types.ModuleType = _path_module(os_family)
    exe: str
    if prefer_argv is True and len(argv) >= 2 and len(argv[1]) > 0:
        arg: str = argv[1]
        exe = arg if mod.isabs(arg) is True else mod.normpath(mod.join(cwd, arg))
    elif preexisting is not None and len(preexisting) > 0:
        exe = mod.normpath(mod.join(cwd, preexisting))
    else:
        exe = mod.join(cwd, PLACEHOLDER_EXECUTABLE_NAME)

    return ExecutableLocation(
        path=exe,
        directory=mod.dirname(exe),
        url=to_file_url(exe, cwd=cwd, os_family=os_family),
    )


def render_shim(*, prefer_argv: bool = True) -> str:
    """Render the shim header.

    :param prefer_argv: Consult ``process.argv[1]`` first. The SDK module is
        loaded by a host script, so it resolves from ``__filename`` only.
    :returns: JavaScript source fragment ending with a blank line.
    """

    argv_line: str = ""
    if prefer_argv is True:
        argv_line = (
            '  const arg = typeof process !== "undefined" && process.argv ? process.argv[1] : undefined;\n'
            "  if (arg) return path.isAbsolute(arg) ? arg : path.resolve(arg);\n"
        )

    code: str = _SHIM_TEMPLATE
    code = code.replace("__BRW_ARGV_LINES__\n", argv_line)
    code = code.replace("__BRW_PLACEHOLDER__", PLACEHOLDER_EXECUTABLE_NAME)
    return code


def render_env_flags(flags: tuple[str, ...]) -> str:
    """Render the unconditional environment indicator assignments.

    :param flags: Environment variable names set to ``"1"``.
    :returns: JavaScript source fragment ending with a blank line.
    """

    if len(flags) == 0:
        return ""
    lines: list[str] = [f'process.env.{flag} = "1";' for flag in flags]
    return "\n".join(lines) + "\n\n"


_SHIM_TEMPLATE: str = textwrap.dedent(
    r"""
    // Executable location for embedded execution
    const __executablePath = (() => {
      const path = require("path");
    __BRW_ARGV_LINES__
      if (typeof __filename !== "undefined" && __filename) return path.resolve(__filename);
      return path.join(process.cwd(), "__BRW_PLACEHOLDER__");
    })();
    const __executableDir = require("path").dirname(__executablePath);
    const __executableUrl = require("url").pathToFileURL(__executablePath).href;
    if (typeof globalThis.__filename === "undefined") {
      globalThis.__filename = __executablePath;
      globalThis.__dirname = __executableDir;
    }

    """
)
