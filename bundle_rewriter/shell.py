"""Shell-availability fallback.

The upstream program searches a list of candidate shells and throws when none
is usable. Inside a self-contained executable that failure is never useful, so
the throw is rewritten into an assignment of a default shell for the OS family.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
import re

from bundle_rewriter.platforms import WINDOWS_OS
from bundle_rewriter.rewriter import RewriteRule


WINDOWS_DEFAULT_SHELL: str = "cmd.exe"
POSIX_DEFAULT_SHELL: str = "/bin/sh"


@dataclass(frozen=True, slots=True)
class ShellResolution:
    """Outcome of a shell search.

    :ivar path: Chosen shell.
    :ivar state: ``resolved`` if a candidate was usable, ``defaulted`` otherwise.
    """

    path: str
    state: str


def default_shell(os_family: str) -> str:
    if os_family == WINDOWS_OS:
        return WINDOWS_DEFAULT_SHELL
    return POSIX_DEFAULT_SHELL


def resolve_shell(
    candidates: Iterable[str],
    is_usable: Callable[[str], bool],
    *,
    os_family: str,
) -> ShellResolution:
    """Search ``candidates`` for a usable shell, falling back to the family default.

    A candidate whose check raises ``OSError`` counts as unusable.

    :param candidates: Candidate shell paths in preference order.
    :param is_usable: Usability check.
    :param os_family: Node-style OS name.
    :returns: Shell resolution; never raises for an exhausted search.
    """

    for candidate in candidates:
        try:
            usable: bool = is_usable(candidate)
        except OSError:
            usable = False
        if usable is True:
            return ShellResolution(path=candidate, state="resolved")
    return ShellResolution(path=default_shell(os_family), state="defaulted")


# let J=X.find((A)=>...);if(!J){...throw ...}
# The throw block may hold template-literal interpolations (${...}).
_SHELL_CHECK_RE: re.Pattern[str] = re.compile(
    r"(?P<decl>\b(?:let|var)\s+(?P<var>[\w$]+)\s*=\s*[\w$.]+\.find\s*\([^;]*?\)\s*;)"
    r"\s*if\s*\(\s*!\s*(?P=var)\s*\)\s*"
    r"\{(?:[^{}]|\$\{[^{}]*\})*?\bthrow\b(?:[^{}]|\$\{[^{}]*\})*\}"
)


def shell_fallback_rule(*, windows_only: bool) -> RewriteRule:
    """Build the rule that replaces the "no shell found" throw.

    :param windows_only: Emit a literal ``cmd.exe`` default instead of picking
        the default from ``process.platform`` at runtime.
    :returns: Rewrite rule.
    """

    default_expr: str
    if windows_only is True:
        default_expr = f'"{WINDOWS_DEFAULT_SHELL}"'
    else:
        default_expr = (
            f'(process.platform==="{WINDOWS_OS}"?"{WINDOWS_DEFAULT_SHELL}":"{POSIX_DEFAULT_SHELL}")'
        )

    def replace(m: re.Match[str]) -> str:
        var: str = m.group("var")
        return f"{m.group('decl')}if(!{var}){{{var}={default_expr}}}"

    return RewriteRule(
        name="shell-fallback",
        pattern=_SHELL_CHECK_RE,
        replacement=replace,
        site="shell-check",
    )
