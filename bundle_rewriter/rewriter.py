"""Pattern-based source rewriter.

Applies an ordered list of :class:`RewriteRule` objects to one source text. The
input is machine-generated (minified) code whose exact shape is not stable
across upstream releases, so a rule that does not match is reported and
skipped rather than treated as an error.
"""

from collections.abc import Callable
from dataclasses import dataclass
import logging
import re


@dataclass(frozen=True, slots=True)
class RewriteRule:
    """A single structural rewrite.

    :ivar name: Rule name used in diagnostics.
    :ivar pattern: Compiled matcher.
    :ivar replacement: Literal replacement text, or a callable receiving the match.
        Literal text is inserted verbatim (no group references or escapes).
    :ivar applies_to: ``general`` or ``windows``.
    :ivar site: Logical target site; once a rule for a site fires, later rules
        for the same site are skipped.
    :ivar count: Maximum number of replacements (``0`` means all).
    """

    name: str
    pattern: re.Pattern[str]
    replacement: str | Callable[[re.Match[str]], str]
    applies_to: str = "general"
    site: str | None = None
    count: int = 0

    def apply(self, text: str) -> tuple[str, int]:
        """Apply the rule to ``text``.

        :param text: Source text.
        :returns: ``(new_text, number_of_replacements)``.
        """

        repl = self.replacement
        if isinstance(repl, str):
            literal: str = repl
            return self.pattern.subn(lambda _m: literal, text, count=self.count)
        return self.pattern.subn(repl, text, count=self.count)


@dataclass(frozen=True, slots=True)
class RewriteResult:
    """Outcome of a :func:`rewrite` call.

    :ivar source: Rewritten source text.
    :ivar fired: Names of rules that replaced at least once, in order.
    :ivar skipped: Names of rules that did not match or whose site had already fired.
    """

    source: str
    fired: tuple[str, ...]
    skipped: tuple[str, ...]


_SHEBANG_RE: re.Pattern[str] = re.compile(r"\A#![^\n]*\n")


def split_shebang(source: str) -> tuple[str, str]:
    """Split a leading interpreter directive from the rest of the source.

    :param source: Source text.
    :returns: ``(shebang_line_or_empty, remainder)``.
    """

    m = _SHEBANG_RE.match(source)
    if m is None:
        if source.startswith("#!") is True and "\n" not in source:
            return source + "\n", ""
        return "", source
    return m.group(0), source[m.end() :]


def rewrite(
    source: str,
    rules: list[RewriteRule],
    *,
    header: str = "",
    logger: logging.Logger | None = None,
) -> RewriteResult:
    """Rewrite ``source`` with ``rules``.

    ``header`` is inserted right after a leading ``#!`` line (or at the top),
    and the rules are applied in order to the remainder only.

    :param source: Original source text.
    :param rules: Rules in application order.
    :param header: Text injected ahead of the original body.
    :param logger: Optional logger for progress output.
    :returns: Rewritten source and per-rule diagnostics.
    """

    if logger is None:
        logger = logging.getLogger("bundle_rewriter")

    shebang, body = split_shebang(source)
    fired: list[str] = []
    skipped: list[str] = []
    fired_sites: set[str] = set()

    for rule in rules:
        if rule.site is not None and rule.site in fired_sites:
            logger.info(f"bundle-rewriter: - {rule.name}: {rule.site} already rewritten; skipped")
            skipped.append(rule.name)
            continue

        body, n = rule.apply(body)
        if n == 0:
            logger.info(f"bundle-rewriter: - {rule.name}: pattern not found; skipped")
            skipped.append(rule.name)
            continue

        logger.info(f"bundle-rewriter: ✓ {rule.name} ({n} replacement{'s' if n != 1 else ''})")
        fired.append(rule.name)
        if rule.site is not None:
            fired_sites.add(rule.site)

    return RewriteResult(
        source=shebang + header + body,
        fired=tuple(fired),
        skipped=tuple(skipped),
    )
