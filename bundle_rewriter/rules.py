"""Rewrite rule catalog.

Rules run in the order :func:`rules_for_target` returns them:

1. ``yoga-wasm-exact`` / ``yoga-wasm-general``: layout-engine loading reads the
   embedded file first. Both target the same site; the exact matcher wins when
   it fires.
2. ``ripgrep-executable``: the vendor directory resolution is preceded by an
   embedded lookup of the native executable.
3. ``ripgrep-bridge-library``: the bridging library path becomes a lookup with
   the original relative path as fallback.
4. ``shell-fallback``: see :mod:`bundle_rewriter.shell`.
5. Windows only, the self-location pass. It runs after the embedding rules
   because those match shapes that contain ``import.meta.url``.
"""

import re

from bundle_rewriter.platforms import BRIDGE_LIBRARY_NAME, LAYOUT_ENGINE_KEY
from bundle_rewriter.rewriter import RewriteRule
from bundle_rewriter.shell import shell_fallback_rule
from bundle_rewriter.target import TargetConfig


_IDENT: str = r"[\w$]+"
_CALLEE: str = r"[\w$]+(?:\.[\w$]+)*"
_SELF_URL: str = r"import\.meta\.url"

# var k81=await nUA(await VP9(CP9(import.meta.url).resolve("./yoga.wasm")));
_YOGA_EXACT_RE: re.Pattern[str] = re.compile(
    r'var k81=await nUA\(await VP9\(CP9\(import\.meta\.url\)\.resolve\("\./yoga\.wasm"\)\)\);'
)

_YOGA_GENERAL_RE: re.Pattern[str] = re.compile(
    rf"(?:var\s+(?P<var>{_IDENT})\s*=\s*)?"
    rf"await\s+(?P<loader>{_IDENT})\s*\(\s*"
    rf"await\s+(?P<reader>{_IDENT})\s*\(\s*"
    rf"(?P<resolver>{_IDENT})\s*\(\s*{_SELF_URL}\s*\)"
    r"\.resolve\s*\(\s*[\"']\./yoga\.wasm[\"']\s*\)\s*\)\s*\)"
)

_RIPGREP_RESOLVE_RE: re.Pattern[str] = re.compile(
    rf'\blet\s+{_IDENT}\s*=\s*{_IDENT}\.resolve\s*\(\s*{_IDENT}\s*,\s*"vendor"\s*,\s*"ripgrep"\s*\)'
)

_RIPGREP_NODE_RE: re.Pattern[str] = re.compile(
    rf"(?P<var>{_IDENT})\s*=\s*(?P<q>[\"'])\./ripgrep\.node(?P=q)"
)

# Assignments whose value is immediately used (createRequire(...).resolve, f(...)(x))
# are left for the narrower rules below.
_NOT_CHAINED: str = r"(?!\s*[.(\[])"

_FILE_URL_TO_PATH_RE: re.Pattern[str] = re.compile(rf"\bfileURLToPath\s*\(\s*{_SELF_URL}\s*\)")

_SELF_URL_RE: re.Pattern[str] = re.compile(_SELF_URL)

CREATE_REQUIRE: str = "createRequire"

# import{createRequire as CP9}from"module"
_MODULE_IMPORT_RE: re.Pattern[str] = re.compile(
    r"\bimport\s*\{(?P<names>[^}]*)\}\s*from\s*[\"'](?:node:)?module[\"']"
)
_CREATE_REQUIRE_ALIAS_RE: re.Pattern[str] = re.compile(rf"\b{CREATE_REQUIRE}\s+as\s+(?P<alias>{_IDENT})")


def create_require_aliases(source: str) -> tuple[str, ...]:
    """Return the local names ``createRequire`` is imported under in ``source``.

    :param source: Program text.
    :returns: Aliases in order of first appearance, without ``createRequire`` itself.
    """

    aliases: list[str] = []
    for m in _MODULE_IMPORT_RE.finditer(source):
        for a in _CREATE_REQUIRE_ALIAS_RE.finditer(m.group("names")):
            alias: str = a.group("alias")
            if alias != CREATE_REQUIRE and alias not in aliases:
                aliases.append(alias)
    return tuple(aliases)


def _not_create_require(aliases: tuple[str, ...]) -> str:
    names: str = "|".join(re.escape(n) for n in (CREATE_REQUIRE, *aliases))
    return rf"(?!(?:{names})(?![\w$]))"


def _self_location_patterns(
    aliases: tuple[str, ...],
) -> tuple[re.Pattern[str], re.Pattern[str], re.Pattern[str]]:
    """Compile the dirname-assignment, path-assignment and nested-call matchers.

    Calls whose callee is ``createRequire`` (or one of ``aliases``) produce a
    ``require`` function, not a path, and are never matched.
    """

    guard: str = _not_create_require(aliases)
    dirname_assign: re.Pattern[str] = re.compile(
        rf"\b(?P<kw>var|let|const)\s+(?P<var>{_IDENT})\s*=\s*"
        rf"{_CALLEE}\s*\(\s*{guard}{_CALLEE}\s*\(\s*{_SELF_URL}\s*\)\s*\){_NOT_CHAINED}"
    )
    path_assign: re.Pattern[str] = re.compile(
        rf"\b(?P<kw>var|let|const)\s+(?P<var>{_IDENT})\s*=\s*"
        rf"{guard}{_CALLEE}\s*\(\s*{_SELF_URL}\s*\){_NOT_CHAINED}"
    )
    nested_call: re.Pattern[str] = re.compile(
        rf"(?<![\w$.]){_CALLEE}\s*\(\s*{guard}{_CALLEE}\s*\(\s*{_SELF_URL}\s*\)\s*\)"
    )
    return dirname_assign, path_assign, nested_call


def _yoga_expression(*, loader: str, reader: str, resolver: str, quote: str = '"') -> str:
    """Build the layout-engine loading expression.

    The embedded file is read when present; otherwise the original resolution
    call runs unchanged.
    """

    key: str = LAYOUT_ENGINE_KEY
    return (
        f"await {loader}(await(async()=>{{"
        f'if(typeof __embeddedFiles!=="undefined"&&__embeddedFiles["{key}"])'
        f'return Buffer.from(await Bun.file(__embeddedFiles["{key}"]).arrayBuffer());'
        f"return await {reader}({resolver}(import.meta.url).resolve({quote}./{key}{quote}))"
        f"}})())"
    )


def _yoga_general(m: re.Match[str]) -> str:
    original: str = m.group(0)
    quote: str = "'" if "'./yoga.wasm'" in original else '"'
    expr: str = _yoga_expression(
        loader=m.group("loader"),
        reader=m.group("reader"),
        resolver=m.group("resolver"),
        quote=quote,
    )
    var: str | None = m.group("var")
    if var is None:
        return expr
    return f"var {var}={expr}"


def _ripgrep_executable(m: re.Match[str]) -> str:
    lookup: str = (
        "{const __embeddedRg=(()=>{"
        'if(typeof __embeddedFiles==="undefined")return null;'
        "const k=__embeddedResourceKeys().executable;"
        "return __embeddedFiles[k]||null"
        "})();if(__embeddedRg)return __embeddedRg;}"
    )
    return lookup + m.group(0)


def _ripgrep_bridge_library(m: re.Match[str]) -> str:
    var: str = m.group("var")
    q: str = m.group("q")
    return (
        f"{var}=(()=>{{"
        'if(typeof __embeddedFiles!=="undefined"){'
        "const k=__embeddedResourceKeys().bridgeLibrary;"
        "if(__embeddedFiles[k])return __embeddedFiles[k]}"
        f"return {q}./{BRIDGE_LIBRARY_NAME}{q}"
        "})()"
    )


def embedding_rules(*, windows_only: bool) -> list[RewriteRule]:
    """Rules that route resource loading through the embedded resource map.

    :param windows_only: Whether the shell default is fixed to the Windows family.
    :returns: Rules in application order.
    """

    return [
        RewriteRule(
            name="yoga-wasm-exact",
            pattern=_YOGA_EXACT_RE,
            replacement="var k81=" + _yoga_expression(loader="nUA", reader="VP9", resolver="CP9") + ";",
            site="yoga-wasm",
            count=1,
        ),
        RewriteRule(
            name="yoga-wasm-general",
            pattern=_YOGA_GENERAL_RE,
            replacement=_yoga_general,
            site="yoga-wasm",
        ),
        RewriteRule(
            name="ripgrep-executable",
            pattern=_RIPGREP_RESOLVE_RE,
            replacement=_ripgrep_executable,
        ),
        RewriteRule(
            name="ripgrep-bridge-library",
            pattern=_RIPGREP_NODE_RE,
            replacement=_ripgrep_bridge_library,
        ),
        shell_fallback_rule(windows_only=windows_only),
    ]


def self_location_rules(*, require_aliases: tuple[str, ...] = ()) -> list[RewriteRule]:
    """Rules that replace self-location queries with the shim's values.

    Narrow shapes come first so that the bare ``import.meta.url`` rule only
    sees what is left.

    :param require_aliases: Local names of ``createRequire`` in the program;
        see :func:`create_require_aliases`.
    :returns: Windows-only rules in application order.
    """

    dirname_assign, path_assign, nested_call = _self_location_patterns(require_aliases)
    return [
        RewriteRule(
            name="self-location-dirname-assignment",
            pattern=dirname_assign,
            replacement=lambda m: f"{m.group('kw')} {m.group('var')}=__executableDir",
            applies_to="windows",
        ),
        RewriteRule(
            name="self-location-path-assignment",
            pattern=path_assign,
            replacement=lambda m: f"{m.group('kw')} {m.group('var')}=__executablePath",
            applies_to="windows",
        ),
        RewriteRule(
            name="self-location-nested-call",
            pattern=nested_call,
            replacement="__executableDir",
            applies_to="windows",
        ),
        RewriteRule(
            name="self-location-file-url-to-path",
            pattern=_FILE_URL_TO_PATH_RE,
            replacement="__executablePath",
            applies_to="windows",
        ),
        RewriteRule(
            name="self-location-url",
            pattern=_SELF_URL_RE,
            replacement="__executableUrl",
            applies_to="windows",
        ),
    ]


def rules_for_target(target: TargetConfig, *, require_aliases: tuple[str, ...] = ()) -> list[RewriteRule]:
    """Return the ordered rule list for a build target.

    :param target: Build target.
    :param require_aliases: Passed to :func:`self_location_rules`.
    :returns: Rules whose ``applies_to`` covers the target.
    """

    rules: list[RewriteRule] = embedding_rules(windows_only=target.windows_only)
    rules.extend(self_location_rules(require_aliases=require_aliases))
    out: list[RewriteRule] = []
    for rule in rules:
        if rule.applies_to == "general" or target.windows_only is True:
            out.append(rule)
    return out
