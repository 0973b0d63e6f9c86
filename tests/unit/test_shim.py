"""Unit tests for executable location resolution and the injected shim."""

import urllib.parse

import pytest

from bundle_rewriter.shim import (
    is_valid_file_url,
    render_env_flags,
    render_shim,
    resolve_executable_location,
    to_file_url,
)


def test_absolute_windows_argv_resolves_path_directory_and_url() -> None:
    loc = resolve_executable_location(
        ["node", "C:\\Users\\A\\app.exe"],
        cwd="C:\\work",
        os_family="win32",
    )

    assert loc.path == "C:\\Users\\A\\app.exe"
    assert loc.directory == "C:\\Users\\A"
    assert loc.url == "file:///C:/Users/A/app.exe"
    assert is_valid_file_url(loc.url) is True


def test_relative_windows_argv_is_made_absolute() -> None:
    loc = resolve_executable_location(
        ["node", ".\\claude-code.exe"],
        cwd="C:\\Users\\Rob Banks\\Downloads",
        os_family="win32",
    )

    assert loc.path == "C:\\Users\\Rob Banks\\Downloads\\claude-code.exe"
    assert loc.url == "file:///C:/Users/Rob%20Banks/Downloads/claude-code.exe"
    assert is_valid_file_url(loc.url) is True


def test_missing_argv_and_filename_falls_back_to_cwd_placeholder() -> None:
    loc = resolve_executable_location(["node"], cwd="/home/user", os_family="linux")

    assert loc.path == "/home/user/claude-code.exe"
    assert loc.directory == "/home/user"
    assert loc.url == "file:///home/user/claude-code.exe"


def test_missing_argv_on_windows_falls_back_to_cwd_placeholder() -> None:
    loc = resolve_executable_location([], cwd="C:\\work", os_family="win32")

    assert loc.path == "C:\\work\\claude-code.exe"
    assert loc.url == "file:///C:/work/claude-code.exe"


def test_preexisting_filename_is_used_when_argv_is_missing() -> None:
    loc = resolve_executable_location(
        ["node"],
        cwd="/srv",
        os_family="linux",
        preexisting="/opt/app/cli.js",
    )

    assert loc.path == "/opt/app/cli.js"
    assert loc.directory == "/opt/app"


def test_library_modules_ignore_argv() -> None:
    loc = resolve_executable_location(
        ["node", "/usr/bin/host"],
        cwd="/srv",
        os_family="linux",
        preexisting="/opt/app/sdk.mjs",
        prefer_argv=False,
    )

    assert loc.path == "/opt/app/sdk.mjs"


def test_dot_argv_resolves_to_an_absolute_directory() -> None:
    loc = resolve_executable_location(["node", "."], cwd="/home/user", os_family="linux")

    assert loc.path == "/home/user"
    assert is_valid_file_url(loc.url) is True


@pytest.mark.parametrize("path", [".", "claude-code.exe", ".\\claude-code.exe"])
def test_plain_concatenation_of_relative_paths_is_invalid(path: str) -> None:
    """Prefixing a relative path with the scheme does not produce a usable URL."""

    assert is_valid_file_url("file://" + path.replace("\\", "/")) is False


def test_drive_letter_path_needs_triple_slash() -> None:
    assert is_valid_file_url("file://C:/Users/A/app.exe") is False
    assert is_valid_file_url("file:///C:/Users/A/app.exe") is True


@pytest.mark.parametrize("url", ["http:///etc/passwd", "file:///C:\\Users\\A", "file:relative"])
def test_other_malformed_urls_are_invalid(url: str) -> None:
    assert is_valid_file_url(url) is False


def test_reserved_url_characters_in_the_path_are_percent_encoded() -> None:
    loc = resolve_executable_location(["node", "C:\\C#\\app.exe"], cwd="C:\\", os_family="win32")

    assert loc.url == "file:///C:/C%23/app.exe"
    assert is_valid_file_url(loc.url) is True
    assert urllib.parse.unquote(urllib.parse.urlsplit(loc.url).path) == "/C:/C#/app.exe"


def test_posix_path_with_query_and_percent_characters() -> None:
    url: str = to_file_url("/opt/why?/100%/cli", cwd="/", os_family="linux")

    assert url == "file:///opt/why%3F/100%25/cli"
    assert is_valid_file_url(url) is True


@pytest.mark.parametrize("url", ["file:///C:/C#/app.exe", "file:///opt/why?/cli"])
def test_urls_with_fragment_or_query_are_invalid(url: str) -> None:
    assert is_valid_file_url(url) is False


def test_to_file_url_resolves_relative_paths_first() -> None:
    assert to_file_url(".", cwd="/home/user", os_family="linux") == "file:///home/user"
    assert to_file_url("app.exe", cwd="C:\\x", os_family="win32") == "file:///C:/x/app.exe"


def test_render_shim_prefers_argv_for_the_entry_file() -> None:
    code: str = render_shim()

    assert "const __executablePath = (() => {" in code
    assert "process.argv[1]" in code
    assert 'return path.join(process.cwd(), "claude-code.exe");' in code
    assert 'const __executableUrl = require("url").pathToFileURL(__executablePath).href;' in code
    assert "globalThis.__dirname = __executableDir;" in code


def test_render_shim_for_library_modules_skips_argv() -> None:
    code: str = render_shim(prefer_argv=False)

    assert "process.argv" not in code
    assert 'if (typeof __filename !== "undefined" && __filename) return path.resolve(__filename);' in code


def test_render_env_flags() -> None:
    assert render_env_flags(("A", "B")) == 'process.env.A = "1";\nprocess.env.B = "1";\n\n'
    assert render_env_flags(()) == ""
