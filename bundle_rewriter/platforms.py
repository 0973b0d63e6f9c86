"""Platform resource registry.

Maps (operating system, architecture) pairs onto the embedded resource keys the
rewritten program looks up at runtime. OS and architecture names follow Node's
``process.platform`` / ``process.arch`` vocabulary (``win32``, ``darwin``,
``linux``; ``x64``, ``arm64``).
"""

from dataclasses import dataclass
import platform
import sys


WINDOWS_OS: str = "win32"
WINDOWS_SEGMENT: str = "x64-win32"

DEFAULT_OS: str = "win32"
DEFAULT_ARCH: str = "x64"

VENDOR_FAMILY: str = "ripgrep"
EXECUTABLE_NAME: str = "rg"
BRIDGE_LIBRARY_NAME: str = "ripgrep.node"
LAYOUT_ENGINE_KEY: str = "yoga.wasm"

SUPPORTED_SEGMENTS: tuple[str, ...] = (
    "arm64-darwin",
    "arm64-linux",
    "x64-darwin",
    "x64-linux",
    "x64-win32",
)


@dataclass(frozen=True, slots=True)
class ResourceDescriptor:
    """A candidate embeddable file.

    :ivar relative_path: Path relative to the resource root, starting with ``./``.
    :ivar binding_name: Identifier bound to the embedded file in the rewritten source.
    """

    relative_path: str
    binding_name: str

    @property
    def key(self) -> str:
        """Lookup key used in the embedded resource map (no leading ``./``)."""

        if self.relative_path.startswith("./") is True:
            return self.relative_path[2:]
        return self.relative_path


@dataclass(frozen=True, slots=True)
class ResourceKeys:
    """Resource keys for one platform.

    :ivar executable: Key of the native helper executable.
    :ivar bridge_library: Key of the native bridging library.
    :ivar layout_engine: Key of the OS-independent UI-layout engine.
    """

    executable: str
    bridge_library: str
    layout_engine: str


@dataclass(frozen=True, slots=True)
class DetectedPlatform:
    """Best-effort host platform.

    :ivar os_name: Node-style OS name.
    :ivar arch: Node-style architecture name.
    :ivar source: ``detected`` or ``defaulted``.
    """

    os_name: str
    arch: str
    source: str

    @property
    def key(self) -> str:
        return platform_segment(self.os_name, self.arch)


def platform_segment(os_name: str, arch: str) -> str:
    """Return the platform segment for an OS/arch pair.

    The Windows family always collapses to ``x64-win32``.

    :param os_name: Node-style OS name.
    :param arch: Node-style architecture name.
    :returns: Platform segment such as ``arm64-darwin``.
    """

    if os_name == WINDOWS_OS:
        return WINDOWS_SEGMENT
    return f"{arch}-{os_name}"


def resource_keys_for(os_name: str, arch: str) -> ResourceKeys:
    """Derive the resource keys for an OS/arch pair.

    Unknown architectures are not validated; they produce keys that simply
    miss at lookup time.

    :param os_name: Node-style OS name.
    :param arch: Node-style architecture name.
    :returns: Resource keys.
    """

    segment: str = platform_segment(os_name, arch)
    suffix: str = ".exe" if segment == WINDOWS_SEGMENT else ""
    base: str = f"vendor/{VENDOR_FAMILY}/{segment}"
    return ResourceKeys(
        executable=f"{base}/{EXECUTABLE_NAME}{suffix}",
        bridge_library=f"{base}/{BRIDGE_LIBRARY_NAME}",
        layout_engine=LAYOUT_ENGINE_KEY,
    )


def _binding_suffix(segment: str) -> str:
    if segment == WINDOWS_SEGMENT:
        return "Win32"
    arch, _, os_name = segment.partition("-")
    return f"{os_name.capitalize()}{arch.capitalize()}"


def descriptors_for(segments: tuple[str, ...] = SUPPORTED_SEGMENTS) -> list[ResourceDescriptor]:
    """Build the candidate descriptors for a set of platform segments.

    :param segments: Platform segments to include.
    :returns: Layout-engine descriptor followed by executable/library pairs.
    """

    out: list[ResourceDescriptor] = [
        ResourceDescriptor(relative_path=f"./{LAYOUT_ENGINE_KEY}", binding_name="__embeddedYogaWasm"),
    ]
    for segment in segments:
        exe_suffix: str = ".exe" if segment == WINDOWS_SEGMENT else ""
        binding: str = _binding_suffix(segment)
        out.append(
            ResourceDescriptor(
                relative_path=f"./vendor/{VENDOR_FAMILY}/{segment}/{EXECUTABLE_NAME}{exe_suffix}",
                binding_name=f"__embeddedRg{binding}",
            )
        )
        out.append(
            ResourceDescriptor(
                relative_path=f"./vendor/{VENDOR_FAMILY}/{segment}/{BRIDGE_LIBRARY_NAME}",
                binding_name=f"__embeddedRgNode{binding}",
            )
        )
    return out


def _normalize_os(system: str) -> str:
    s: str = system.lower()
    if s.startswith("win") is True or s == "cygwin":
        return "win32"
    if s == "darwin":
        return "darwin"
    if s.startswith("linux") is True:
        return "linux"
    return s


def _normalize_arch(machine: str) -> str:
    """Normalize a machine string into Node's ``process.arch`` names.

    :param machine: Raw machine string (e.g. from ``platform.machine()``).
    :returns: Normalized architecture string.
    """

    m: str = machine.lower()
    if m == "amd64" or m == "x86_64":
        return "x64"
    if m == "aarch64" or m == "arm64":
        return "arm64"
    if m == "i386" or m == "i686" or m == "x86":
        return "ia32"
    if m.startswith("armv7") is True:
        return "arm"
    return m


def detect_platform(system: str | None = None, machine: str | None = None) -> DetectedPlatform:
    """Detect the host platform without ever raising.

    :param system: Override for ``sys.platform``.
    :param machine: Override for ``platform.machine()``.
    :returns: Detected platform, or the ``x64``/``win32`` default.
    """

    try:
        raw_system: str = system if system is not None else sys.platform
        raw_machine: str = machine if machine is not None else platform.machine()
    except (OSError, ValueError):
        return DetectedPlatform(os_name=DEFAULT_OS, arch=DEFAULT_ARCH, source="defaulted")

    if len(raw_system) == 0 or len(raw_machine) == 0:
        return DetectedPlatform(os_name=DEFAULT_OS, arch=DEFAULT_ARCH, source="defaulted")

    return DetectedPlatform(
        os_name=_normalize_os(raw_system),
        arch=_normalize_arch(raw_machine),
        source="detected",
    )
