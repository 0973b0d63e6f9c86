"""Resource embedding planner.

Probes a resource root for the files the registry expects and renders the
Embedding Code fragment injected at the top of the rewritten program:

- one ``import ... with { type: "file" }`` binding per file that exists,
- the ``__embeddedFiles`` map built from exactly those bindings,
- the ``__embeddedPlatformKey()`` / ``__embeddedResourceKeys()`` helpers.

Only files that exist on the host are referenced. The packer fails hard on an
embed of a missing file, so the existence probe here is the only gate.
"""

from dataclasses import dataclass
import logging
import os
import pathlib
import textwrap

from bundle_rewriter.platforms import (
    BRIDGE_LIBRARY_NAME,
    DEFAULT_ARCH,
    DEFAULT_OS,
    EXECUTABLE_NAME,
    LAYOUT_ENGINE_KEY,
    VENDOR_FAMILY,
    WINDOWS_OS,
    WINDOWS_SEGMENT,
    ResourceDescriptor,
    platform_segment,
)


@dataclass(frozen=True, slots=True)
class EmbeddingPlan:
    """Result of probing a resource root.

    :ivar resources: Descriptors whose files exist, in registry order.
    :ivar missing: Descriptors whose files were not found.
    :ivar import_base: Specifier prefix that reaches the resource root from the
        directory of the rewritten file (``.`` when they are the same).
    """

    resources: tuple[ResourceDescriptor, ...]
    missing: tuple[ResourceDescriptor, ...]
    import_base: str = "."

    def embedded_map(self) -> dict[str, str]:
        """Return the resource map as ``key -> binding name``."""

        return {d.key: d.binding_name for d in self.resources}

    def lookup(self, key: str, fallback: str) -> str:
        """Model of the runtime lookup: the embedded binding, or ``fallback`` if not embedded.

        :param key: Resource key (no leading ``./``).
        :param fallback: Filesystem path used when the key is not embedded.
        :returns: Binding name or ``fallback``.
        """

        return self.embedded_map().get(key, fallback)

    def render(self) -> str:
        """Render the Embedding Code fragment.

        The output depends only on the discovered descriptors, so re-planning an
        unchanged resource root yields byte-identical text.

        :returns: JavaScript source fragment ending with a blank line.
        """

        imports: list[str] = []
        mapping: list[str] = []
        for d in self.resources:
            imports.append(f'import {d.binding_name} from "{self.import_base}/{d.key}" with {{ type: "file" }};')
            mapping.append(f"  '{d.key}': {d.binding_name},")

        code: str = _EMBEDDING_TEMPLATE
        code = code.replace("__BRW_IMPORTS__", "\n".join(imports))
        code = code.replace("__BRW_MAPPING__", "\n".join(mapping))
        code = code.replace("__BRW_DEFAULT_SEGMENT__", platform_segment(DEFAULT_OS, DEFAULT_ARCH))
        code = code.replace("__BRW_WINDOWS_OS__", WINDOWS_OS)
        code = code.replace("__BRW_WINDOWS_SEGMENT__", WINDOWS_SEGMENT)
        code = code.replace("__BRW_VENDOR_FAMILY__", VENDOR_FAMILY)
        code = code.replace("__BRW_EXECUTABLE_NAME__", EXECUTABLE_NAME)
        code = code.replace("__BRW_BRIDGE_LIBRARY_NAME__", BRIDGE_LIBRARY_NAME)
        code = code.replace("__BRW_LAYOUT_ENGINE_KEY__", LAYOUT_ENGINE_KEY)
        return code


def import_base_for(*, resource_root: pathlib.Path, import_dir: pathlib.Path) -> str:
    """Return the specifier prefix that reaches ``resource_root`` from ``import_dir``.

    The packer resolves ``./`` specifiers against the importing file, so the
    prefix is relative to the directory the rewritten source is written to.
    Roots on another drive get an absolute prefix.

    :param resource_root: Directory holding the resources.
    :param import_dir: Directory of the rewritten source.
    :returns: ``.``, ``./sub``, ``../up`` or an absolute POSIX-style path.
    """

    try:
        rel: str = os.path.relpath(os.path.abspath(resource_root), os.path.abspath(import_dir))
    except ValueError:
        return pathlib.Path(os.path.abspath(resource_root)).as_posix()

    rel = rel.replace(os.sep, "/")
    if rel == ".":
        return "."
    if rel == ".." or rel.startswith("../") is True:
        return rel
    return "./" + rel


def plan_embedding(
    *,
    resource_root: pathlib.Path,
    descriptors: list[ResourceDescriptor],
    import_dir: pathlib.Path | None = None,
    logger: logging.Logger | None = None,
) -> EmbeddingPlan:
    """Probe ``resource_root`` and keep only descriptors whose files exist.

    :param resource_root: Directory the descriptor paths are relative to.
    :param descriptors: Candidate descriptors, in registry order.
    :param import_dir: Directory of the file the Embedding Code is injected
        into; defaults to ``resource_root``.
    :param logger: Optional logger for progress output.
    :returns: Embedding plan whose imports resolve from ``import_dir``.
    """

    if logger is None:
        logger = logging.getLogger("bundle_rewriter")

    import_base: str = "."
    if import_dir is not None:
        import_base = import_base_for(resource_root=resource_root, import_dir=import_dir)

    found: list[ResourceDescriptor] = []
    missing: list[ResourceDescriptor] = []
    for d in descriptors:
        path: pathlib.Path = resource_root / d.key
        if path.is_file() is True:
            found.append(d)
        else:
            missing.append(d)
            if logger.isEnabledFor(logging.DEBUG) is True:
                logger.debug(f"bundle-rewriter: resource not found, not embedding: {d.key}")

    logger.info(
        f"bundle-rewriter: embedding {len(found)} of {len(descriptors)} resources from {resource_root}"
    )
    if logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(f"bundle-rewriter: embedded files are imported from {import_base}/")
    return EmbeddingPlan(resources=tuple(found), missing=tuple(missing), import_base=import_base)


_EMBEDDING_TEMPLATE: str = textwrap.dedent(
    """\
    // Embedded files using Bun's native embedding
    __BRW_IMPORTS__

    const __embeddedFiles = {
    __BRW_MAPPING__
    };

    function __embeddedPlatformKey() {
      try {
        if (typeof process === "undefined" || !process.platform) return "__BRW_DEFAULT_SEGMENT__";
        if (process.platform === "__BRW_WINDOWS_OS__") return "__BRW_WINDOWS_SEGMENT__";
        return `${process.arch}-${process.platform}`;
      } catch {
        return "__BRW_DEFAULT_SEGMENT__";
      }
    }

    function __embeddedResourceKeys() {
      const platform = __embeddedPlatformKey();
      const suffix = platform === "__BRW_WINDOWS_SEGMENT__" ? ".exe" : "";
      return {
        executable: `vendor/__BRW_VENDOR_FAMILY__/${platform}/__BRW_EXECUTABLE_NAME__${suffix}`,
        bridgeLibrary: `vendor/__BRW_VENDOR_FAMILY__/${platform}/__BRW_BRIDGE_LIBRARY_NAME__`,
        layoutEngine: "__BRW_LAYOUT_ENGINE_KEY__",
      };
    }

    """
)
