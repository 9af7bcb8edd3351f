"""Manifest walker & mutator.

Walks a rendered chart tree, classifies every template file and exposes the
container entries of supported workloads so the resolver can rewrite their
``resources`` blocks.

Usage::

    for template in ChartWalk(chart_dir):
        try:
            manifest = template.load(default_namespace="default")
        except StructuralError:
            continue
        for container in manifest.containers:
            ...
        manifest.write()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Optional

import yaml

from helmopt import config
from helmopt.errors import StructuralError
from helmopt.tree import (
    MappingNode,
    Node,
    dump_document,
    from_data,
    parse_document,
)

logger = logging.getLogger("helmopt.manifest")

SUPPORTED_KINDS: frozenset[str] = frozenset(config.CONTAINER_PATHS)
TEMPLATES_DIR = "templates"
CHART_FILE = "Chart.yaml"


def container_path(kind: str) -> tuple[str, ...]:
    """Location of the container list for *kind*."""
    try:
        return config.CONTAINER_PATHS[kind]
    except KeyError:
        raise StructuralError(f"manifest contains objType that's not supported: {kind}") from None


def jsonpath_for(kind: str) -> str:
    """The container path as a kubectl ``-o=jsonpath`` template."""
    return "{." + ".".join(container_path(kind)) + "}"


# ---------------------------------------------------------------------------
# Containers
# ---------------------------------------------------------------------------

@dataclass
class Container:
    """One entry of a workload's container list."""
    node: MappingNode

    @property
    def name(self) -> str:
        return self.node.text("name")

    @property
    def resources(self) -> Optional[dict[str, Any]]:
        """The chart's own ``resources`` block, or ``None`` if absent or empty."""
        node = self.node.get("resources")
        if isinstance(node, MappingNode) and len(node) > 0:
            return node.to_data()
        return None

    def set_resources(self, resources: dict[str, Any]) -> None:
        self.node.set("resources", from_data(resources))


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

@dataclass
class ClassifiedManifest:
    """A processable workload document."""
    document: MappingNode
    kind: str
    name: str
    namespace: str
    containers: list[Container] = field(default_factory=list)
    path: Optional[Path] = None

    def dump(self) -> str:
        return dump_document(self.document)

    def write(self, path: Optional[Path] = None) -> Path:
        """Overwrite the source file (or *path*) with the current document."""
        target = path or self.path
        if target is None:
            raise ValueError("manifest has no path to write to")
        target.write_text(self.dump(), encoding="utf-8")
        return target


def classify(document: Node, default_namespace: str, path: Optional[Path] = None) -> ClassifiedManifest:
    """Validate *document* as a supported workload, raising StructuralError otherwise."""
    if not isinstance(document, MappingNode):
        raise StructuralError("manifest is not a mapping")

    kind = document.text("kind")
    if not kind:
        raise StructuralError("manifest does not contain valid k8s objType")

    name = document.text("metadata", "name")
    if not name:
        raise StructuralError("manifest does not contain valid k8s objName")

    namespace = document.text("metadata", "namespace") or default_namespace

    path_keys = container_path(kind)

    if document.text("metadata", "annotations", config.HELM_HOOK_ANNOTATION).startswith("test"):
        raise StructuralError("manifest is for helm test pod")

    containers = [Container(node) for node in document.sequence(*path_keys).mappings()]
    return ClassifiedManifest(
        document=document,
        kind=kind,
        name=name,
        namespace=namespace,
        containers=containers,
        path=path,
    )


def classify_text(text: str, default_namespace: str, path: Optional[Path] = None) -> ClassifiedManifest:
    return classify(parse_document(text), default_namespace, path)


# ---------------------------------------------------------------------------
# Chart tree walk
# ---------------------------------------------------------------------------

def read_chart_name(directory: Path) -> Optional[str]:
    """Return ``name`` from ``directory/Chart.yaml`` or ``None``."""
    chart_file = directory / CHART_FILE
    if not chart_file.is_file():
        return None
    try:
        data = yaml.safe_load(chart_file.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("'%s' not a valid yaml file: %s", chart_file, exc)
        return None
    if isinstance(data, dict) and isinstance(data.get("name"), str) and data["name"]:
        return data["name"]
    logger.warning("'%s' does not contain name field", chart_file)
    return None


@dataclass(frozen=True)
class TemplateFile:
    """A candidate manifest found by the walk; loading it may fail on its own."""
    path: Path
    chart: Optional[str] = None

    def load(self, default_namespace: str) -> ClassifiedManifest:
        try:
            text = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise StructuralError(f"unable to read {self.path}: {exc}") from exc
        return classify_text(text, default_namespace, self.path)


class ChartWalk:
    """Depth-first walk over a chart directory yielding template files.

    Every file with a ``templates`` directory among its ancestors (below
    *root*) is yielded.  Iterating again walks the tree again.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def __iter__(self) -> Iterator[TemplateFile]:
        yield from self._walk(self.root, chart=read_chart_name(self.root), in_templates=False)

    def _walk(self, directory: Path, chart: Optional[str], in_templates: bool) -> Iterator[TemplateFile]:
        try:
            entries = sorted(directory.iterdir())
        except OSError as exc:
            logger.warning("Cannot list %s: %s", directory, exc)
            return

        for entry in entries:
            if entry.is_dir():
                sub_chart = read_chart_name(entry) if not in_templates else None
                yield from self._walk(
                    entry,
                    chart=sub_chart or chart,
                    in_templates=in_templates or entry.name == TEMPLATES_DIR,
                )
            elif in_templates and entry.is_file():
                yield TemplateFile(entry, chart)
