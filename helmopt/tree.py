"""Typed document tree for parsed manifests.

PyYAML hands back nested dicts and lists of arbitrary shape.  Walking those
with chained ``[...]`` lookups either crashes or needs a guard per level, so
documents are wrapped in three node types with accessors that raise
:class:`StructuralError` instead.  Every field, known or not, is kept and
written back in its original order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Union

import yaml

from helmopt.errors import StructuralError


@dataclass
class ScalarNode:
    value: Any = None

    def to_data(self) -> Any:
        return self.value


@dataclass
class SequenceNode:
    items: list[Node] = field(default_factory=list)

    def to_data(self) -> list[Any]:
        return [item.to_data() for item in self.items]

    def mappings(self) -> Iterator[MappingNode]:
        """Yield the mapping entries, skipping anything else."""
        for item in self.items:
            if isinstance(item, MappingNode):
                yield item

    def __len__(self) -> int:
        return len(self.items)


@dataclass
class MappingNode:
    fields: dict[Any, Node] = field(default_factory=dict)

    def to_data(self) -> dict[Any, Any]:
        return {key: value.to_data() for key, value in self.fields.items()}

    def get(self, key: Any) -> Optional[Node]:
        return self.fields.get(key)

    def set(self, key: Any, node: Node) -> None:
        self.fields[key] = node

    def __contains__(self, key: Any) -> bool:
        return key in self.fields

    def __len__(self) -> int:
        return len(self.fields)

    # -- path accessors -------------------------------------------------

    def find(self, *path: Any) -> Optional[Node]:
        """Follow *path* through nested mappings; ``None`` if any step is missing."""
        node: Node = self
        for key in path:
            if not isinstance(node, MappingNode) or key not in node.fields:
                return None
            node = node.fields[key]
        return node

    def require(self, *path: Any) -> Node:
        node = self.find(*path)
        if node is None:
            raise StructuralError(f"missing field {'.'.join(map(str, path))}")
        return node

    def mapping(self, *path: Any) -> MappingNode:
        node = self.require(*path)
        if not isinstance(node, MappingNode):
            raise StructuralError(f"field {'.'.join(map(str, path))} is not a mapping")
        return node

    def sequence(self, *path: Any) -> SequenceNode:
        node = self.require(*path)
        if not isinstance(node, SequenceNode):
            raise StructuralError(f"field {'.'.join(map(str, path))} is not a list")
        return node

    def text(self, *path: Any) -> str:
        """String value at *path*, or ``""`` when absent or not a string."""
        node = self.find(*path)
        if isinstance(node, ScalarNode) and isinstance(node.value, str):
            return node.value
        return ""


Node = Union[ScalarNode, SequenceNode, MappingNode]


def from_data(data: Any) -> Node:
    """Wrap plain Python data (as produced by a YAML/JSON loader)."""
    if isinstance(data, dict):
        return MappingNode({key: from_data(value) for key, value in data.items()})
    if isinstance(data, list):
        return SequenceNode([from_data(item) for item in data])
    return ScalarNode(data)


def parse_document(text: str) -> Node:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise StructuralError(f"unable to parse manifest: {exc}") from exc
    return from_data(data)


def dump_document(node: Node) -> str:
    return yaml.safe_dump(node.to_data(), sort_keys=False, default_flow_style=False)
