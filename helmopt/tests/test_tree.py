"""
Tests for tree.py - typed document tree and YAML round trips.
"""

import pytest
import yaml

from helmopt.errors import StructuralError
from helmopt.tree import MappingNode, ScalarNode, SequenceNode, dump_document, from_data, parse_document


def test_unmodified_document_round_trips(deployment_yaml):
    """Parse then dump gives back the same structure with keys in order."""
    node = parse_document(deployment_yaml)
    dumped = dump_document(node)

    original = yaml.safe_load(deployment_yaml)
    assert yaml.safe_load(dumped) == original
    assert list(yaml.safe_load(dumped)) == list(original)
    assert list(yaml.safe_load(dumped)["metadata"]) == ["name", "namespace", "labels"]


def test_unknown_fields_are_kept():
    """Test that unknown fields survive a load and dump."""
    node = parse_document("kind: Pod\nx-custom:\n  nested: [1, 2]\n")
    assert node.to_data() == {"kind": "Pod", "x-custom": {"nested": [1, 2]}}


def test_from_data_builds_typed_nodes():
    """Test that plain data is turned into typed nodes."""
    node = from_data({"a": [1, {"b": "c"}]})
    assert isinstance(node, MappingNode)
    seq = node.get("a")
    assert isinstance(seq, SequenceNode)
    assert isinstance(seq.items[0], ScalarNode)
    assert [m.text("b") for m in seq.mappings()] == ["c"]


def test_text_is_empty_for_missing_or_non_string():
    """Test that text is empty for missing or non-string values."""
    node = from_data({"metadata": {"name": 42}})
    assert node.text("metadata", "name") == ""
    assert node.text("metadata", "namespace") == ""
    assert node.text("nope", "deeper") == ""


def test_sequence_accessor_raises_structural_error():
    """Wrong shapes raise StructuralError instead of KeyError/TypeError."""
    node = from_data({"spec": {"containers": {"not": "a list"}}})
    with pytest.raises(StructuralError):
        node.sequence("spec", "containers")
    with pytest.raises(StructuralError):
        node.sequence("spec", "missing")


def test_invalid_yaml_raises_structural_error():
    """Test that invalid YAML raises StructuralError."""
    with pytest.raises(StructuralError):
        parse_document("key: [unterminated")
