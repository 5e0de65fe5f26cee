"""Shared fixtures for converter tests."""

import pytest

from onig_to_js import ConversionContext, Node, NodeType


@pytest.fixture
def context():
    return ConversionContext()


@pytest.fixture
def escape():
    """Factory for leaf escape nodes."""
    def make(subtype, data, start=None):
        return Node(NodeType.ESCAPE, subtype, data, start=start)
    return make
