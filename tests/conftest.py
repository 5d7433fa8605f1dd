"""
Shared fixtures for the Chatflow compiler test suite.
"""
import sys
import os
from datetime import datetime, timezone

import pytest

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

os.environ["ENVIRONMENT"] = "dev"
os.environ.setdefault("LOG_LEVEL", "INFO")


FIXED_NOW = datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)


class SequentialIdentityProvider:
    """Deterministic ids (id-1, id-2, ...) and a frozen clock."""

    def __init__(self, prefix: str = "id"):
        self.prefix = prefix
        self.issued = 0

    def new_id(self) -> str:
        self.issued += 1
        return f"{self.prefix}-{self.issued}"

    def now(self) -> datetime:
        return FIXED_NOW


@pytest.fixture
def ids():
    return SequentialIdentityProvider()


@pytest.fixture
def settings():
    """Settings with the documented defaults, independent of the environment."""
    from chatflow.config.settings import Settings
    return Settings(
        flow_timeout_seconds=3600,
        flow_max_iterations=100,
        flow_error_behavior="fail",
        passthrough_node_types=[],
        warn_unreachable_nodes=True,
    )


@pytest.fixture
def compiler(settings, ids):
    """Fresh FlowCompiler with deterministic identity."""
    from chatflow.compiler.compiler import FlowCompiler
    return FlowCompiler(settings, ids)


@pytest.fixture
def simple_graph():
    """Start -> Message('Hi') -> End."""
    return {
        "nodes": [
            {"id": "s1", "type": "start", "data": {}},
            {"id": "m1", "type": "message", "data": {"text": "Hi"}},
            {"id": "e1", "type": "end", "data": {}},
        ],
        "edges": [
            {"id": "x1", "source": "s1", "target": "m1"},
            {"id": "x2", "source": "m1", "target": "e1"},
        ],
        "viewport": {"x": 0, "y": 0, "zoom": 1},
    }


def make_graph(nodes, edges):
    """Build an editor graph from (id, type[, data]) tuples and (id, source, target[, handle]) tuples."""
    ui_nodes = []
    for n in nodes:
        node_id, node_type = n[0], n[1]
        data = n[2] if len(n) > 2 else {}
        ui_nodes.append({"id": node_id, "type": node_type, "data": data})
    ui_edges = []
    for e in edges:
        edge = {"id": e[0], "source": e[1], "target": e[2]}
        if len(e) > 3:
            edge["sourceHandle"] = e[3]
        ui_edges.append(edge)
    return {"nodes": ui_nodes, "edges": ui_edges}


@pytest.fixture
def graph_builder():
    return make_graph


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def identity_factory():
    """Factory for independent deterministic identity providers."""
    return SequentialIdentityProvider
