"""
Validation Engine - the two gates around node compilation.

Pre-compile pass runs on the raw editor graph (start node, node types).
Post-compile pass runs on the assembled executable flow (entry node,
cycles, dangling transitions) and also emits non-fatal warnings.
Every check runs; issues are collected, never short-circuited.
"""

from enum import Enum
from typing import Optional, Dict, List, Iterable, Iterator, Set, Tuple
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from chatflow.compiler.manifest import UIFlowGraph, AUTHORING_NODE_TYPES
from chatflow.compiler.schema import ExecutableFlow, NodeType, EXECUTION_NODE_TYPES, Transition


class IssueCode(str, Enum):
    # Pre-compile
    NO_START_NODE = "NO_START_NODE"
    MULTIPLE_START_NODES = "MULTIPLE_START_NODES"
    INVALID_NODE_TYPE = "INVALID_NODE_TYPE"
    DUPLICATE_NODE_ID = "DUPLICATE_NODE_ID"
    # Node compilation
    INVALID_NODE_CONFIG = "INVALID_NODE_CONFIG"
    # Post-compile
    INVALID_ENTRY_NODE = "INVALID_ENTRY_NODE"
    INFINITE_LOOP = "INFINITE_LOOP"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    # Import
    MALFORMED_FLOW = "MALFORMED_FLOW"
    # Warnings
    UNREACHABLE_NODE = "UNREACHABLE_NODE"
    DEAD_END_NODE = "DEAD_END_NODE"


RECOGNIZED_NODE_TYPES = EXECUTION_NODE_TYPES | AUTHORING_NODE_TYPES

# Node types that legitimately end a conversation without transitions.
TERMINAL_NODE_TYPES = frozenset({NodeType.END.value, NodeType.TRANSFER_AGENT.value})


class ValidationIssue(BaseModel):
    """A single validation error or warning."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    code: IssueCode
    message: str
    node_id: Optional[str] = None


class ValidationResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    valid: bool = True
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)

    @classmethod
    def from_issues(
        cls,
        errors: List[ValidationIssue],
        warnings: Optional[List[ValidationIssue]] = None,
    ) -> "ValidationResult":
        return cls(valid=len(errors) == 0, errors=errors, warnings=warnings or [])

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        return ValidationResult.from_issues(
            self.errors + other.errors,
            self.warnings + other.warnings,
        )

    def error_codes(self) -> List[str]:
        return [e.code.value for e in self.errors]

    def warning_codes(self) -> List[str]:
        return [w.code.value for w in self.warnings]


# ── Pre-compile ───────────────────────────────────────────────────────

def validate_pre_compile(graph: UIFlowGraph, extra_types: Iterable[str] = ()) -> ValidationResult:
    """Structural checks on the editor graph before any node is compiled."""
    errors: List[ValidationIssue] = []

    start_nodes = graph.start_nodes()
    if not start_nodes:
        errors.append(ValidationIssue(
            code=IssueCode.NO_START_NODE,
            message="Flow must have exactly one Start node",
        ))
    if len(start_nodes) > 1:
        errors.append(ValidationIssue(
            code=IssueCode.MULTIPLE_START_NODES,
            message=f"Flow has multiple Start nodes: {', '.join(n.id for n in start_nodes)}",
        ))

    valid_types = RECOGNIZED_NODE_TYPES | frozenset(extra_types)
    seen: Set[str] = set()
    for node in graph.nodes:
        if node.type not in valid_types:
            errors.append(ValidationIssue(
                code=IssueCode.INVALID_NODE_TYPE,
                message=f"Unknown node type: {node.type}",
                node_id=node.id,
            ))
        if node.id in seen:
            errors.append(ValidationIssue(
                code=IssueCode.DUPLICATE_NODE_ID,
                message=f"Duplicate node id: {node.id}",
                node_id=node.id,
            ))
        seen.add(node.id)

    return ValidationResult.from_issues(errors)


# ── Cycle detection ───────────────────────────────────────────────────

_Frame = Tuple[str, Iterator[Transition]]


def detect_cycles(flow: ExecutableFlow) -> List[List[str]]:
    """
    Depth-first search from the entry node over compiled transitions.

    Returns one path per back-edge found, from the first occurrence of the
    revisited node through the closing edge (e.g. ["a", "b", "a"]).
    Uses an explicit stack of (node, transition iterator) frames and one
    shared path, so memory stays linear in graph size and depth is not
    bounded by the interpreter's recursion limit.
    """
    cycles: List[List[str]] = []
    visited: Set[str] = set()
    path: List[str] = []
    # node id -> position in `path` while the node is on the current path
    on_path: Dict[str, int] = {}

    def enter(node_id: str) -> _Frame:
        visited.add(node_id)
        on_path[node_id] = len(path)
        path.append(node_id)
        node = flow.nodes.get(node_id)
        transitions = node.transitions if node else []
        return node_id, iter(transitions)

    stack: List[_Frame] = [enter(flow.entry_node_id)]
    while stack:
        node_id, transitions = stack[-1]
        for transition in transitions:
            target = transition.target_node_id
            if target not in visited:
                stack.append(enter(target))
                break
            if target in on_path:
                cycles.append(path[on_path[target]:] + [target])
        else:
            del on_path[node_id]
            path.pop()
            stack.pop()

    return cycles


def reachable_node_ids(flow: ExecutableFlow) -> Set[str]:
    """Ids of existing nodes reachable from the entry node."""
    seen: Set[str] = set()
    pending = [flow.entry_node_id]
    while pending:
        node_id = pending.pop()
        if node_id in seen or node_id not in flow.nodes:
            continue
        seen.add(node_id)
        pending.extend(t.target_node_id for t in flow.nodes[node_id].transitions)
    return seen


# ── Post-compile ──────────────────────────────────────────────────────

def validate_post_compile(flow: ExecutableFlow, warn_unreachable: bool = True) -> ValidationResult:
    """Checks on the assembled flow: entry node, loops, dangling transitions."""
    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []

    entry = flow.nodes.get(flow.entry_node_id)
    if entry is None or entry.type_tag != NodeType.START.value:
        errors.append(ValidationIssue(
            code=IssueCode.INVALID_ENTRY_NODE,
            message=f"Entry node '{flow.entry_node_id}' must exist and be a Start node",
            node_id=flow.entry_node_id,
        ))

    for cycle in detect_cycles(flow):
        errors.append(ValidationIssue(
            code=IssueCode.INFINITE_LOOP,
            message=f"Potential infinite loop detected: {' -> '.join(cycle)}",
            node_id=cycle[0],
        ))

    for node_id, node in flow.nodes.items():
        for transition in node.transitions:
            if transition.target_node_id not in flow.nodes:
                errors.append(ValidationIssue(
                    code=IssueCode.INVALID_TRANSITION,
                    message=f"Transition points to non-existent node: {transition.target_node_id}",
                    node_id=node_id,
                ))

    if warn_unreachable:
        warnings.extend(_structure_warnings(flow))

    return ValidationResult.from_issues(errors, warnings)


def _structure_warnings(flow: ExecutableFlow) -> List[ValidationIssue]:
    warnings: List[ValidationIssue] = []
    reachable = reachable_node_ids(flow)
    for node_id, node in flow.nodes.items():
        if node_id not in reachable:
            warnings.append(ValidationIssue(
                code=IssueCode.UNREACHABLE_NODE,
                message=f"Node '{node_id}' is not reachable from the entry node",
                node_id=node_id,
            ))
        if not node.transitions and node.type_tag not in TERMINAL_NODE_TYPES:
            warnings.append(ValidationIssue(
                code=IssueCode.DEAD_END_NODE,
                message=f"Node '{node_id}' ({node.type_tag}) has no outgoing transitions",
                node_id=node_id,
            ))
    return warnings


def count_by_code(issues: Iterable[ValidationIssue]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for issue in issues:
        counts[issue.code.value] = counts.get(issue.code.value, 0) + 1
    return counts
