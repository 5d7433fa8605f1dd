"""
Transition Deriver - turns editor edges into prioritized node transitions.
Handle names on the canvas ("yes", "no", "success", ...) map to templated
conditions evaluated by the engine against the previous node's result.
"""

from types import MappingProxyType
from typing import Optional, List, Sequence

from chatflow.compiler.manifest import UIEdge
from chatflow.compiler.schema import Transition


LAST_RESULT_TRUE = "{{_lastResult}} == true"
LAST_RESULT_FALSE = "{{_lastResult}} == false"
LAST_STATUS_SUCCESS = '{{_lastResult.status}} == "success"'
LAST_STATUS_ERROR = '{{_lastResult.status}} == "error"'

CONDITION_TABLE = MappingProxyType({
    "true": LAST_RESULT_TRUE,
    "yes": LAST_RESULT_TRUE,
    "false": LAST_RESULT_FALSE,
    "no": LAST_RESULT_FALSE,
    "success": LAST_STATUS_SUCCESS,
    "error": LAST_STATUS_ERROR,
})


def derive_condition(handle: Optional[str]) -> Optional[str]:
    """Condition for a source handle, or None for an unconditional transition."""
    if not handle:
        return None
    return CONDITION_TABLE.get(handle.lower())


def derive_transitions(edges: Sequence[UIEdge], source_node_id: str) -> List[Transition]:
    """
    Outgoing transitions of `source_node_id`, in edge order.
    Priority is the position among the node's own edges, so it is always
    dense and unique per node regardless of handle.
    """
    outgoing = [e for e in edges if e.source == source_node_id]
    return [
        Transition(
            id=edge.id,
            target_node_id=edge.target,
            condition=derive_condition(edge.source_handle),
            priority=index,
            label=edge.label if edge.label is not None else edge.source_handle,
        )
        for index, edge in enumerate(outgoing)
    ]
