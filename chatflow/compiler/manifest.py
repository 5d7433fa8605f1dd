"""
UI Flow Graph Schema - the node/edge document produced by the visual editor.
This is the compiler's input. Authoring-only fields (position, style,
selection state, viewport) are accepted and ignored; only `id`, `type` and
the open `data` bag of each node and the routing fields of each edge are read.
"""

from datetime import datetime
from typing import Optional, Dict, List, Any, Literal
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# Authoring-only node types that normalize to an execution node type.
AUTHORING_NODE_TYPES = frozenset({
    "input",
    "mediaMessage",
    "carousel",
    "dynamicText",
    "advancedCondition",
})


class UINode(BaseModel):
    """A single node on the editor canvas."""
    model_config = ConfigDict(extra="ignore")

    id: str
    type: str
    data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("data", mode="before")
    @classmethod
    def _none_data_is_empty(cls, v: Any) -> Any:
        return {} if v is None else v


class UIEdge(BaseModel):
    """A directed connection between two canvas nodes."""
    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)

    id: str
    source: str
    target: str
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    label: Optional[str] = None


class UIFlowGraph(BaseModel):
    """
    Complete editor document. Order of `nodes` and `edges` is meaningful:
    edge order decides transition priority, node order decides the order of
    the compiled node mapping.
    """
    model_config = ConfigDict(extra="ignore")

    nodes: List[UINode] = Field(default_factory=list)
    edges: List[UIEdge] = Field(default_factory=list)
    viewport: Optional[Dict[str, Any]] = None

    def get_node(self, node_id: str) -> Optional[UINode]:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def get_outgoing_edges(self, node_id: str) -> List[UIEdge]:
        return [e for e in self.edges if e.source == node_id]

    def start_nodes(self) -> List[UINode]:
        return [n for n in self.nodes if n.type == "start"]


class FlowMetadata(BaseModel):
    """Caller-supplied metadata embedded verbatim into the compiled flow."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    name: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    published_at: Optional[datetime] = None
    created_by: str = "system"
    status: Literal["draft", "published", "archived"] = "draft"
    tags: List[str] = Field(default_factory=list)
    inbox_id: Optional[int] = None
