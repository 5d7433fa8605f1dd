"""
Execution Schema - the canonical, engine-ready flow representation.
The compiler produces it, the execution engine consumes it. No UI-only
properties are allowed here: every typed node config forbids unknown fields.

Wire form is camelCase (`entryNodeId`, `targetNodeId`, ...); Python
attributes are snake_case.
"""

from enum import Enum
from typing import Optional, Dict, List, Any, Literal, Union
from pydantic import BaseModel, ConfigDict, Field, model_serializer, model_validator
from pydantic.alias_generators import to_camel

from chatflow.compiler.manifest import FlowMetadata


class SchemaModel(BaseModel):
    """Base for all execution schema models."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class NodeType(str, Enum):
    """Closed set of node types understood by the execution engine."""
    START = "start"
    MESSAGE = "message"
    QUESTION = "question"
    CONDITION = "condition"
    API = "api"
    DELAY = "delay"
    ACTION = "action"
    FORM = "form"
    VARIABLE = "variable"
    TAG = "tag"
    SEGMENT = "segment"
    TRANSFER_AGENT = "transfer_agent"
    END = "end"


EXECUTION_NODE_TYPES = frozenset(t.value for t in NodeType)


# ── Shared shapes ─────────────────────────────────────────────────────

class MessageButton(SchemaModel):
    id: str
    label: str = ""
    action: Literal["reply", "url", "postback"] = "reply"
    value: str = ""


class CardItem(SchemaModel):
    title: str = ""
    subtitle: Optional[str] = None
    image_url: Optional[str] = None
    buttons: Optional[List[MessageButton]] = None


class RichMessageContent(SchemaModel):
    type: Literal["card", "carousel", "list"]
    items: List[CardItem] = Field(default_factory=list)


class FormField(SchemaModel):
    id: str
    label: str = ""
    type: str = "text"  # text, email, number, select, checkbox
    required: bool = False
    options: Optional[List[str]] = None


class ApiAuth(SchemaModel):
    type: Literal["bearer", "basic", "apiKey"]
    credentials: Dict[str, str] = Field(default_factory=dict)


class ErrorHandler(SchemaModel):
    """Per-node error handling, interpreted by the engine."""
    strategy: Literal["retry", "fallback", "fail", "ignore"]
    retry_count: Optional[int] = None
    retry_delay: Optional[int] = None
    fallback_node_id: Optional[str] = None
    fallback_message: Optional[str] = None


class VariableDefinition(SchemaModel):
    name: str
    type: Literal["string", "number", "boolean", "object"] = "string"
    default_value: Optional[Any] = None
    required: bool = False


# ── Per-type node configs ─────────────────────────────────────────────

class StartConfig(SchemaModel):
    """Start nodes carry no configuration."""


class MessageConfig(SchemaModel):
    content: str = ""
    content_type: Literal["text", "rich"] = "text"
    rich_content: Optional[RichMessageContent] = None
    buttons: Optional[List[MessageButton]] = None


class QuestionConfig(SchemaModel):
    question: str = ""
    expected_input_type: Literal["text", "number", "email", "phone", "date"] = "text"
    save_to_variable: str
    validation_regex: Optional[str] = None
    validation_message: Optional[str] = None
    max_retries: int = 3


class ConditionConfig(SchemaModel):
    expression: str = ""
    evaluator: Literal["simple", "javascript"] = "simple"


class ApiConfig(SchemaModel):
    method: Literal["GET", "POST", "PUT", "PATCH", "DELETE"] = "GET"
    url: str = ""
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[str] = None
    auth: Optional[ApiAuth] = None
    timeout: int = 5000
    retries: int = 0
    save_response_to: str
    error_on_http_error: bool = True


class DelayConfig(SchemaModel):
    duration: int = 0
    unit: Literal["seconds", "minutes", "hours", "days"] = "seconds"


class ActionConfig(SchemaModel):
    action_type: Literal["update_contact", "add_label", "send_email", "webhook"] = "webhook"
    parameters: Dict[str, Any] = Field(default_factory=dict)


class FormConfig(SchemaModel):
    fields: List[FormField] = Field(default_factory=list)
    submit_button_text: str = "Submit"
    save_to_variable: str


class VariableConfig(SchemaModel):
    variable_name: str = "temp"
    operation: Literal["set", "increment", "append"] = "set"
    value: str = ""


class TagConfig(SchemaModel):
    tag_names: List[str] = Field(default_factory=list)
    operation: Literal["add", "remove"] = "add"


class SegmentConfig(SchemaModel):
    segment_id: str = ""
    operation: Literal["add", "remove"] = "add"


class TransferAgentConfig(SchemaModel):
    assignment_type: Literal["round_robin", "specific_agent", "team"] = "round_robin"
    agent_id: Optional[int] = None
    team_id: Optional[int] = None
    message: Optional[str] = None
    end_flow: bool = True


class EndConfig(SchemaModel):
    reason: Literal["completed", "user_cancelled", "error", "transferred"] = "completed"
    message: Optional[str] = None


class PassthroughConfig(BaseModel):
    """
    Fallback variant for node types without a registered compiler.
    Holds the editor's data bag unchanged and unvalidated.
    """
    model_config = ConfigDict(extra="allow")

    @model_serializer(mode="plain")
    def _dump_data_bag(self) -> Dict[str, Any]:
        # Plain dict output, so exclude_none on export keeps null values in the bag.
        return dict(self.__pydantic_extra__ or {})


CONFIG_MODELS: Dict[str, type] = {
    NodeType.START.value: StartConfig,
    NodeType.MESSAGE.value: MessageConfig,
    NodeType.QUESTION.value: QuestionConfig,
    NodeType.CONDITION.value: ConditionConfig,
    NodeType.API.value: ApiConfig,
    NodeType.DELAY.value: DelayConfig,
    NodeType.ACTION.value: ActionConfig,
    NodeType.FORM.value: FormConfig,
    NodeType.VARIABLE.value: VariableConfig,
    NodeType.TAG.value: TagConfig,
    NodeType.SEGMENT.value: SegmentConfig,
    NodeType.TRANSFER_AGENT.value: TransferAgentConfig,
    NodeType.END.value: EndConfig,
}

NodeConfig = Union[
    StartConfig, MessageConfig, QuestionConfig, ConditionConfig, ApiConfig,
    DelayConfig, ActionConfig, FormConfig, VariableConfig, TagConfig,
    SegmentConfig, TransferAgentConfig, EndConfig, PassthroughConfig,
]


# ── Graph ─────────────────────────────────────────────────────────────

class Transition(SchemaModel):
    """
    A prioritized, optionally conditioned edge to another node.
    The engine tries transitions in ascending `priority` and takes the first
    whose condition holds (or the first unconditioned one).
    """
    id: str
    target_node_id: str
    condition: Optional[str] = None
    priority: int
    label: Optional[str] = None


class ExecutableNode(SchemaModel):
    """Minimal runtime representation of a single node."""
    id: str
    # Known tags parse to NodeType; unknown tags only appear with PassthroughConfig.
    type: Union[NodeType, str] = Field(union_mode="left_to_right")
    config: NodeConfig
    transitions: List[Transition] = Field(default_factory=list)
    error_handler: Optional[ErrorHandler] = None
    timeout: Optional[int] = None
    retries: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def _select_config_variant(cls, data: Any) -> Any:
        """Parse a raw `config` dict into the variant selected by `type`."""
        if not isinstance(data, dict):
            return data
        config = data.get("config")
        if not isinstance(config, dict):
            return data
        node_type = data.get("type")
        if isinstance(node_type, Enum):
            node_type = node_type.value
        model_cls = CONFIG_MODELS.get(node_type, PassthroughConfig)
        return {**data, "config": model_cls.model_validate(config)}

    @property
    def type_tag(self) -> str:
        return self.type.value if isinstance(self.type, NodeType) else str(self.type)


class FlowConfig(SchemaModel):
    timeout_seconds: int = 3600
    max_iterations: int = 100
    error_behavior: Literal["fail", "continue", "fallback"] = "fail"
    fallback_node_id: Optional[str] = None
    variables: List[VariableDefinition] = Field(default_factory=list)


class ExecutableFlow(SchemaModel):
    """
    The compiled flow - the only format the execution engine accepts.
    `nodes` is an id-keyed mapping for direct lookup by the engine.
    """
    id: str
    version: int = 1
    name: str
    description: Optional[str] = None
    metadata: FlowMetadata
    entry_node_id: str
    nodes: Dict[str, ExecutableNode] = Field(default_factory=dict)
    config: FlowConfig = Field(default_factory=FlowConfig)

    def get_node(self, node_id: str) -> Optional[ExecutableNode]:
        return self.nodes.get(node_id)
