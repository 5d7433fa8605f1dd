"""
Node Compiler Registry - one compilation strategy per UI node type.

Each strategy maps the editor's loose, author-facing `data` bag onto the
typed execution config for the node, applying ordered fallback chains
(e.g. `apiUrl` before `url`). Authoring-only types (input, mediaMessage,
carousel, dynamicText, advancedCondition) normalize to execution types.
Types without a registered strategy go through `default_compile`, which
forwards the data bag unchanged.
"""

import json
import logging
import math
import re
from types import MappingProxyType
from typing import Optional, List, Any, Callable, Sequence

from chatflow.compiler.identity import IdentityProvider
from chatflow.compiler.manifest import UINode, UIEdge
from chatflow.compiler.schema import (
    NodeType, ExecutableNode, MessageButton, CardItem, RichMessageContent,
    FormField, StartConfig, MessageConfig, QuestionConfig, ConditionConfig,
    ApiConfig, DelayConfig, ActionConfig, FormConfig, VariableConfig,
    TagConfig, SegmentConfig, TransferAgentConfig, EndConfig, PassthroughConfig,
)
from chatflow.compiler.transitions import derive_transitions

logger = logging.getLogger(__name__)

NodeCompiler = Callable[[UINode, Sequence[UIEdge], IdentityProvider], ExecutableNode]

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


# ── Helpers ───────────────────────────────────────────────────────────

def _first(*values: Any, default: Any = None) -> Any:
    """First truthy value, else `default`."""
    for v in values:
        if v:
            return v
    return default


def parse_int(value: Any) -> int:
    """Leading-integer parse ("15s" -> 15); anything unparseable is 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else 0


def _as_list(value: Any) -> List[Any]:
    """Editor collections; a non-list value (string, object) counts as empty."""
    return list(value) if isinstance(value, (list, tuple)) else []


def _as_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def _node(
    ui_node: UINode,
    node_type: NodeType,
    config: Any,
    edges: Sequence[UIEdge],
    **extra: Any,
) -> ExecutableNode:
    return ExecutableNode(
        id=ui_node.id,
        type=node_type,
        config=config,
        transitions=derive_transitions(edges, ui_node.id),
        **extra,
    )


def compile_buttons(raw: Any, ids: IdentityProvider) -> List[MessageButton]:
    """Editor buttons `{text|label, action}` -> reply buttons with fresh ids."""
    buttons: List[MessageButton] = []
    for btn in _as_list(raw):
        if not isinstance(btn, dict):
            continue
        label = _first(btn.get("text"), btn.get("label"), default="")
        buttons.append(MessageButton(
            id=ids.new_id(),
            label=label,
            action="reply",
            value=_first(btn.get("action"), btn.get("text"), btn.get("label"), default=""),
        ))
    return buttons


def _message_config(
    content: str,
    buttons: List[MessageButton],
    rich_content: Optional[RichMessageContent] = None,
) -> MessageConfig:
    return MessageConfig(
        content=content,
        content_type="rich" if buttons or rich_content else "text",
        rich_content=rich_content,
        buttons=buttons or None,
    )


# ── Execution node types ──────────────────────────────────────────────

def compile_start(ui_node: UINode, edges: Sequence[UIEdge], ids: IdentityProvider) -> ExecutableNode:
    return _node(ui_node, NodeType.START, StartConfig(), edges)


def compile_message(ui_node: UINode, edges: Sequence[UIEdge], ids: IdentityProvider) -> ExecutableNode:
    data = ui_node.data
    buttons = compile_buttons(data.get("buttons"), ids)
    content = _first(data.get("text"), data.get("content"), default="")
    return _node(ui_node, NodeType.MESSAGE, _message_config(content, buttons), edges)


def compile_question(ui_node: UINode, edges: Sequence[UIEdge], ids: IdentityProvider) -> ExecutableNode:
    data = ui_node.data
    config = QuestionConfig(
        question=_first(data.get("question"), data.get("text"), default=""),
        expected_input_type=_first(data.get("inputType"), default="text"),
        save_to_variable=_first(data.get("variable"), default=f"answer_{ui_node.id}"),
        validation_regex=data.get("validationRegex"),
        validation_message=data.get("validationMessage"),
        max_retries=_first(data.get("maxRetries"), default=3),
    )
    return _node(ui_node, NodeType.QUESTION, config, edges)


def compile_condition(ui_node: UINode, edges: Sequence[UIEdge], ids: IdentityProvider) -> ExecutableNode:
    config = ConditionConfig(
        expression=_first(ui_node.data.get("condition"), default=""),
        evaluator="simple",
    )
    return _node(ui_node, NodeType.CONDITION, config, edges)


def compile_api(ui_node: UINode, edges: Sequence[UIEdge], ids: IdentityProvider) -> ExecutableNode:
    data = ui_node.data
    retries = _first(data.get("retries"), default=0)
    config = ApiConfig(
        method=_first(data.get("method"), default="GET"),
        url=_first(data.get("apiUrl"), data.get("url"), default=""),
        headers=_first(data.get("headers"), default={}),
        body=_as_text(data.get("body")),
        auth=data.get("auth"),
        timeout=_first(data.get("timeout"), default=5000),
        retries=retries,
        save_response_to=_first(data.get("saveResponseTo"), default=f"api_response_{ui_node.id}"),
        error_on_http_error=True,
    )
    return _node(ui_node, NodeType.API, config, edges, retries=config.retries)


def compile_delay(ui_node: UINode, edges: Sequence[UIEdge], ids: IdentityProvider) -> ExecutableNode:
    data = ui_node.data
    config = DelayConfig(
        duration=parse_int(_first(data.get("delay"), data.get("duration"), default="0")),
        unit=_first(data.get("unit"), default="seconds"),
    )
    return _node(ui_node, NodeType.DELAY, config, edges)


def compile_action(ui_node: UINode, edges: Sequence[UIEdge], ids: IdentityProvider) -> ExecutableNode:
    data = ui_node.data
    config = ActionConfig(
        action_type=_first(data.get("actionType"), default="webhook"),
        parameters=_first(data.get("parameters"), default={}),
    )
    return _node(ui_node, NodeType.ACTION, config, edges)


def _form_fields(raw: Any) -> List[FormField]:
    fields: List[FormField] = []
    for index, f in enumerate(_as_list(raw)):
        if not isinstance(f, dict):
            continue
        fields.append(FormField(
            id=_first(f.get("id"), f.get("name"), default=f"field_{index}"),
            label=_first(f.get("label"), f.get("name"), f.get("placeholder"), default=""),
            type=_first(f.get("type"), default="text"),
            required=bool(f.get("required")),
            options=f.get("options"),
        ))
    return fields


def compile_form(ui_node: UINode, edges: Sequence[UIEdge], ids: IdentityProvider) -> ExecutableNode:
    data = ui_node.data
    config = FormConfig(
        fields=_form_fields(data.get("fields")),
        submit_button_text=_first(data.get("submitButtonText"), default="Submit"),
        save_to_variable=_first(data.get("saveToVariable"), default=f"form_{ui_node.id}"),
    )
    return _node(ui_node, NodeType.FORM, config, edges)


def compile_variable(ui_node: UINode, edges: Sequence[UIEdge], ids: IdentityProvider) -> ExecutableNode:
    data = ui_node.data
    config = VariableConfig(
        variable_name=_first(data.get("variable"), data.get("variableName"), default="temp"),
        operation=_first(data.get("operation"), default="set"),
        value=_as_text(_first(data.get("value"), data.get("variableValue"), default="")),
    )
    return _node(ui_node, NodeType.VARIABLE, config, edges)


def compile_tag(ui_node: UINode, edges: Sequence[UIEdge], ids: IdentityProvider) -> ExecutableNode:
    data = ui_node.data
    config = TagConfig(
        tag_names=_first(data.get("tags"), data.get("tagNames"), default=[]),
        operation=_first(data.get("operation"), default="add"),
    )
    return _node(ui_node, NodeType.TAG, config, edges)


def compile_segment(ui_node: UINode, edges: Sequence[UIEdge], ids: IdentityProvider) -> ExecutableNode:
    data = ui_node.data
    config = SegmentConfig(
        segment_id=_first(data.get("segmentId"), data.get("segmentName"), default=""),
        operation=_first(data.get("operation"), default="add"),
    )
    return _node(ui_node, NodeType.SEGMENT, config, edges)


def compile_transfer_agent(ui_node: UINode, edges: Sequence[UIEdge], ids: IdentityProvider) -> ExecutableNode:
    data = ui_node.data
    end_flow = data.get("endFlow")
    config = TransferAgentConfig(
        assignment_type=_first(data.get("assignmentType"), default="round_robin"),
        agent_id=data.get("agentId"),
        team_id=data.get("teamId"),
        message=data.get("message"),
        end_flow=True if end_flow is None else end_flow,
    )
    return _node(ui_node, NodeType.TRANSFER_AGENT, config, edges)


def compile_end(ui_node: UINode, edges: Sequence[UIEdge], ids: IdentityProvider) -> ExecutableNode:
    data = ui_node.data
    config = EndConfig(
        reason=_first(data.get("reason"), default="completed"),
        message=data.get("message"),
    )
    return _node(ui_node, NodeType.END, config, edges)


# ── Authoring-only node types ─────────────────────────────────────────

def compile_advanced_condition(ui_node: UINode, edges: Sequence[UIEdge], ids: IdentityProvider) -> ExecutableNode:
    data = ui_node.data
    conditions = _as_list(data.get("conditions"))
    first_expression = None
    if conditions and isinstance(conditions[0], dict):
        first_expression = conditions[0].get("expression")
    config = ConditionConfig(
        expression=_first(data.get("condition"), first_expression, default=""),
        evaluator="javascript",
    )
    return _node(ui_node, NodeType.CONDITION, config, edges)


def compile_input(ui_node: UINode, edges: Sequence[UIEdge], ids: IdentityProvider) -> ExecutableNode:
    data = ui_node.data
    config = QuestionConfig(
        question=_first(data.get("question"), data.get("text"), data.get("placeholder"), default=""),
        expected_input_type=_first(data.get("inputType"), default="text"),
        save_to_variable=_first(data.get("saveToVariable"), data.get("variable"), default=f"answer_{ui_node.id}"),
        validation_regex=_first(data.get("validation"), data.get("validationRegex")),
        validation_message=data.get("validationMessage"),
        max_retries=_first(data.get("maxRetries"), default=3),
    )
    return _node(ui_node, NodeType.QUESTION, config, edges)


def compile_media_message(ui_node: UINode, edges: Sequence[UIEdge], ids: IdentityProvider) -> ExecutableNode:
    data = ui_node.data
    media_url = data.get("mediaUrl")
    rich = RichMessageContent(
        type="card",
        items=[CardItem(title=_first(data.get("text"), data.get("label"), default=""), image_url=media_url)],
    )
    buttons = compile_buttons(data.get("buttons"), ids)
    content = _first(data.get("text"), media_url, default="")
    return _node(ui_node, NodeType.MESSAGE, _message_config(content, buttons, rich), edges)


def compile_carousel(ui_node: UINode, edges: Sequence[UIEdge], ids: IdentityProvider) -> ExecutableNode:
    data = ui_node.data
    items: List[CardItem] = []
    for card in _as_list(data.get("cards")):
        if not isinstance(card, dict):
            continue
        items.append(CardItem(
            title=_first(card.get("title"), default=""),
            subtitle=card.get("subtitle"),
            image_url=card.get("imageUrl"),
            buttons=compile_buttons(card.get("buttons"), ids) or None,
        ))
    rich = RichMessageContent(type="carousel", items=items)
    content = _first(data.get("text"), default="")
    return _node(ui_node, NodeType.MESSAGE, _message_config(content, [], rich), edges)


def compile_dynamic_text(ui_node: UINode, edges: Sequence[UIEdge], ids: IdentityProvider) -> ExecutableNode:
    data = ui_node.data
    content = _first(data.get("text"), data.get("content"), default="")
    return _node(ui_node, NodeType.MESSAGE, _message_config(content, []), edges)


# ── Registry ──────────────────────────────────────────────────────────

def default_compile(ui_node: UINode, edges: Sequence[UIEdge], ids: IdentityProvider) -> ExecutableNode:
    """Fallback for unregistered types: data bag forwarded as config, unvalidated."""
    logger.debug("No compiler for node type '%s' (node %s), passing data through", ui_node.type, ui_node.id)
    return ExecutableNode(
        id=ui_node.id,
        type=ui_node.type,
        config=PassthroughConfig.model_validate(ui_node.data),
        transitions=derive_transitions(edges, ui_node.id),
    )


NODE_COMPILERS: "MappingProxyType[str, NodeCompiler]" = MappingProxyType({
    "start": compile_start,
    "message": compile_message,
    "question": compile_question,
    "condition": compile_condition,
    "api": compile_api,
    "delay": compile_delay,
    "action": compile_action,
    "form": compile_form,
    "variable": compile_variable,
    "tag": compile_tag,
    "segment": compile_segment,
    "transfer_agent": compile_transfer_agent,
    "end": compile_end,
    "advancedCondition": compile_advanced_condition,
    "input": compile_input,
    "mediaMessage": compile_media_message,
    "carousel": compile_carousel,
    "dynamicText": compile_dynamic_text,
})


def get_compiler(node_type: str) -> NodeCompiler:
    return NODE_COMPILERS.get(node_type, default_compile)


def compile_node(ui_node: UINode, edges: Sequence[UIEdge], ids: IdentityProvider) -> ExecutableNode:
    """Compile one UI node with its registered strategy (or the default)."""
    return get_compiler(ui_node.type)(ui_node, edges, ids)
