"""
Tests for the Node Compiler Registry — per-type config mapping and defaults.
Run: pytest tests/test_node_compilers.py -v
"""
import pytest
from pydantic import ValidationError

from chatflow.compiler.manifest import UINode, UIEdge
from chatflow.compiler.node_compilers import (
    NODE_COMPILERS, compile_node, default_compile, get_compiler, parse_int,
)
from chatflow.compiler.schema import (
    NodeType, StartConfig, MessageConfig, QuestionConfig, ConditionConfig,
    ApiConfig, DelayConfig, FormConfig, VariableConfig, TagConfig,
    SegmentConfig, TransferAgentConfig, EndConfig, PassthroughConfig,
)


def _compile(node_type, data=None, node_id="n1", edges=(), ids=None):
    return compile_node(UINode(id=node_id, type=node_type, data=data or {}), list(edges), ids)


class TestRegistry:

    def test_every_execution_type_is_registered(self):
        for node_type in NodeType:
            assert node_type.value in NODE_COMPILERS

    def test_authoring_types_are_registered(self):
        for node_type in ("input", "mediaMessage", "carousel", "dynamicText", "advancedCondition"):
            assert node_type in NODE_COMPILERS

    def test_unregistered_type_uses_default(self):
        assert get_compiler("webhookTrigger") is default_compile

    def test_registry_is_read_only(self):
        with pytest.raises(TypeError):
            NODE_COMPILERS["custom"] = default_compile  # type: ignore[index]


class TestMessageNode:

    def test_text_content(self, ids):
        node = _compile("message", {"text": "Hi"}, ids=ids)
        assert node.type == NodeType.MESSAGE
        assert isinstance(node.config, MessageConfig)
        assert node.config.content == "Hi"
        assert node.config.content_type == "text"
        assert node.config.buttons is None

    def test_content_fallback_and_default(self, ids):
        assert _compile("message", {"content": "Hello"}, ids=ids).config.content == "Hello"
        assert _compile("message", {}, ids=ids).config.content == ""

    def test_buttons_normalized(self, ids):
        node = _compile("message", {
            "text": "Pick one",
            "buttons": [
                {"text": "Billing", "action": "billing"},
                {"label": "Other"},
            ],
        }, ids=ids)
        config = node.config
        assert config.content_type == "rich"
        assert [b.label for b in config.buttons] == ["Billing", "Other"]
        assert [b.value for b in config.buttons] == ["billing", "Other"]
        assert all(b.action == "reply" for b in config.buttons)
        assert [b.id for b in config.buttons] == ["id-1", "id-2"]

    def test_button_ids_are_unique(self, ids):
        node = _compile("message", {"buttons": [{"text": "A"}, {"text": "A"}]}, ids=ids)
        assert len({b.id for b in node.config.buttons}) == 2

    @pytest.mark.parametrize("raw", ["Yes,No", {"text": "Yes"}, 3])
    def test_non_list_buttons_are_ignored(self, ids, raw):
        node = _compile("message", {"text": "Hi", "buttons": raw}, ids=ids)
        assert node.config.buttons is None
        assert node.config.content_type == "text"
        assert ids.issued == 0


class TestQuestionNode:

    def test_defaults(self, ids):
        node = _compile("question", {}, node_id="q1", ids=ids)
        assert isinstance(node.config, QuestionConfig)
        assert node.config.question == ""
        assert node.config.save_to_variable == "answer_q1"
        assert node.config.max_retries == 3
        assert node.config.expected_input_type == "text"

    def test_question_fallback_to_text(self, ids):
        node = _compile("question", {"text": "Name?", "variable": "name", "maxRetries": 5}, ids=ids)
        assert node.config.question == "Name?"
        assert node.config.save_to_variable == "name"
        assert node.config.max_retries == 5

    def test_question_field_wins(self, ids):
        node = _compile("question", {"question": "Q", "text": "T"}, ids=ids)
        assert node.config.question == "Q"


class TestConditionNodes:

    def test_basic_condition(self, ids):
        node = _compile("condition", {"condition": "{{age}} > 18"}, ids=ids)
        assert isinstance(node.config, ConditionConfig)
        assert node.config.expression == "{{age}} > 18"
        assert node.config.evaluator == "simple"

    def test_basic_condition_default(self, ids):
        assert _compile("condition", {}, ids=ids).config.expression == ""

    def test_advanced_condition_maps_to_condition(self, ids):
        node = _compile("advancedCondition", {
            "conditions": [{"expression": "a == 1"}, {"expression": "b == 2"}],
        }, ids=ids)
        assert node.type == NodeType.CONDITION
        assert node.config.expression == "a == 1"
        assert node.config.evaluator == "javascript"

    def test_advanced_condition_prefers_condition_field(self, ids):
        node = _compile("advancedCondition", {"condition": "x", "conditions": [{"expression": "y"}]}, ids=ids)
        assert node.config.expression == "x"

    def test_advanced_condition_empty(self, ids):
        node = _compile("advancedCondition", {"conditions": []}, ids=ids)
        assert node.config.expression == ""
        assert node.config.evaluator == "javascript"


class TestApiNode:

    def test_defaults(self, ids):
        node = _compile("api", {}, node_id="call", ids=ids)
        assert isinstance(node.config, ApiConfig)
        assert node.config.method == "GET"
        assert node.config.url == ""
        assert node.config.retries == 0
        assert node.config.timeout == 5000
        assert node.config.save_response_to == "api_response_call"
        assert node.config.error_on_http_error is True
        assert node.retries == 0

    def test_api_url_precedence(self, ids):
        node = _compile("api", {"apiUrl": "https://a", "url": "https://b"}, ids=ids)
        assert node.config.url == "https://a"
        assert _compile("api", {"url": "https://b"}, ids=ids).config.url == "https://b"

    def test_retries_copied_to_node(self, ids):
        node = _compile("api", {"method": "POST", "retries": 2, "saveResponseTo": "resp"}, ids=ids)
        assert node.config.method == "POST"
        assert node.config.retries == 2
        assert node.retries == 2
        assert node.config.save_response_to == "resp"

    def test_object_body_serialized(self, ids):
        node = _compile("api", {"body": {"a": 1}}, ids=ids)
        assert node.config.body == '{"a": 1}'

    def test_invalid_method_rejected(self, ids):
        with pytest.raises(ValidationError):
            _compile("api", {"method": "FETCH"}, ids=ids)


class TestDelayNode:

    @pytest.mark.parametrize("data,expected", [
        ({"delay": "15"}, 15),
        ({"delay": 30}, 30),
        ({"delay": "10s"}, 10),
        ({"duration": "7"}, 7),
        ({"delay": "soon"}, 0),
        ({}, 0),
    ])
    def test_duration_parse(self, ids, data, expected):
        node = _compile("delay", data, ids=ids)
        assert isinstance(node.config, DelayConfig)
        assert node.config.duration == expected

    def test_unit(self, ids):
        assert _compile("delay", {"delay": 1, "unit": "minutes"}, ids=ids).config.unit == "minutes"
        assert _compile("delay", {"delay": 1}, ids=ids).config.unit == "seconds"

    def test_parse_int_edge_cases(self):
        assert parse_int(2.9) == 2
        assert parse_int(float("nan")) == 0
        assert parse_int(True) == 0
        assert parse_int(" -4 ") == -4


class TestVariableTagSegmentNodes:

    def test_variable_precedence(self, ids):
        node = _compile("variable", {"variable": "a", "variableName": "b"}, ids=ids)
        assert isinstance(node.config, VariableConfig)
        assert node.config.variable_name == "a"
        assert _compile("variable", {"variableName": "b"}, ids=ids).config.variable_name == "b"
        assert _compile("variable", {}, ids=ids).config.variable_name == "temp"

    def test_variable_value(self, ids):
        node = _compile("variable", {"operation": "increment", "variableValue": 1}, ids=ids)
        assert node.config.operation == "increment"
        assert node.config.value == "1"

    def test_tag_precedence(self, ids):
        node = _compile("tag", {"tags": ["vip"], "tagNames": ["other"]}, ids=ids)
        assert isinstance(node.config, TagConfig)
        assert node.config.tag_names == ["vip"]
        assert _compile("tag", {"tagNames": ["x"]}, ids=ids).config.tag_names == ["x"]
        assert _compile("tag", {}, ids=ids).config.tag_names == []
        assert _compile("tag", {}, ids=ids).config.operation == "add"

    def test_segment(self, ids):
        node = _compile("segment", {"segmentId": "seg-1", "operation": "remove"}, ids=ids)
        assert isinstance(node.config, SegmentConfig)
        assert node.config.segment_id == "seg-1"
        assert node.config.operation == "remove"


class TestFormNode:

    def test_fields_normalized(self, ids):
        node = _compile("form", {"fields": [
            {"name": "email", "type": "email", "required": True, "placeholder": "Your email"},
        ]}, node_id="f1", ids=ids)
        assert isinstance(node.config, FormConfig)
        field = node.config.fields[0]
        assert field.id == "email"
        assert field.type == "email"
        assert field.required is True
        assert node.config.submit_button_text == "Submit"
        assert node.config.save_to_variable == "form_f1"

    def test_non_list_fields_are_ignored(self, ids):
        assert _compile("form", {"fields": "email"}, ids=ids).config.fields == []


class TestTerminalNodes:

    def test_start(self, ids):
        node = _compile("start", {"label": "Start"}, ids=ids)
        assert node.type == NodeType.START
        assert isinstance(node.config, StartConfig)

    def test_end_defaults(self, ids):
        node = _compile("end", {}, ids=ids)
        assert isinstance(node.config, EndConfig)
        assert node.config.reason == "completed"
        assert node.config.message is None

    def test_transfer_agent(self, ids):
        node = _compile("transfer_agent", {"assignmentType": "team", "teamId": 3}, ids=ids)
        assert isinstance(node.config, TransferAgentConfig)
        assert node.config.team_id == 3
        assert node.config.end_flow is True

    def test_transfer_agent_keep_flow(self, ids):
        node = _compile("transfer_agent", {"endFlow": False}, ids=ids)
        assert node.config.end_flow is False


class TestAuthoringNodes:

    def test_input_maps_to_question(self, ids):
        node = _compile("input", {
            "placeholder": "Email", "inputType": "email",
            "saveToVariable": "email", "validation": ".+@.+",
        }, ids=ids)
        assert node.type == NodeType.QUESTION
        assert node.config.question == "Email"
        assert node.config.expected_input_type == "email"
        assert node.config.save_to_variable == "email"
        assert node.config.validation_regex == ".+@.+"

    def test_media_message(self, ids):
        node = _compile("mediaMessage", {"mediaUrl": "https://x/img.png", "mediaType": "image"}, ids=ids)
        assert node.type == NodeType.MESSAGE
        assert node.config.content_type == "rich"
        assert node.config.rich_content.type == "card"
        assert node.config.rich_content.items[0].image_url == "https://x/img.png"

    def test_carousel(self, ids):
        node = _compile("carousel", {"cards": [
            {"title": "A", "subtitle": "a", "imageUrl": "https://x/a.png",
             "buttons": [{"text": "Buy", "action": "buy_a"}]},
            {"title": "B"},
        ]}, ids=ids)
        rich = node.config.rich_content
        assert rich.type == "carousel"
        assert [i.title for i in rich.items] == ["A", "B"]
        assert rich.items[0].buttons[0].value == "buy_a"
        assert rich.items[1].buttons is None

    def test_dynamic_text(self, ids):
        node = _compile("dynamicText", {"text": "Hi {{name}}"}, ids=ids)
        assert node.type == NodeType.MESSAGE
        assert node.config.content == "Hi {{name}}"
        assert node.config.content_type == "text"


class TestDefaultCompile:

    def test_passthrough_keeps_data_and_type(self, ids):
        edges = [UIEdge(id="e1", source="n1", target="n2", source_handle="yes")]
        node = default_compile(UINode(id="n1", type="webhookTrigger", data={"hookId": 9, "label": "Hook"}), edges, ids)
        assert node.type == "webhookTrigger"
        assert isinstance(node.config, PassthroughConfig)
        assert node.config.model_dump() == {"hookId": 9, "label": "Hook"}
        assert node.transitions[0].target_node_id == "n2"
        assert node.transitions[0].priority == 0

    def test_transitions_attached_by_registered_compilers(self, ids):
        edges = [
            UIEdge(id="e1", source="n1", target="a"),
            UIEdge(id="e2", source="n1", target="b", source_handle="no"),
        ]
        node = _compile("question", {}, edges=edges, ids=ids)
        assert [(t.id, t.priority) for t in node.transitions] == [("e1", 0), ("e2", 1)]
