"""
Chatflow — Sample Flows
Editor graphs (as the canvas saves them) covering every node type, so users
and tests see real examples of what the compiler accepts.
"""

import copy
from typing import Dict, List, Any


def _node(node_id: str, node_type: str, x: int, y: int, **data: Any) -> Dict[str, Any]:
    return {
        "id": node_id,
        "type": node_type,
        "position": {"x": x, "y": y},
        "data": {"label": data.pop("label", node_type.title()), **data},
    }


def _edge(edge_id: str, source: str, target: str, handle: str = None, label: str = None) -> Dict[str, Any]:
    edge: Dict[str, Any] = {"id": edge_id, "source": source, "target": target}
    if handle is not None:
        edge["sourceHandle"] = handle
    if label is not None:
        edge["label"] = label
    return edge


_VIEWPORT = {"x": 0, "y": 0, "zoom": 1}


# ═══════════════════════════════════════════════════════════════════════════════
# WELCOME — Start → Message → End
# ═══════════════════════════════════════════════════════════════════════════════

WELCOME_FLOW = {
    "nodes": [
        _node("start-1", "start", 0, 0),
        _node("message-1", "message", 0, 120, text="Welcome! How can I help you today?"),
        _node("end-1", "end", 0, 240, message="Thank you for chatting with us!"),
    ],
    "edges": [
        _edge("t1", "start-1", "message-1"),
        _edge("t2", "message-1", "end-1"),
    ],
    "viewport": _VIEWPORT,
}


# ═══════════════════════════════════════════════════════════════════════════════
# LEAD CAPTURE — questions, CRM call with success/error branches, tagging
# ═══════════════════════════════════════════════════════════════════════════════

LEAD_CAPTURE_FLOW = {
    "nodes": [
        _node("start", "start", 0, 0),
        _node("ask-name", "question", 0, 100, question="What's your name?", variable="name"),
        _node("ask-email", "input", 0, 200, text="And your email?", inputType="email",
              saveToVariable="email", validation=r"^[^@\s]+@[^@\s]+$"),
        _node("save-lead", "api", 0, 300, method="POST", apiUrl="https://crm.example.com/leads",
              headers={"Content-Type": "application/json"},
              body={"name": "{{name}}", "email": "{{email}}"}, retries=2),
        _node("tag-lead", "tag", -150, 400, tags=["lead", "website"]),
        _node("thanks", "message", -150, 500, text="Thanks {{name}}, we'll be in touch!"),
        _node("sorry", "message", 150, 400, text="Something went wrong, please try again later."),
        _node("end", "end", 0, 600),
    ],
    "edges": [
        _edge("e1", "start", "ask-name"),
        _edge("e2", "ask-name", "ask-email"),
        _edge("e3", "ask-email", "save-lead"),
        _edge("e4", "save-lead", "tag-lead", handle="success"),
        _edge("e5", "save-lead", "sorry", handle="error"),
        _edge("e6", "tag-lead", "thanks"),
        _edge("e7", "thanks", "end"),
        _edge("e8", "sorry", "end"),
    ],
    "viewport": _VIEWPORT,
}


# ═══════════════════════════════════════════════════════════════════════════════
# SUPPORT ROUTER — menu buttons, conditions, human handoff
# ═══════════════════════════════════════════════════════════════════════════════

SUPPORT_ROUTER_FLOW = {
    "nodes": [
        _node("start", "start", 0, 0),
        _node("menu", "message", 0, 100, text="What do you need help with?",
              buttons=[{"text": "Billing", "action": "billing"}, {"text": "Other"}]),
        _node("is-billing", "condition", 0, 200, condition="{{_lastResult}} == 'billing'"),
        _node("vip-check", "advancedCondition", -150, 300,
              conditions=[{"expression": "{{contact.tier}} == 'vip'", "field": "tier", "operator": "eq"}]),
        _node("handoff", "transfer_agent", -300, 400, assignmentType="team", teamId=7,
              message="Connecting you to billing..."),
        _node("wait", "delay", -150, 400, delay="30", unit="seconds"),
        _node("faq", "dynamicText", 150, 300, text="Here is our FAQ for {{contact.name}}"),
        _node("done", "end", 0, 500),
    ],
    "edges": [
        _edge("r1", "start", "menu"),
        _edge("r2", "menu", "is-billing"),
        _edge("r3", "is-billing", "vip-check", handle="yes", label="Billing"),
        _edge("r4", "is-billing", "faq", handle="no"),
        _edge("r5", "vip-check", "handoff", handle="true"),
        _edge("r6", "vip-check", "wait", handle="false"),
        _edge("r7", "wait", "handoff"),
        _edge("r8", "faq", "done"),
    ],
    "viewport": _VIEWPORT,
}


# ═══════════════════════════════════════════════════════════════════════════════
# PRODUCT SHOWCASE — rich content, forms, variables, segments, actions
# ═══════════════════════════════════════════════════════════════════════════════

PRODUCT_SHOWCASE_FLOW = {
    "nodes": [
        _node("start", "start", 0, 0),
        _node("hero", "mediaMessage", 0, 100, mediaType="image",
              mediaUrl="https://cdn.example.com/hero.png", text="New arrivals"),
        _node("cards", "carousel", 0, 200, cards=[
            {"title": "Sneakers", "subtitle": "$89", "imageUrl": "https://cdn.example.com/s.png",
             "buttons": [{"text": "Buy", "action": "buy_sneakers"}]},
            {"title": "Boots", "subtitle": "$129", "imageUrl": "https://cdn.example.com/b.png",
             "buttons": []},
        ]),
        _node("signup", "form", 0, 300, formTitle="Stay in touch", fields=[
            {"name": "email", "type": "email", "required": True, "placeholder": "Email"},
            {"name": "size", "type": "number", "required": False, "placeholder": "Shoe size"},
        ]),
        _node("count", "variable", 0, 400, variableName="signups", operation="increment", variableValue="1"),
        _node("segment", "segment", 0, 500, segmentName="newsletter"),
        _node("notify", "action", 0, 600, actionType="send_email",
              parameters={"template": "welcome"}),
        _node("end", "end", 0, 700),
    ],
    "edges": [
        _edge("p1", "start", "hero"),
        _edge("p2", "hero", "cards"),
        _edge("p3", "cards", "signup"),
        _edge("p4", "signup", "count"),
        _edge("p5", "count", "segment"),
        _edge("p6", "segment", "notify"),
        _edge("p7", "notify", "end"),
    ],
    "viewport": _VIEWPORT,
}


SAMPLE_FLOWS: Dict[str, Dict[str, Any]] = {
    "welcome": WELCOME_FLOW,
    "lead_capture": LEAD_CAPTURE_FLOW,
    "support_router": SUPPORT_ROUTER_FLOW,
    "product_showcase": PRODUCT_SHOWCASE_FLOW,
}


def get_sample_flow(name: str) -> Dict[str, Any]:
    """Deep copy of a sample editor graph, safe to mutate."""
    if name not in SAMPLE_FLOWS:
        raise KeyError(f"Unknown sample flow '{name}'. Available: {list_sample_flows()}")
    return copy.deepcopy(SAMPLE_FLOWS[name])


def list_sample_flows() -> List[str]:
    return list(SAMPLE_FLOWS)
