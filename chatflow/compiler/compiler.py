"""
Flow Compiler - compiles editor flow graphs into executable flows.
This is the bridge between the no-code canvas and the execution engine.

Compilation Pipeline:
1. Pre-compile validation (start node, node types)
2. Node compilation (registry dispatch per node type)
3. Entry node resolution
4. Flow assembly (identity, metadata, flow config)
5. Post-compile validation (entry node, cycles, dangling transitions)

Any failing gate aborts the whole call with the complete issue list.
"""

import logging
import time
from typing import Optional, Dict, List, Any, Union

from pydantic import ValidationError

from chatflow.config.settings import Settings, settings as default_settings
from chatflow.compiler.identity import IdentityProvider, UUIDIdentityProvider
from chatflow.compiler.manifest import UIFlowGraph, UIEdge, FlowMetadata
from chatflow.compiler.node_compilers import compile_node
from chatflow.compiler.schema import ExecutableFlow, ExecutableNode, FlowConfig, NodeType
from chatflow.compiler.validation import (
    IssueCode, ValidationIssue, ValidationResult,
    validate_pre_compile, validate_post_compile, count_by_code,
)

logger = logging.getLogger(__name__)

DEFAULT_FLOW_NAME = "Untitled Flow"


class CompilationError(Exception):
    """Compilation aborted at a validation gate; `errors` holds every issue found."""
    stage = "compile"

    def __init__(self, message: str, errors: Optional[List[ValidationIssue]] = None):
        super().__init__(message)
        self.message = message
        self.errors: List[ValidationIssue] = list(errors or [])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detail": self.message,
            "stage": self.stage,
            "errors": [e.model_dump(mode="json", by_alias=True, exclude_none=True) for e in self.errors],
        }


class PreCompileValidationError(CompilationError):
    stage = "pre_compile"


class NodeCompilationError(CompilationError):
    stage = "node_compile"


class PostCompileValidationError(CompilationError):
    stage = "post_compile"


class FlowImportError(CompilationError):
    stage = "import"


def _issues_from_validation_error(exc: ValidationError, node_id: Optional[str] = None) -> List[ValidationIssue]:
    code = IssueCode.INVALID_NODE_CONFIG if node_id else IssueCode.MALFORMED_FLOW
    issues = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()))
        message = f"{location}: {err.get('msg')}" if location else str(err.get("msg"))
        issues.append(ValidationIssue(code=code, message=message, node_id=node_id))
    return issues


class FlowCompiler:
    """
    Compiles a UI flow graph (JSON from the canvas) into an ExecutableFlow.
    Stateless between calls: one instance can serve concurrent compiles.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        ids: Optional[IdentityProvider] = None,
    ):
        self._settings = settings or default_settings
        self._ids = ids or UUIDIdentityProvider()

    # ── Compile ───────────────────────────────────────────────────────

    def compile(
        self,
        ui_flow: Union[UIFlowGraph, Dict[str, Any]],
        metadata: Union[FlowMetadata, Dict[str, Any], None] = None,
    ) -> ExecutableFlow:
        """
        Compile an editor graph into an ExecutableFlow.

        Raises PreCompileValidationError, NodeCompilationError or
        PostCompileValidationError carrying the full list of issues.
        """
        start = time.time()
        graph = self._coerce_graph(ui_flow)
        meta = self._coerce_metadata(metadata)
        logger.info(
            "Compiling flow '%s': %d nodes, %d edges",
            meta.name or DEFAULT_FLOW_NAME, len(graph.nodes), len(graph.edges),
        )

        # Step 1: Pre-compile validation
        pre = self.validate_pre_compile(graph)
        if not pre.valid:
            logger.warning("Pre-compilation validation failed: %s", count_by_code(pre.errors))
            raise PreCompileValidationError("Pre-compilation validation failed", pre.errors)

        # Step 2: Compile every node
        nodes = self._compile_nodes(graph)

        # Step 3: Entry node (unique start, guaranteed by step 1)
        entry = next(n for n in nodes.values() if n.type == NodeType.START)

        # Step 4: Assemble
        flow = ExecutableFlow(
            id=self._ids.new_id(),
            version=1,
            name=meta.name or DEFAULT_FLOW_NAME,
            description=meta.description,
            metadata=meta,
            entry_node_id=entry.id,
            nodes=nodes,
            config=self.build_flow_config(),
        )

        # Step 5: Post-compile validation
        post = self.validate_post_compile(flow)
        if not post.valid:
            logger.warning("Post-compilation validation failed: %s", count_by_code(post.errors))
            raise PostCompileValidationError("Post-compilation validation failed", post.errors)
        for warning in post.warnings:
            logger.info("Flow '%s': %s", flow.name, warning.message)

        logger.info(
            "Compiled flow '%s' (%s): %d nodes in %.1f ms",
            flow.name, flow.id, len(flow.nodes), (time.time() - start) * 1000,
        )
        return flow

    def _compile_nodes(self, graph: UIFlowGraph) -> Dict[str, ExecutableNode]:
        nodes: Dict[str, ExecutableNode] = {}
        errors: List[ValidationIssue] = []
        # Grouped once, in editor order, so each node sees only its own edges.
        outgoing: Dict[str, List[UIEdge]] = {}
        for edge in graph.edges:
            outgoing.setdefault(edge.source, []).append(edge)
        for ui_node in graph.nodes:
            try:
                nodes[ui_node.id] = compile_node(ui_node, outgoing.get(ui_node.id, []), self._ids)
            except ValidationError as e:
                errors.extend(_issues_from_validation_error(e, node_id=ui_node.id))
        if errors:
            logger.warning("Node compilation failed for %d node(s)", len({e.node_id for e in errors}))
            raise NodeCompilationError("Node compilation failed", errors)
        return nodes

    def build_flow_config(self) -> FlowConfig:
        """Fixed flow-level defaults; never inferred from node contents."""
        return FlowConfig(
            timeout_seconds=self._settings.flow_timeout_seconds,
            max_iterations=self._settings.flow_max_iterations,
            error_behavior=self._settings.flow_error_behavior,
            variables=[],
        )

    # ── Validation ────────────────────────────────────────────────────

    def validate_pre_compile(self, graph: UIFlowGraph) -> ValidationResult:
        return validate_pre_compile(graph, extra_types=self._settings.passthrough_node_types)

    def validate_post_compile(self, flow: ExecutableFlow) -> ValidationResult:
        return validate_post_compile(flow, warn_unreachable=self._settings.warn_unreachable_nodes)

    def validate(
        self,
        ui_flow: Union[UIFlowGraph, Dict[str, Any]],
        metadata: Union[FlowMetadata, Dict[str, Any], None] = None,
    ) -> ValidationResult:
        """Run both validation gates and report, without raising on invalid flows."""
        try:
            flow = self.compile(ui_flow, metadata)
        except CompilationError as e:
            return ValidationResult.from_issues(e.errors)
        return self.validate_post_compile(flow)

    # ── Import / Export ───────────────────────────────────────────────

    def export_json(self, flow: ExecutableFlow) -> str:
        """Pretty-printed engine JSON (camelCase keys, absent optionals omitted)."""
        return flow.model_dump_json(by_alias=True, exclude_none=True, indent=2)

    def import_json(self, text: Union[str, bytes]) -> ExecutableFlow:
        """
        Parse an exported flow and re-run post-compile validation.
        Pre-compile validation does not apply: the editor graph is gone.
        """
        try:
            flow = ExecutableFlow.model_validate_json(text)
        except ValidationError as e:
            raise FlowImportError("Malformed flow document", _issues_from_validation_error(e)) from e

        result = self.validate_post_compile(flow)
        if not result.valid:
            logger.warning("Imported flow '%s' is invalid: %s", flow.id, count_by_code(result.errors))
            raise FlowImportError("Invalid imported flow", result.errors)
        return flow

    # ── Helpers ───────────────────────────────────────────────────────

    def new_metadata(self, **fields: Any) -> FlowMetadata:
        """Metadata stamped with the current time from the identity provider."""
        now = self._ids.now()
        for name, alias in (("created_at", "createdAt"), ("updated_at", "updatedAt")):
            if name not in fields and alias not in fields:
                fields[name] = now
        return FlowMetadata(**fields)

    @staticmethod
    def _coerce_graph(ui_flow: Union[UIFlowGraph, Dict[str, Any]]) -> UIFlowGraph:
        if isinstance(ui_flow, UIFlowGraph):
            return ui_flow
        return UIFlowGraph.model_validate(ui_flow)

    def _coerce_metadata(self, metadata: Union[FlowMetadata, Dict[str, Any], None]) -> FlowMetadata:
        if isinstance(metadata, FlowMetadata):
            return metadata
        return self.new_metadata(**(metadata or {}))
