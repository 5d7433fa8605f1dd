"""Flow Compiler - compile visual editor flow graphs into executable flows."""
from .manifest import UIFlowGraph, UINode, UIEdge, FlowMetadata
from .schema import ExecutableFlow, ExecutableNode, Transition, FlowConfig, NodeType
from .validation import IssueCode, ValidationIssue, ValidationResult, detect_cycles
from .compiler import (
    FlowCompiler,
    CompilationError,
    PreCompileValidationError,
    NodeCompilationError,
    PostCompileValidationError,
    FlowImportError,
)

__all__ = [
    "UIFlowGraph",
    "UINode",
    "UIEdge",
    "FlowMetadata",
    "ExecutableFlow",
    "ExecutableNode",
    "Transition",
    "FlowConfig",
    "NodeType",
    "IssueCode",
    "ValidationIssue",
    "ValidationResult",
    "detect_cycles",
    "FlowCompiler",
    "CompilationError",
    "PreCompileValidationError",
    "NodeCompilationError",
    "PostCompileValidationError",
    "FlowImportError",
]
