"""
Chatflow — FastAPI Server
Thin HTTP surface over the flow compiler for the API layer: compile,
validate-only and import of executable flows, plus the sample graphs.
No persistence and no execution happen here.
"""

import logging
import os
from typing import Optional, Dict, Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from chatflow import __version__
from chatflow.config.settings import settings
from chatflow.compiler.compiler import FlowCompiler, CompilationError
from chatflow.compiler.manifest import UIFlowGraph
from chatflow.compiler.schema import ExecutableFlow
from chatflow.seed.sample_flows import get_sample_flow, list_sample_flows

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


# ── Global Instances ──────────────────────────────────────────────────────────

flow_compiler = FlowCompiler(settings)


# ── Request Models ────────────────────────────────────────────────────────────

class CompileFlowRequest(BaseModel):
    flow: UIFlowGraph
    # Timestamps are stamped by the compiler when omitted.
    metadata: Optional[Dict[str, Any]] = None


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = __version__
    environment: str = settings.environment


def _flow_payload(flow: ExecutableFlow) -> Dict[str, Any]:
    return flow.model_dump(mode="json", by_alias=True, exclude_none=True)


# ── App ───────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="Chatflow Compiler",
    description="Compiles visual conversation-flow graphs into validated executable flows.",
    version=__version__,
)

_cors_origins_raw = os.environ.get("CORS_ALLOWED_ORIGINS", "*")
_cors_origins = ["*"] if _cors_origins_raw.strip() == "*" else [o.strip() for o in _cors_origins_raw.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CompilationError)
async def compilation_error_handler(request: Request, exc: CompilationError):
    logger.info("%s %s rejected at %s: %d issue(s)", request.method, request.url.path, exc.stage, len(exc.errors))
    return JSONResponse(status_code=422, content=exc.to_dict())


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": exc.errors(include_url=False, include_context=False, include_input=False)})


# ── System ────────────────────────────────────────────────────────────────────

@app.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse()


# ── Flows ─────────────────────────────────────────────────────────────────────

@app.post("/flows/compile")
async def compile_flow(req: CompileFlowRequest):
    """Compile an editor graph into an executable flow."""
    flow = flow_compiler.compile(req.flow, req.metadata)
    return _flow_payload(flow)


@app.post("/flows/validate")
async def validate_flow(req: CompileFlowRequest):
    """Run both validation gates; always 200 with the validation result."""
    result = flow_compiler.validate(req.flow, req.metadata)
    return result.model_dump(mode="json", by_alias=True, exclude_none=True)


@app.post("/flows/import")
async def import_flow(request: Request):
    """Validate a previously exported executable flow document."""
    body = await request.body()
    flow = flow_compiler.import_json(body)
    return _flow_payload(flow)


# ── Samples ───────────────────────────────────────────────────────────────────

@app.get("/flows/samples")
async def list_samples():
    names = list_sample_flows()
    return {"count": len(names), "samples": names}


@app.get("/flows/samples/{name}")
async def get_sample(name: str):
    try:
        return get_sample_flow(name)
    except KeyError:
        raise HTTPException(404, f"Sample flow '{name}' not found")


@app.post("/flows/samples/{name}/compile")
async def compile_sample(name: str):
    try:
        graph = get_sample_flow(name)
    except KeyError:
        raise HTTPException(404, f"Sample flow '{name}' not found")
    flow = flow_compiler.compile(graph, {"name": name.replace("_", " ").title(), "tags": ["sample"]})
    return _flow_payload(flow)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8080)
