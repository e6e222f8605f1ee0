"""API service for workflow definitions, runs and approvals."""

from fastapi import FastAPI
from services.api.routes.approvals import router as approvals_router
from services.api.routes.debug import router as debug_router
from services.api.routes.workflow import router as workflow_router
from services.api.middleware import CorrelationIdMiddleware
from shared.logging_config import setup_logging

setup_logging("api")

app = FastAPI(title="Workflow Execution Orchestrator API", version="1.0.0")
app.add_middleware(CorrelationIdMiddleware)

app.include_router(workflow_router, tags=["Workflows"])
app.include_router(approvals_router, tags=["Approvals"])
app.include_router(debug_router, tags=["Debugging"])


@app.get("/health")
async def health():
    return {"status": "healthy"}
