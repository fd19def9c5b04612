# api/app.py
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from ..errors import NotFoundError, ParseError, PersistenceError, ValidationError
from ..orchestrator import Orchestrator
from .schemas import MessageResponse, RunOut, StatsOut, WorkflowOut

logger = logging.getLogger(__name__)


def create_app(orchestrator: Orchestrator, *, cors_origins: Optional[List[str]] = None) -> FastAPI:
    app = FastAPI(title="Shipyard")
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(PersistenceError)
    async def persistence_error(_request: Request, exc: PersistenceError):
        logger.error("storage failure: %s", exc)
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    # -------------------- Workflows --------------------

    @app.post("/api/workflows", response_model=MessageResponse)
    async def upload_workflow(request: Request):
        body = await request.body()
        try:
            wf = await run_in_threadpool(orchestrator.ingest, body)
        except (ParseError, ValidationError) as e:
            raise HTTPException(status_code=400, detail=f"Invalid workflow: {e}")
        return MessageResponse(message="Workflow uploaded successfully", name=wf.name)

    @app.get("/api/workflows", response_model=list[WorkflowOut])
    def list_workflows():
        return [WorkflowOut.from_workflow(wf) for wf in orchestrator.list_workflows()]

    @app.delete("/api/workflows/{name}", response_model=MessageResponse)
    def delete_workflow(name: str):
        try:
            orchestrator.delete_workflow(name)
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return MessageResponse(message="Workflow deleted successfully", name=name)

    @app.post("/api/workflows/{name}/trigger", response_model=RunOut)
    def trigger_workflow(name: str):
        try:
            run = orchestrator.trigger(name)
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return RunOut.from_run(run)

    @app.get("/api/workflows/{name}/runs", response_model=list[RunOut])
    def workflow_runs(name: str):
        return [RunOut.from_run(r) for r in orchestrator.workflow_runs(name)]

    @app.get("/api/workflows/{name}/stats", response_model=StatsOut)
    def workflow_stats(name: str):
        return StatsOut(**orchestrator.workflow_stats(name))

    # -------------------- Runs --------------------

    @app.get("/api/runs", response_model=list[RunOut])
    def list_runs():
        return [RunOut.from_run(r) for r in orchestrator.list_runs()]

    @app.get("/api/runs/{run_id}", response_model=RunOut)
    def get_run(run_id: str):
        try:
            run = orchestrator.get_run(run_id)
        except NotFoundError:
            raise HTTPException(status_code=404, detail="Run not found")
        return RunOut.from_run(run)

    @app.get("/health")
    def health():
        return {"ok": True}

    return app
