"""FastAPI app factory.

Endpoints are intentionally thin wrappers over the registry and orchestrator.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from kit_engine import __version__
from kit_engine.config import EngineSettings
from kit_engine.kits.builtin import build_default_registry
from kit_engine.kits.errors import InactiveKitError, UnknownSessionError
from kit_engine.kits.orchestrator import KitOrchestrator
from kit_engine.kits.registry import KitRegistry, KitSummaryEntry, RegistrySummary
from kit_engine.server.config import ServerSettings
from kit_engine.server.models import RunRecord, RunRequest, SharedStateUpdate
from kit_engine.server.run_runner import start_kit_run
from kit_engine.server.run_store import RunStore

logger = logging.getLogger(__name__)


def create_app(
    *,
    registry: KitRegistry | None = None,
    orchestrator: KitOrchestrator | None = None,
) -> FastAPI:
    settings = ServerSettings()
    engine_settings = EngineSettings()

    registry = registry if registry is not None else build_default_registry()
    orchestrator = (
        orchestrator if orchestrator is not None else KitOrchestrator.from_settings(engine_settings)
    )
    run_store = RunStore()

    app = FastAPI(
        title="Kit Engine",
        version=__version__,
        description="REST API over the kit registry and orchestrator.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.state.settings = settings
    app.state.registry = registry
    app.state.orchestrator = orchestrator
    app.state.run_store = run_store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    def health() -> dict[str, object]:
        return {
            "status": "ok",
            "version": __version__,
            "activeSessions": len(orchestrator.get_active_sessions()),
        }

    @app.get("/api/kits", response_model=RegistrySummary)
    def list_kits() -> RegistrySummary:
        return registry.get_summary()

    @app.get("/api/kits/{kit_id}", response_model=KitSummaryEntry)
    def get_kit(kit_id: str) -> KitSummaryEntry:
        metadata = registry.get_kit(kit_id)
        if metadata is None or not metadata.is_active:
            raise HTTPException(status_code=404, detail="Kit not found")
        return metadata.to_summary()

    @app.post("/api/sessions/{session_id}/runs", response_model=RunRecord, status_code=202)
    def start_run(session_id: str, req: RunRequest) -> RunRecord:
        try:
            kit = registry.create_kit(req.kit_id, session_id, req.user_id)
        except InactiveKitError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e
        if kit is None:
            raise HTTPException(status_code=404, detail="Kit not found")

        run_id = start_kit_run(
            session_id=session_id,
            kit=kit,
            intake=req.intake,
            orchestrator=orchestrator,
            run_store=run_store,
        )
        record = run_store.get(run_id)
        if record is None:
            raise HTTPException(status_code=500, detail="Run creation failed")
        return record

    @app.get("/api/runs/{run_id}", response_model=RunRecord)
    def get_run(run_id: str) -> RunRecord:
        record = run_store.get(run_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Run not found")
        return record

    @app.get("/api/sessions")
    def list_sessions() -> list[str]:
        return orchestrator.get_active_sessions()

    @app.get("/api/sessions/{session_id}/runs", response_model=list[RunRecord])
    def list_runs(session_id: str) -> list[RunRecord]:
        return run_store.list(session_id=session_id)

    @app.get("/api/sessions/{session_id}/log")
    def get_log(session_id: str) -> list[dict[str, object]]:
        return [event.to_json() for event in orchestrator.get_execution_log(session_id)]

    @app.get("/api/sessions/{session_id}/state")
    def get_session_state(session_id: str) -> dict[str, Any]:
        context = orchestrator.get_context(session_id)
        if context is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return {
            "sessionId": context.session_id,
            "userId": context.user_id,
            "startedAt": context.started_at.isoformat(),
            "kits": {
                kit_id: kit.get_state().model_dump(mode="json")
                for kit_id, kit in context.active_kits.items()
            },
            "sharedState": context.shared_state,
        }

    @app.put("/api/sessions/{session_id}/shared-state")
    def put_shared_state(session_id: str, update: SharedStateUpdate) -> dict[str, Any]:
        try:
            orchestrator.share_state_to_kit(session_id, update.kit_id, update.key, update.value)
            return orchestrator.get_shared_state(session_id)
        except UnknownSessionError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e

    @app.delete("/api/sessions/{session_id}")
    def delete_session(session_id: str) -> dict[str, object]:
        orchestrator.cleanup_context(session_id)
        forgotten = run_store.forget_session(session_id)
        return {"sessionId": session_id, "removedRuns": forgotten}

    @app.post("/api/sessions/cleanup-expired")
    def cleanup_expired() -> dict[str, object]:
        expired = orchestrator.cleanup_expired_sessions()
        for session_id in expired:
            run_store.forget_session(session_id)
        return {"removedSessions": expired}

    logger.info("Kit engine API ready", extra={"kits": registry.get_active_kit_count()})
    return app
