"""HTTP and websocket surface of the monitoring service."""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect

from .errors import CheckInProgressError, ConfigurationError, TargetNotFoundError
from .models import PolicyUpdate, Severity
from .publisher import BroadcastPublisher
from .service import MonitoringService


logger = structlog.get_logger(__name__)


def create_app(service: MonitoringService, *, manage_lifecycle: bool = True) -> FastAPI:
    """Build the FastAPI app. With ``manage_lifecycle`` the service starts and stops with it."""
    app = FastAPI(title="Uptime Monitor", version="0.1.0")
    app.state.service = service

    if manage_lifecycle:
        @app.on_event("startup")
        async def _startup() -> None:
            await service.start()

        @app.on_event("shutdown")
        async def _shutdown() -> None:
            await service.stop()

    @app.get("/health")
    async def health():
        return {"status": "healthy", "service": "uptime-monitor", "scheduler": service.scheduler.state.value}

    @app.get("/api/v1/stats")
    async def stats():
        return await service.get_stats()

    @app.get("/api/v1/scheduler")
    async def scheduler_status():
        return service.scheduler.status()

    @app.get("/api/v1/incidents")
    async def incidents(
        target_id: Optional[str] = None,
        severity: Optional[Severity] = None,
        resolved: Optional[bool] = None,
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=20, ge=1, le=100),
    ):
        result = await service.list_incidents(
            target_id=target_id, severity=severity, resolved=resolved, page=page, limit=limit
        )
        return result.to_dict()

    @app.get("/api/v1/targets/{target_id}")
    async def get_target(target_id: str):
        try:
            return await service.get_target(target_id)
        except TargetNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e

    @app.post("/api/v1/targets/{target_id}/check")
    async def check_target(target_id: str):
        try:
            result = await service.check_now(target_id)
        except TargetNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        except CheckInProgressError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e
        except ConfigurationError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e
        return result.to_dict()

    @app.put("/api/v1/targets/{target_id}/config")
    async def update_config(target_id: str, body: PolicyUpdate):
        try:
            record = await service.update_policy(target_id, body)
        except TargetNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        return {
            "target_id": record.target_id,
            "monitoring_enabled": record.monitoring_enabled,
            "policy": record.policy.model_dump(mode="json"),
            "alert_channels": [c.model_dump(mode="json") for c in record.alert_channels],
        }

    @app.websocket("/ws/events")
    async def events(websocket: WebSocket):
        publisher = service.publisher
        if not isinstance(publisher, BroadcastPublisher):
            await websocket.close(code=1011)
            return

        await websocket.accept()
        queue = publisher.subscribe()
        try:
            while True:
                await websocket.send_json(await queue.get())
        except WebSocketDisconnect:
            pass
        finally:
            publisher.unsubscribe(queue)

    return app
