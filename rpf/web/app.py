"""HTTP surface: health probes, sync metrics and cache-only parse lookups."""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI, HTTPException, Query, Response
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from rpf.config import settings
from rpf.database import SessionLocal, engine, init_db
from rpf.fflogs.mapping import get_fflogs_encounter, is_fflogs_supported
from rpf.services.lookup import ParseLookup
from rpf.services.sync import ParseSyncService

log = logging.getLogger(__name__)


def create_app(sync: ParseSyncService = None, lookup: ParseLookup = None,
               session_factory=SessionLocal, db_engine=engine, start_sync: bool = True) -> FastAPI:
    """
    Build the FastAPI app.

    The sync service is started in the lifespan; without FFLogs credentials it
    stays disabled and lookups keep answering from the cache.
    """
    sync = sync or ParseSyncService.from_settings(settings)
    lookup = lookup or ParseLookup(sync.store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(bind=db_engine)
        if start_sync:
            sync.start()
        try:
            yield
        finally:
            await sync.stop()

    app = FastAPI(title="rpf parse service", lifespan=lifespan)
    app.state.sync = sync
    app.state.lookup = lookup
    app.state.start_time = time.time()

    @app.get("/health")
    async def health_check() -> JSONResponse:
        """Basic health check endpoint."""
        uptime = int(time.time() - app.state.start_time)
        return JSONResponse({
            "status": "healthy",
            "uptime_seconds": uptime,
            "service": "rpf",
            "fflogs_sync": "running" if sync.running else ("idle" if sync.enabled else "disabled"),
        })

    @app.get("/readiness")
    def readiness_check() -> Response:
        """
        Kubernetes-style readiness probe.

        Returns:
            200 if the database answers, 503 otherwise
        """
        try:
            with session_factory() as session:
                session.execute(text("SELECT 1"))
            return Response(status_code=200, content="Ready")
        except SQLAlchemyError as e:
            log.error(f"Readiness check failed: {e}")
            return Response(status_code=503, content="Not ready: database unavailable")

    @app.get("/liveness")
    async def liveness_check() -> Response:
        return Response(status_code=200, content="Alive")

    @app.get("/metrics")
    async def metrics() -> Dict[str, Any]:
        """Uptime and the report of the last sync cycle."""
        report = sync.last_report
        return {
            "uptime_seconds": int(time.time() - app.state.start_time),
            "start_time": app.state.start_time,
            "fflogs_enabled": sync.enabled,
            "token_refreshes": sync.client.tokens.refresh_count if sync.client else 0,
            "last_sync": report.to_dict() if report else None,
        }

    @app.get("/parses/{duty_id}")
    def parses(duty_id: int, ids: str = Query("", description="content ids, comma separated")) -> Dict[str, Any]:
        """Cached parses of the given players for a duty (never calls FFLogs)."""
        if not is_fflogs_supported(duty_id):
            raise HTTPException(status_code=404, detail=f"duty {duty_id} is not ranked on FFLogs")
        try:
            player_ids = [int(x) for x in ids.split(",") if x.strip()]
        except ValueError:
            raise HTTPException(status_code=422, detail="ids must be integers")

        encounter = get_fflogs_encounter(duty_id)
        results = lookup.lookup_duty(duty_id, player_ids)
        return {
            "duty_id": duty_id,
            "zone_id": encounter.zone_id,
            "encounter_id": encounter.encounter_id,
            "secondary_encounter_id": encounter.secondary_encounter_id,
            "players": {str(cid): mp.to_dict() for cid, mp in results.items()},
        }

    return app
