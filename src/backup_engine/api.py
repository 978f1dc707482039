"""HTTP surface for restore and export.

Routes (all require an admin bearer token):

- ``POST /restore`` with ``{"file_path": "..."}``: restore a capture
- ``POST /restore/upload`` with a raw zip body: restore an uploaded bundle
- ``POST /export`` with ``{"file_path": "..."}``: download a capture as zip

Successful restores return the ``RestoreResult`` JSON.  Run-level failures
return ``{"success": false, "error": "..."}`` with a non-2xx status.

Usage:
    from backup_engine.api import create_app
    from backup_engine.factory import create_context

    app = create_app(create_context("production"))

    # or with an ASGI server that supports factories:
    #   uvicorn backup_engine.api:app_from_env --factory
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ValidationError

from backup_engine.backup.backup_restore import (
    export_bundle,
    restore_from_bundle,
    restore_from_reference,
)
from backup_engine.errors import (
    ArchiveError,
    AuthenticationError,
    AuthorizationError,
    BackupEngineError,
    RequestError,
    RestoreInProgressError,
)
from backup_engine.factory import EngineContext, create_context
from backup_engine.guard import bearer_token

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[BackupEngineError], int] = {
    RequestError: 400,
    AuthenticationError: 401,
    AuthorizationError: 403,
    RestoreInProgressError: 409,
    ArchiveError: 500,
}


class FilePathRequest(BaseModel):
    """Body of reference-mode restore and export requests."""

    file_path: str = ""


def error_status(exc: BackupEngineError) -> int:
    """HTTP status for a run-level engine error."""
    for exc_type, status in ERROR_STATUS.items():
        if isinstance(exc, exc_type):
            return status
    return 500


async def _engine_error_handler(request: Request, exc: BackupEngineError) -> JSONResponse:
    status = error_status(exc)
    if status >= 500:
        logger.error(f"{request.url.path} failed: {exc}")
    else:
        logger.warning(f"{request.url.path} rejected ({status}): {exc}")
    return JSONResponse({"success": False, "error": str(exc)}, status_code=status)


async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # Client or driver failures outside the engine's error tree.
    logger.error(f"{request.url.path} failed: {exc}", exc_info=exc)
    return JSONResponse({"success": False, "error": str(exc)}, status_code=500)


def _context(request: Request) -> EngineContext:
    return request.app.state.engine


async def require_admin(
    request: Request,
    authorization: str | None = Header(default=None),
) -> str:
    """Dependency: caller must present an admin bearer token."""
    return await _context(request).guard.require_admin(bearer_token(authorization))


async def _file_path(request: Request) -> str:
    try:
        payload = await request.json()
        body = FilePathRequest.model_validate(payload)
    except (ValueError, ValidationError) as e:
        raise RequestError("Request body must be JSON with a file_path") from e
    if not body.file_path:
        raise RequestError("file_path required")
    return body.file_path


def create_app(context: EngineContext, lock: asyncio.Lock | None = None) -> FastAPI:
    """Build the FastAPI app around an ``EngineContext``.

    Args:
        context: Clients and restore plan used by every request.
        lock: Run lock override (defaults to the process-wide lock).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await context.close()

    app = FastAPI(title="backup-engine", lifespan=lifespan)
    app.state.engine = context
    app.add_exception_handler(BackupEngineError, _engine_error_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)

    @app.post("/restore")
    async def restore(request: Request, user_id: str = Depends(require_admin)) -> dict:
        file_path = await _file_path(request)
        logger.info(f"Restore requested by {user_id} from {file_path}")
        ctx = _context(request)
        result = await restore_from_reference(
            ctx.adapter, ctx.storage, file_path, plan=ctx.plan, lock=lock
        )
        return result.model_dump()

    @app.post("/restore/upload")
    async def restore_upload(request: Request, user_id: str = Depends(require_admin)) -> dict:
        data = await request.body()
        logger.info(f"Bundle restore requested by {user_id}, size: {len(data)} bytes")
        ctx = _context(request)
        result = await restore_from_bundle(
            ctx.adapter, ctx.storage, data, plan=ctx.plan, lock=lock
        )
        return result.model_dump()

    @app.post("/export")
    async def export(request: Request, user_id: str = Depends(require_admin)) -> Response:
        file_path = await _file_path(request)
        logger.info(f"Bundle download requested by {user_id} for {file_path}")
        ctx = _context(request)
        bundle = await export_bundle(ctx.storage, file_path, plan=ctx.plan)
        return Response(
            content=bundle.content,
            media_type="application/zip",
            headers={"Content-Disposition": f'attachment; filename="{bundle.filename}"'},
        )

    return app


def app_from_env() -> FastAPI:
    """App factory using the active profile (``BACKUP_PROFILE`` / lock file)."""
    return create_app(create_context())
