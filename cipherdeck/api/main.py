"""
CipherDeck API - service boundary over the record store.

Route handlers are plain (sync) functions, so FastAPI runs them in its
worker thread pool and store disk I/O never blocks the event loop.
"""

import time
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse

from .auth import verify_key
from .schemas import (
    UploadResponse,
    UpdateResponse,
    DeleteResponse,
    RecordListResponse,
    ReloadResponse,
    ReviewResponse,
    CertifyResponse,
    PingResponse,
    VaultStatusResponse,
    VaultSnapshotResponse,
    VaultUpdateResponse,
    ErrorResponse,
)
from ..core import config
from ..core.anchor import MemoryAnchor
from ..core.archive import ArchiveBuilder, ArchiveSelector
from ..core.errors import CipherDeckError, InvalidInput, PartialWriteError
from ..core.review import ScoringStrategy, certify, get_default_strategy, review
from ..core.schema import utc_now_iso
from ..core.store import RecordStore
from ..util.logging import logger


def create_app(store: Optional[RecordStore] = None, anchor: Optional[MemoryAnchor] = None,
               api_key: Optional[str] = None, scoring: Optional[ScoringStrategy] = None) -> FastAPI:
    """
    Build the application.

    A store passed in is owned by the caller and is not closed at shutdown.
    Without one, the store is built from configuration at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.store is None
        if owned:
            app.state.store = config.get_record_store()
        if not app.state.store.is_open:
            count = app.state.store.open()
            logger.info(f"Loaded {count} matrices into memory.")

        if app.state.anchor is None:
            app.state.anchor = config.get_memory_anchor()
            app.state.anchor.load()

        for issue in config.validate_config():
            logger.warning(f"Configuration issue: {issue}")

        yield

        if owned:
            app.state.store.close()

    app = FastAPI(
        title="CipherDeck API",
        version=config.VERSION,
        description="Matrix record service with directory-backed persistence",
        docs_url="/docs" if config.debug_enabled() else None,
        redoc_url="/redoc" if config.debug_enabled() else None,
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.anchor = anchor
    app.state.api_key = api_key if api_key is not None else config.get_api_key()
    app.state.scoring = scoring or get_default_strategy()
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(public_router)
    app.include_router(protected_router)
    _register_exception_handlers(app)
    return app


def _store(request: Request) -> RecordStore:
    return request.app.state.store


def _anchor(request: Request) -> MemoryAnchor:
    return request.app.state.anchor


public_router = APIRouter()
protected_router = APIRouter(dependencies=[Depends(verify_key)])


@public_router.get("/", response_class=PlainTextResponse)
def root():
    return "CipherDeck API - Phase One. Symbolic backend online."


@public_router.get("/api/ping", response_model=PingResponse)
def ping(request: Request):
    """Liveness probe. Never raises; degrades to a fallback body instead."""
    try:
        anchor = _anchor(request)
        return PingResponse(
            status="CipherDeck backend live.",
            phase=config.PHASE,
            uptime=time.monotonic() - request.app.state.started_at,
            loaded_count=_store(request).count(),
            vault_loaded=bool(anchor is not None and anchor.loaded),
        )
    except Exception as e:
        logger.error(f"Ping fallback mode: {e}")
        try:
            uptime = time.monotonic() - request.app.state.started_at
        except Exception:
            uptime = 0.0
        return PingResponse(
            status="CipherDeck backend fallback live.",
            phase=config.PHASE,
            uptime=uptime,
            loaded_count=0,
            vault_loaded=False,
        )


@public_router.get("/api/vault/status", response_model=VaultStatusResponse)
def vault_status(request: Request):
    store = _store(request)
    return VaultStatusResponse(record_count=store.count(), launch_ready=store.is_open)


# Define fixed /api/matrix/* paths BEFORE /api/matrix/{record_id} to avoid path parameter conflict
@protected_router.post("/api/matrix/upload", response_model=UploadResponse)
def upload_matrix(request: Request, payload: Any = Body(None)):
    record = _store(request).create(payload)
    return UploadResponse(message="Matrix uploaded and stored successfully.", id=record.id)


@protected_router.get("/api/matrix/list", response_model=RecordListResponse)
def list_matrices(request: Request, expand: bool = Query(False, description="Return full records instead of ids")):
    store = _store(request)
    if expand:
        return RecordListResponse(records=[r.to_dict() for r in store.list_records()])
    return RecordListResponse(records=store.list_ids())


@protected_router.post("/api/matrix/reload", response_model=ReloadResponse)
def reload_matrices(request: Request):
    store = _store(request)
    count = store.reload()
    return ReloadResponse(message="Matrix store reloaded.", count=count, skipped=len(store.skipped))


@protected_router.post("/api/matrix/certify", response_model=CertifyResponse)
def certify_matrix(body: Any = Body(None)):
    return CertifyResponse(certification=certify(body))


@protected_router.get("/api/matrix/{record_id}")
def get_matrix(record_id: str, request: Request):
    return _store(request).get(record_id).to_dict()


@protected_router.patch("/api/matrix/{record_id}", response_model=UpdateResponse)
def update_matrix(record_id: str, request: Request, partial: Any = Body(None)):
    record = _store(request).update(record_id, partial)
    return UpdateResponse(message="Matrix updated successfully.", id=record.id)


@protected_router.delete("/api/matrix/{record_id}", response_model=DeleteResponse)
def delete_matrix(record_id: str, request: Request):
    _store(request).delete(record_id)
    return DeleteResponse(message=f"Matrix {record_id} deleted.")


@protected_router.post("/api/lens/review", response_model=ReviewResponse)
def review_matrix(request: Request, body: Any = Body(None)):
    """
    Review a matrix.

    Body: {"record": {...}, "id": optional}. The legacy
    {"matrixId": ..., "matrixData": {...}} shape is also accepted.
    """
    if not isinstance(body, dict):
        raise InvalidInput("Review request must be a JSON object.")
    record = body.get("record", body.get("matrixData"))
    record_id = body.get("id") or body.get("matrixId")
    result = review(record, record_id=record_id, strategy=request.app.state.scoring)
    return ReviewResponse(review=result)


@protected_router.get("/api/download/core-pack")
def download_core_pack(request: Request, limit: Optional[int] = Query(None, description="Export only the first N matrices")):
    selector = ArchiveSelector.all() if limit is None else ArchiveSelector.first(limit)
    store = _store(request)
    builder = ArchiveBuilder(store, audit=store.audit, compression_level=config.get_archive_compression_level())
    stream = builder.build(selector)
    return StreamingResponse(
        stream,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{config.ARCHIVE_FILENAME}"'},
    )


@protected_router.get("/api/vault/snapshot", response_model=VaultSnapshotResponse)
def vault_snapshot(request: Request):
    return VaultSnapshotResponse(snapshot=_anchor(request).snapshot(), timestamp=utc_now_iso())


@protected_router.post("/api/vault/update", response_model=VaultUpdateResponse)
def vault_update(request: Request, updates: Any = Body(None)):
    snapshot = _anchor(request).update(updates)
    return VaultUpdateResponse(message="Vault memory updated in memory only.", snapshot=snapshot)


def _register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(CipherDeckError)
    async def cipherdeck_error_handler(request, exc: CipherDeckError):
        body = ErrorResponse(error=exc.message)
        if isinstance(exc, PartialWriteError):
            body.id = exc.record_id
        if exc.status_code >= 500:
            logger.error(f"{request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request, exc: RequestValidationError):
        message = "Invalid request"
        errors = exc.errors()
        if errors:
            location = ".".join(str(part) for part in errors[0].get("loc", ()))
            message = f"Invalid request: {location}: {errors[0].get('msg', 'invalid value')}"
        logger.log_operation("request.validate", "rejected", {"path": request.url.path})
        return JSONResponse(status_code=400, content=ErrorResponse(error=message).model_dump(exclude_none=True))

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """Handle all unhandled exceptions."""
        logger.error(f"Unhandled exception: {exc}")
        body = ErrorResponse(error="Internal server error")
        if config.debug_enabled():
            body.debug = str(exc)
        return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))


app = create_app()
