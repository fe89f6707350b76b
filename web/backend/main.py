from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from music_library.core.config import Config, get_database_path, load_config
from music_library.core.database import init_database
from music_library.core.errors import ErrorKind, LibraryError, RangeNotSatisfiableError
from music_library.domain.playlists import PlaylistStore
from music_library.domain.tracks import TrackStore
from music_library.streaming import TrackStreamer, create_blob_store, unsatisfied_content_range

ERROR_STATUS: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.RANGE_NOT_SATISFIABLE: 416,
    ErrorKind.IO: 500,
}


async def library_error_handler(request: Request, exc: LibraryError) -> JSONResponse:
    status_code = ERROR_STATUS[exc.kind]
    headers = {}
    if isinstance(exc, RangeNotSatisfiableError) and exc.total_size is not None:
        headers["Content-Range"] = unsatisfied_content_range(exc.total_size)

    if status_code >= 500:
        logger.opt(exception=exc).error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {status_code}: {exc.message}")

    return JSONResponse({"error": exc.message}, status_code=status_code, headers=headers)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        {"error": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse({"error": "invalid request", "details": exc.errors()}, status_code=422)


def create_app(config: Optional[Config] = None) -> FastAPI:
    """Build the API with its stores wired in once.

    Run with: uvicorn web.backend.main:create_app --factory
    """
    config = config or load_config()

    db_path = get_database_path(config)
    init_database(db_path)

    track_store = TrackStore(db_path)
    blob_store = create_blob_store(
        config.storage.blob_backend,
        db_path,
        library_root=Path(config.storage.library_root) if config.storage.library_root else None,
        chunk_size=config.storage.blob_chunk_size,
    )

    app = FastAPI(title="Music Library API", version="1.0.0")
    app.state.config = config
    app.state.track_store = track_store
    app.state.playlist_store = PlaylistStore(db_path)
    app.state.blob_store = blob_store
    app.state.streamer = TrackStreamer(
        track_store,
        blob_store,
        chunk_size=config.streaming.chunk_size,
        always_partial=config.streaming.always_partial,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        # Browser players need these to seek
        expose_headers=["Content-Range", "Content-Length", "Accept-Ranges"],
    )

    app.add_exception_handler(LibraryError, library_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Include routers
    from web.backend.routers import playlists, tracks

    app.include_router(tracks.router, prefix=config.server.api_prefix, tags=["tracks"])
    app.include_router(playlists.router, prefix=config.server.api_prefix, tags=["playlists"])

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    logger.info(
        f"API ready: db={db_path}, blobs={config.storage.blob_backend}, "
        f"prefix={config.server.api_prefix or '/'}"
    )
    return app
