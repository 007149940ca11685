import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from .error import ClientError, ServerError

logger = logging.getLogger(__name__)

WORKER_SHUTDOWN_TIMEOUT_SECONDS = 30


async def handle_client_error(request: Request, exc: ClientError):
    error_dict = {"code": exc.base_error.code, "message": exc.base_error.message}
    if exc.base_error.reason:
        error_dict["reason"] = exc.base_error.reason
    if exc.base_error.details:
        error_dict["details"] = exc.base_error.details
    logger.warning(f"Client error: {error_dict}")
    return JSONResponse(status_code=exc.status_code, content={"error": error_dict})


async def handle_server_error(request: Request, exc: ServerError):
    error_dict = {"code": exc.base_error.code, "message": "Internal server error"}
    logger.error(f"Server error: {exc.base_error.code} - {exc.base_error.message}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": error_dict}
    )


def build_lifespan(ApplicationConfig):
    """Runs the export and cleanup workers inside the API process in in_process mode"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if ApplicationConfig.EXPORT_WORKER_MODE != "in_process":
            yield
            return

        from src import depends
        from src.worker import CleanupWorker, ExportWorker

        try:
            requeued = await depends.requeue_pending_exports()
            if requeued:
                logger.info(f"[APP] Re-queued {requeued} pending export(s)")
        except Exception as e:
            logger.error(f"[APP] Could not re-queue pending exports: {e}")

        export_worker = ExportWorker(
            depends.get_job_source(),
            depends.new_process_export_use_case,
            max_concurrent_jobs=ApplicationConfig.EXPORT_MAX_CONCURRENT_JOBS,
            # The in-process queue blocks while empty, no extra sleep needed
            poll_interval=0,
        )
        cleanup_worker = CleanupWorker(
            depends.new_sweep_expired_use_case,
            depends.new_sweep_failed_use_case if ApplicationConfig.EXPORT_FAILED_RETENTION_DAYS else None,
            interval=ApplicationConfig.EXPORT_CLEANUP_INTERVAL_SECONDS,
        )
        tasks = [
            asyncio.ensure_future(export_worker.start()),
            asyncio.ensure_future(cleanup_worker.start()),
        ]
        app.state.export_worker = export_worker
        try:
            yield
        finally:
            await cleanup_worker.stop()
            await export_worker.stop(timeout=WORKER_SHUTDOWN_TIMEOUT_SECONDS)
            await asyncio.gather(*tasks, return_exceptions=True)

    return lifespan


def create_app(ApplicationConfig) -> FastAPI:
    app = FastAPI(
        title="Album Export API",
        version="0.1.0",
        lifespan=build_lifespan(ApplicationConfig),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ApplicationConfig.CORS_ORIGINS,
        allow_credentials=ApplicationConfig.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from src.api.routes import health_check, exports

    app.include_router(health_check.router, tags=["Health"])
    app.include_router(exports.router, prefix=ApplicationConfig.API_PREFIX, tags=["Exports"])

    app.add_exception_handler(ClientError, handle_client_error)
    app.add_exception_handler(ServerError, handle_server_error)

    return app
