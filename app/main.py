import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.config.database import close_database
from app.config.settings import get_settings
from app.errors import register_exception_handlers
from app.routes import auth, hazard_reports

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Hazard Reports API",
        description="API for submitting and managing hazard reports tied to users, with image uploads.",
        version="1.0.0",
    )

    # Request timing
    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        logger.debug("%s %s took %.3fs", request.method, request.url.path, process_time)
        response.headers["X-Process-Time"] = str(process_time)
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.on_event("shutdown")
    async def shutdown_event():
        close_database()

    app.include_router(auth.router, prefix=f"{settings.api_prefix}/auth", tags=["Auth"])
    app.include_router(hazard_reports.router, prefix=settings.api_prefix, tags=["Hazard Reports"])
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    port = get_settings().port or 8000
    uvicorn.run("app.main:app", host="0.0.0.0", port=port)
