"""FastAPI application entry point for knowledge_bridge."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from server.core.AppServices import AppServices
from server.routers.DocumentRouter import router as document_router
from server.routers.QueryRouter import router as query_router
from server.routers.UploadRouter import router as upload_router
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


def create_app(services_factory: Callable[[HelperConfig], AppServices] = AppServices.from_config) -> FastAPI:
    """Build the API. ``services_factory`` decides which clients back the services."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # when the app starts
        app.state.logging = logging
        app.state.helper_config = HelperConfig(logger=logging)
        app.state.services = services_factory(app.state.helper_config)
        await app.state.services.boot()

        # while the app is running...
        yield

        # when the app shuts down
        logging.info("Shutting down — closing all clients...")
        await app.state.services.close()

    app = FastAPI(
        title="knowledge_bridge",
        description=(
            "Sales knowledge ingestion and retrieval. Uploaded documents and zip archives "
            "are de-duplicated, normalized, chunked and indexed per folder namespace. "
            "POST /query answers from the curated FAQ, then the documents, then the web."
        ),
        version=app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(upload_router)
    app.include_router(query_router)
    app.include_router(document_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting knowledge_bridge API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
