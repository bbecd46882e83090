"""
FastAPI development receiver for chunkpipe.

Serves the chunk upload contract locally so the client, CLI and examples can
be exercised without the remote processing service.
"""


import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from .routes import ChunkLedger, router


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="chunkpipe Development Receiver",
        description="""
        Local stand-in for the media processing service.

        - Ordered chunk uploads (`/api/frontend/upload-chunk`)
        - Independent chunk uploads (`/api/process-chunk`)
        - Whole-file submissions (`/api/frontend/process-project`)
        - Health and status endpoints

        Chunks are acknowledged and counted per project; payloads are discarded.
        """,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        license_info={
            "name": "MIT",
            "url": "https://opensource.org/licenses/MIT",
        },
        servers=[
            {"url": "http://localhost:5000", "description": "Development server"},
        ],
    )

    app.state.ledger = ChunkLedger()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "chunkpipe Development Receiver",
            "version": __version__,
            "docs": "/docs",
            "health": "/api/health",
            "openapi": "/openapi.json",
        }

    return app


def main() -> None:
    """Main entry point for the server."""
    import argparse

    parser = argparse.ArgumentParser(description="chunkpipe development receiver")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    parser.add_argument("--port", type=int, default=5000, help="Port to bind to")
    parser.add_argument("--log-level", default="info", help="Uvicorn log level")

    args = parser.parse_args()

    app = create_app()

    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level)


if __name__ == "__main__":
    main()
