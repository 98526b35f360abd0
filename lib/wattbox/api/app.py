"""FastAPI application setup."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lib.wattbox.api.routes import devices, health
from lib.wattbox.config import WattBoxConfig, load_config
from lib.wattbox.logging import setup_logging
from lib.wattbox.service import WattBoxService


def create_app(config: WattBoxConfig | None = None) -> FastAPI:
    """Create FastAPI application.

    Parameters
    ----------
    config : WattBoxConfig | None, optional
        Service configuration, by default None (loads from config)

    Returns
    -------
    FastAPI
        Configured FastAPI app
    """
    config = config or load_config()
    setup_logging(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        json_output=config.log_json,
        log_file=config.log_file,
    )

    app = FastAPI(
        title="WattBox Management API",
        description="REST API for monitoring and controlling WattBox power devices",
        version="0.1.0",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(devices.router)
    app.include_router(health.router)

    # Create and set service instance
    service = WattBoxService(config=config)
    devices.set_service(service)
    health.set_service(service)
    app.state.service = service

    @app.on_event("startup")
    async def startup() -> None:
        """Startup event handler."""
        await service.start()

    @app.on_event("shutdown")
    async def shutdown() -> None:
        """Shutdown event handler."""
        await service.stop()

    return app


def main() -> None:
    """Main entry point for running the API server."""
    import uvicorn

    config = load_config()
    app = create_app(config)
    uvicorn.run(app, host=config.service.api_host, port=config.service.api_port)


if __name__ == "__main__":
    main()
