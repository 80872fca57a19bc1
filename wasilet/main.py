#!/usr/bin/env python3
"""
Wasilet - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration
2. Builds the WASI provider and starts static pods
3. Serves the kubelet API

All business logic is in the modules, following black box principles.
"""

import asyncio
import logging
import logging.config as log_config
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from wasilet import __version__
from wasilet.exceptions import WasiletError
from wasilet.logging_config import get_logging_config
from wasilet.modules.api import create_kubelet_router
from wasilet.modules.config import ConfigModule, get_config
from wasilet.modules.provider import WasiProvider, load_static_pods

logger = logging.getLogger("wasilet.main")


def create_provider(config: ConfigModule) -> WasiProvider:
    """Build the WASI provider from configuration."""
    return WasiProvider(
        log_dir=config.get("log_dir"),
        status_queue_size=config.get("status_queue_size"),
        status_send_timeout=config.get("status_send_timeout"),
    )


async def start_static_pods(provider: WasiProvider, directory: str) -> int:
    """
    Start every container described in a static pod directory.

    Returns:
        Number of containers started
    """
    started = 0
    for item in await asyncio.to_thread(load_static_pods, directory):
        try:
            await provider.start_workload(item.namespace, item.pod, item.container, item.config)
        except (WasiletError, ValueError, OSError) as e:
            logger.error(
                "Failed to start container %s of pod %s/%s: %s",
                item.container, item.namespace, item.pod, e,
            )
            continue
        started += 1
    return started


def create_app(
    config: Optional[ConfigModule] = None, provider: Optional[WasiProvider] = None
) -> FastAPI:
    """
    Create the Wasilet application.

    Args:
        config: Configuration, the process-wide singleton by default
        provider: Workload provider, built from config by default

    Returns:
        FastAPI application serving the kubelet API
    """
    config = config or get_config()
    provider = provider or create_provider(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Manage application lifecycle - start static pods and stop every workload.
        """
        logger.info("Starting Wasilet node agent...")
        static_pod_dir = config.get("static_pod_dir")
        if static_pod_dir:
            started = await start_static_pods(provider, static_pod_dir)
            logger.info("Started %d static pod container(s) from %s", started, static_pod_dir)

        yield

        logger.info("Shutting down Wasilet node agent...")
        await provider.shutdown()
        logger.info("Wasilet shutdown complete")

    app = FastAPI(
        title="Wasilet",
        description="Wasilet - WebAssembly workloads on a Kubernetes node",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.provider = provider
    app.include_router(create_kubelet_router(provider))

    @app.exception_handler(ValueError)
    async def validation_error_handler(request, exc):
        """Handle validation errors."""
        logger.error(f"Validation error: {exc}")
        return JSONResponse(status_code=400, content={"error": str(exc)})

    return app


# Get configuration
config = get_config()

# Configure logging with health check suppression
log_config.dictConfig(
    get_logging_config(config.get("log_level"), config.get("runtime_log_level"))
)

app = create_app(config)
