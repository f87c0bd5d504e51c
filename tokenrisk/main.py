"""
Token Risk API
==============
Main application entry point. Wires the gateway, store, orchestrator,
dispatcher and monitoring scheduler, mounts the routers and runs the
scheduler in the background.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
import logging
import uvicorn

from tokenrisk import __version__
from tokenrisk.api.deps import Services, failure
from tokenrisk.api.routers import monitor, tokens
from tokenrisk.core.config import MONITOR_ENABLED, PORT
from tokenrisk.core.db import init_db, close_db
from tokenrisk.core.logger import configure_logging
from tokenrisk.engines.pipeline import AnalysisOrchestrator
from tokenrisk.gateway.gateway import DataGateway
from tokenrisk.storage.tokens import TokenStore
from tokenrisk.workers.dispatcher import AlertDispatcher
from tokenrisk.workers.monitor import MonitoringScheduler

logger = logging.getLogger("tokenrisk.main")


def build_services() -> Services:
    gateway = DataGateway()
    store = TokenStore()
    orchestrator = AnalysisOrchestrator(gateway, store)
    dispatcher = AlertDispatcher()
    scheduler = MonitoringScheduler(gateway, store, orchestrator=orchestrator, dispatcher=dispatcher)
    return Services(
        gateway=gateway,
        store=store,
        orchestrator=orchestrator,
        dispatcher=dispatcher,
        monitor=scheduler,
    )


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    With `services` given the app only serves requests (no DB pool, no
    background scheduler); otherwise the lifespan builds and runs everything.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if services is not None:
            yield
            return

        await init_db()
        app.state.services = build_services()
        task = None
        if MONITOR_ENABLED:
            task = asyncio.create_task(app.state.services.monitor.run_forever())
        logger.info("Application startup complete.")
        try:
            yield
        finally:
            app.state.services.monitor.stop()
            if task is not None:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
            await app.state.services.gateway.close()
            await close_db()
            logger.info("Application shutdown complete.")

    app = FastAPI(title="Token Risk API", version=__version__, lifespan=lifespan)
    if services is not None:
        app.state.services = services

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return failure(400, "Invalid request")

    app.include_router(monitor.router)
    app.include_router(tokens.router)
    return app


def main():
    configure_logging()
    uvicorn.run(create_app(), host="0.0.0.0", port=PORT)


if __name__ == "__main__":
    main()
