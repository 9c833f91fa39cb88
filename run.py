import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

import config
from utils.logging_config import setup_logging

# Initialize centralized logging configuration
setup_logging()

from db import create_db_and_tables
from processing.processing import processing_router
from services.background_tasks import BackgroundTaskService
from web.api_router import api_router

# Background tasks
order_timeout_task = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown."""
    global order_timeout_task

    # Startup
    await create_db_and_tables()
    logging.info(f"[Startup] Database ready ({config.RUNTIME_ENVIRONMENT.value})")

    order_timeout_task = asyncio.create_task(BackgroundTaskService.schedule_cleanup_tasks())
    logging.info("[Startup] Order timeout sweep started")

    yield

    # Shutdown
    logging.warning('Shutting down..')
    if order_timeout_task is not None:
        order_timeout_task.cancel()
        try:
            await order_timeout_task
        except asyncio.CancelledError:
            logging.info("[Shutdown] Order timeout sweep stopped")
    logging.warning('Bye!')


app = FastAPI(lifespan=lifespan)
app.include_router(processing_router)
app.include_router(api_router)


# Health check endpoint (for Docker container monitoring)
@app.get("/health")
async def health_check():
    return {"status": "healthy"}


def main() -> None:
    uvicorn.run(app, host=config.API_HOST, port=config.API_PORT)


if __name__ == '__main__':
    main()
