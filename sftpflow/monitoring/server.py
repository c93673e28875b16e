"""
Status API - read-only HTTP view of the task status store.

This API is STRICTLY READ-ONLY. No endpoint creates, modifies or
deletes a task record, and no endpoint starts a transfer.

By default the server binds to localhost (127.0.0.1) only. There is no
authentication; only expose it on trusted networks.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException

from ..jobs.errors import TaskNotFoundError, TaskParseError
from ..jobs.store import TaskStatusStore
from .models import HealthResponse, TaskListResponse

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9876


def create_status_app(store: Optional[TaskStatusStore] = None) -> FastAPI:
    """
    Create the read-only status API application.

    Args:
        store: Store to read from. Uses the default status directory if not provided.

    Returns:
        FastAPI application with read-only endpoints
    """
    store = store or TaskStatusStore()

    app = FastAPI(
        title="sftpflow status API",
        description="Read-only view of transfer task status records.",
        version="1.0.0",
    )
    app.state.task_store = store

    @app.get("/health", response_model=HealthResponse)
    async def health():
        """Health check endpoint."""
        return HealthResponse()

    @app.get("/status", response_model=TaskListResponse)
    async def list_status():
        """
        List every readable status record, newest first.

        Corrupt records are skipped.
        """
        tasks = store.list_tasks()
        return TaskListResponse(count=len(tasks), tasks=[t.to_dict() for t in tasks])

    @app.get("/status/{trace_id}")
    async def get_status(trace_id: str) -> Dict[str, Any]:
        """
        Retrieve the status record of one job.

        Raises:
            404: No record exists for the trace ID
            422: The record exists but cannot be parsed
        """
        try:
            return store.load(trace_id).to_dict()
        except TaskNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except TaskParseError as e:
            logger.warning(f"Status lookup for {trace_id} failed: {e}")
            raise HTTPException(status_code=422, detail=str(e))

    return app


def run_status_server(
    store: Optional[TaskStatusStore] = None,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> None:
    """Serve the status API with uvicorn until interrupted."""
    import uvicorn

    app = create_status_app(store=store)

    logger.info(f"Starting status API (read-only) on {host}:{port}")
    if host == "0.0.0.0":
        logger.warning("Status API is exposed on all interfaces without authentication")

    uvicorn.run(app, host=host, port=port, log_config=None)
