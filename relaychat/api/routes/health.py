from __future__ import annotations

import os

from fastapi import APIRouter

from relaychat.api.schemas import HealthResponse
from relaychat.config import settings
from relaychat.streams.context import get_stream_context

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health():
    """Liveness plus configuration and resumability status."""
    config_valid, config_errors = settings.validation_status()
    return HealthResponse(
        status="ok",
        pid=os.getpid(),
        resumable_streams=get_stream_context() is not None,
        config_valid=config_valid,
        config_errors=config_errors or None,
    )
