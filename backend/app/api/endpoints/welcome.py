from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from app.services.store.base import utcnow

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/welcome")
async def welcome(request: Request) -> dict:
    logger.info("welcome.request method=%s path=%s", request.method, request.url.path)
    return {
        "message": "Welcome to the API!",
        "metadata": {
            "method": request.method,
            "path": str(request.url),
            "timestamp": utcnow().isoformat(),
        },
    }
