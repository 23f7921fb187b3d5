from __future__ import annotations

import os
from fastapi import APIRouter

from ...core.config import ENVIRONMENTS


router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthcheck():
    return {
        "status": "ok",
        "service": "pwtgen",
        "version": os.getenv("APP_VERSION", "dev"),
        "environments": list(ENVIRONMENTS),
    }
