from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers import generate as r_generate
from .routers import health as r_health
from .routers import vector as r_vector


# Custom log filter to suppress health-check polling
class HealthPollFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return "/healthz" not in record.getMessage()


# Apply filter to uvicorn access logger
logging.getLogger("uvicorn.access").addFilter(HealthPollFilter())

load_dotenv()

app = FastAPI(title="Playwright Test Generator", version="0.1.0")

# CORS for a local UI; adjust via env ALLOW_ORIGINS if needed
allow_origins = os.getenv("ALLOW_ORIGINS", "http://localhost:5178").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in allow_origins if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(r_health.router)
app.include_router(r_vector.router)
app.include_router(r_generate.router)
