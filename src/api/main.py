"""Leave approval API.

Run locally:
    uvicorn src.api.main:app --reload
"""

from __future__ import annotations

from fastapi import FastAPI

from src.common.env import load_env

load_env()

from src.api.leave import router as leave_router  # noqa: E402
from src.api.settings import get_settings  # noqa: E402
from src.api.leave.models import HealthResponse  # noqa: E402
from src.common.config import ConfigError  # noqa: E402
from src.common.logging import get_logger, log_error  # noqa: E402

VERSION = "1.0.0"

app = FastAPI(
    title="Leave Approval API",
    description="Leave requests with an email approval gate resumed by single-use callback links.",
    version=VERSION,
)
logger = get_logger(__name__)

app.include_router(leave_router)


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    try:
        settings = get_settings()
    except ConfigError as exc:
        log_error(logger, "Health check found invalid configuration", error=exc)
        return HealthResponse(status="degraded", version=VERSION)

    return HealthResponse(status="ok", version=VERSION, storageBackend=settings.storage_backend)


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(
        "src.api.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
