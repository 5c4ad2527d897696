import logging

from fastapi import FastAPI

from .core.config import get_settings
from .routers import access, admin, auth, clubs

logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(
    title="Volleyball Club Platform",
    version="0.1.0",
)

app.include_router(auth.router)
app.include_router(access.router)
app.include_router(admin.router)
app.include_router(clubs.router)


@app.get("/health", tags=["health"])
def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
