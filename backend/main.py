import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from matchengine.core.config import settings
from matchengine.core.logging_setup import setup_logging
from matchengine.api.routes import match

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    logger.info("Starting %s...", settings.PROJECT_NAME)
    yield
    # Shutdown
    logger.info("Shutdown complete.")


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Clinical trial matching with validated model output and deterministic eligibility guardrails",
    version="0.1.0",
    lifespan=lifespan
)

# Configure CORS
allowed_origins = [
    settings.FRONTEND_URL,
    "http://localhost:3000",
]
# Add any additional origins from ALLOWED_ORIGINS env var
if settings.ALLOWED_ORIGINS:
    allowed_origins.extend([o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()])

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(
    match.router,
    prefix=f"{settings.API_V1_STR}/match",
    tags=["Match"]
)


@app.get("/")
async def root():
    return {
        "name": settings.PROJECT_NAME,
        "version": "0.1.0",
        "status": "running",
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
