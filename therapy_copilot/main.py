import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from therapy_copilot.config import get_settings
from therapy_copilot.database import init_db
from therapy_copilot.errors import WorkflowError
from therapy_copilot.api.router import api_router
from therapy_copilot.api.health import router as health_router
from therapy_copilot.llm.openrouter import OpenRouterClient

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting application...")
    await init_db()
    app.state.llm = OpenRouterClient(settings)

    yield
    # Shutdown
    logger.info("Shutting down application...")
    await app.state.llm.aclose()  # Clean up HTTP connection pool


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="Therapist-in-the-loop session documentation: AI analysis, risk screening and treatment plans",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Include routers
app.include_router(health_router)
app.include_router(api_router)


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "docs": "/docs",
    }
