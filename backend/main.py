"""
Main FastAPI application entry point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from testpilot import __version__
from testpilot.api.routes import guard, health, routing
from testpilot.core.config import get_settings
from testpilot.core.environments import get_current_environment
from testpilot.core.exceptions import ConfigurationError, PolicyViolation
from testpilot.core.logging_config import LoggingConfig
from testpilot.core.middleware import LoggingContextMiddleware

# Configure logging first
LoggingConfig.configure()

logger = LoggingConfig.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for FastAPI app"""
    settings = get_settings()
    environment = get_current_environment()
    logger.info(f"Starting {settings.app_name} against {environment.value}...")

    yield

    logger.info(f"Shutting down {settings.app_name}...")


_settings = get_settings()
app = FastAPI(
    title=_settings.app_name,
    description="Environment policy guard and live-check routing for subscription test tooling",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(LoggingContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PolicyViolation)
async def policy_violation_handler(request: Request, exc: PolicyViolation):
    """Blocked actions are a 403, never a warning"""
    return JSONResponse(status_code=403, content=exc.to_dict())


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.critical(f"Configuration error: {exc}", extra={"path": request.url.path})
    return JSONResponse(status_code=500, content=exc.to_dict())


app.include_router(health.router)
app.include_router(guard.router)
app.include_router(routing.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)
