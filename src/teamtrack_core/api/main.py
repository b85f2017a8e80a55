"""TeamTrack Core FastAPI application."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..config import get_settings
from ..exceptions import InternalError, TeamtrackError, ValidationError
from .routers import assignments, issues, statuses

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("teamtrack-core")

logger.info("Starting TeamTrack Core API")

# Create FastAPI app
app = FastAPI(
    title="TeamTrack Core API",
    description="Issue lifecycle, permissions, assignments and audit trail",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TeamtrackError)
async def handle_domain_error(request: Request, exc: TeamtrackError):
    """Translate domain errors into JSON responses."""
    if isinstance(exc, InternalError):
        # Persistence details were logged where they happened
        return JSONResponse(status_code=exc.status_code, content={"detail": "Internal server error"})

    content = {"detail": str(exc)}
    if isinstance(exc, ValidationError) and exc.details:
        content["errors"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


# Include all business logic routers with /api/v1 prefix
app.include_router(issues.router, prefix="/api/v1/issues")
app.include_router(assignments.router, prefix="/api/v1/assignments")
app.include_router(statuses.router, prefix="/api/v1/statuses")


@app.get("/")
def root():
    """Root endpoint with server info."""
    return {
        "name": "TeamTrack Core API",
        "version": "1.0.0",
        "docs": "/docs",
        "description": "Issue lifecycle, permissions, assignments and audit trail",
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
