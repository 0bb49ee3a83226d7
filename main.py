from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from tasktrack.config import settings
from tasktrack.database import init_db
from tasktrack.errors import AuthenticationError, TaskTrackError
from tasktrack.routers import auth, profiles, tasks

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("tasktrack")

app = FastAPI(title="Team Task Tracker API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TaskTrackError)
async def task_track_error_handler(request: Request, exc: TaskTrackError):
    """Translate lifecycle errors into HTTP responses"""
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    if exc.retryable:
        headers = {"Retry-After": "1"}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


# Route registration
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(profiles.router, prefix="/profiles", tags=["Profiles"])
app.include_router(tasks.router)


@app.on_event("startup")
async def startup_event():
    logger.info("Starting Task Tracker API...")
    if settings.uses_default_secret():
        logger.warning("SECRET_KEY is not set; using the development secret")
    init_db()


# Root route
@app.get("/")
def read_root():
    return {"message": "Task Tracker API"}


@app.get("/health")
def health():
    return {"status": "ok"}
