"""Application entry point for the FitCoach plan service.

Defines the FastAPI app, middleware, exception handlers and API routers.
The `lifespan` handler initializes the DB, builds the completion client,
generation pipelines and plan scheduler once, and shuts them down on exit.
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from api.cron import router as cron_router
from api.diet import router as diet_router
from api.workouts import router as workouts_router
from core import config
from core.error_handlers import register_exception_handlers
from core.exceptions import DatabaseError
from core.logger import get_logger
from database import WriteSessionLocal, init_db
from database.deps import get_db_read
from services.completion_client import CompletionClient
from services.diet_generation import DietGenerationService
from services.plan_scheduler import PlanScheduler
from services.workout_generation import WorkoutGenerationService

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Fastapi lifespan context: initialize resources before serving requests."""
    init_db()

    completion_client = CompletionClient(api_key=config.OPENROUTER_API_KEY)
    app.state.completion_client = completion_client
    app.state.diet_service = DietGenerationService(completion_client)
    app.state.workout_service = WorkoutGenerationService(completion_client)
    app.state.scheduler = PlanScheduler(WriteSessionLocal, app.state.diet_service, app.state.workout_service)

    if config.SCHEDULER_ENABLED:
        app.state.scheduler.start()
    else:
        logger.info("Scheduler disabled (SCHEDULER_ENABLED=false)")

    yield

    app.state.scheduler.stop()
    completion_client.close()


app = FastAPI(title="FitCoach Plan API", version="1.0.0", lifespan=lifespan)


app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in config.CORS_ORIGIN.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log incoming requests and their responses."""
    logger.info("%s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
        logger.info("%s %s -> %s", request.method, request.url.path, response.status_code)
        return response
    except Exception:
        logger.exception("Request error: %s %s", request.method, request.url.path)
        raise


@app.get("/health")
def health(db: Session = Depends(get_db_read)):
    """Return basic health status and database connectivity.

    Raises:
        DatabaseError: If database connection fails.
    """
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        logger.exception("Health check failed")
        raise DatabaseError(f"Database health check failed: {e}", operation="health_check")


app.include_router(diet_router)
app.include_router(workouts_router)
app.include_router(cron_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
