import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.engine import router as engine_api_router
from src.api.errors import register_exception_handlers
from src.api.rules import router as rules_api_router
from src.core.config import config
from src.core.errors import RulesFileNotFoundError
from src.core.utils.logging import configure_logging
from src.rules.loaders.yaml_loader import YamlRuleLoader
from src.rules.store import rule_store
from src.tasks.scheduler.evaluation_scheduler import get_evaluation_scheduler
from src.tasks.task_queue import task_queue

# --- Application Setup ---

configure_logging(config.logging)
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Hermes Triggers",
    description="Condition-based trigger rules for HERMES governance.",
    version="0.1.0",
)

# --- CORS Configuration ---

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors.origins,
    allow_credentials=config.cors.allow_credentials,
    allow_methods=["*"],
    allow_headers=config.cors.headers,
)

# --- Include Routers ---

app.include_router(rules_api_router, prefix="/api/v1", tags=["Rules API"])
app.include_router(engine_api_router, prefix="/api/v1/engine", tags=["Engine API"])
register_exception_handlers(app)

# --- Root Endpoint ---


@app.get("/", tags=["Health Check"])
async def read_root():
    """A simple health check endpoint to confirm the service is running."""
    return {"status": "ok", "message": "Hermes trigger engine is running."}


# --- Application Lifecycle ---


async def load_seed_rules() -> int:
    """Replace the store's rules with the configured rule file, if present."""
    try:
        rules = YamlRuleLoader(config.rules.rules_file_path).load()
    except RulesFileNotFoundError:
        logger.info("No rules file; starting with an empty rule set", path=config.rules.rules_file_path)
        return 0
    await rule_store.replace_all(rules)
    return len(rules)


@app.on_event("startup")
async def startup_event():
    """Application startup logic."""
    config.validate()
    logger.info("Hermes trigger engine starting up", environment=config.environment)

    if config.rules.load_on_startup:
        await load_seed_rules()

    await task_queue.start_workers(num_workers=config.engine.num_workers)

    if config.engine.scheduler_enabled:
        await get_evaluation_scheduler().start()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown logic."""
    logger.info("Hermes trigger engine shutting down")

    if config.engine.scheduler_enabled:
        await get_evaluation_scheduler().stop()

    await task_queue.stop_workers()


# --- Health Check Endpoints ---


@app.get("/health/tasks", tags=["Health Check"])
async def health_tasks():
    """Check the status of the dispatch task queue."""
    return {"task_queue_status": "running" if task_queue.workers else "stopped", **task_queue.get_status()}
