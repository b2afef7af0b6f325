import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from .concurrency import ConcurrentModificationError
from .config import ENVIRONMENT, FRONTEND_URL, LOG_LEVEL
from .Database import Base, engine
from .routes.auth import router as auth_router
from .routes.candidates import router as candidates_router
from .routes.clients import router as clients_router
from .routes.contracts import router as contracts_router
from .routes.event_reports import router as event_reports_router
from .routes.events import router as events_router
from .routes.onboarding import router as onboarding_router
from .routes.polls import router as polls_router
from .routes.projects import router as projects_router
from .routes.tasks import router as tasks_router
from .routes.users import router as users_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Gestionale API (%s)", ENVIRONMENT)
    Base.metadata.create_all(bind=engine)
    yield
    logger.info("Shutting down Gestionale API")


app = FastAPI(title="Gestionale API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in FRONTEND_URL.split(",")],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(ConcurrentModificationError)
async def concurrent_modification_handler(request: Request, exc: ConcurrentModificationError):
    return JSONResponse(status_code=409, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(OperationalError)
async def database_connection_handler(request: Request, exc: OperationalError):
    logger.exception("Database connection error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Database connection error. Please try again later."},
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/health")
def health():
    return {"status": "OK", "timestamp": datetime.utcnow().isoformat()}


for router in (
    auth_router,
    users_router,
    clients_router,
    projects_router,
    contracts_router,
    tasks_router,
    events_router,
    event_reports_router,
    polls_router,
    candidates_router,
    onboarding_router,
):
    app.include_router(router, prefix="/api")
