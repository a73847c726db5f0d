import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

# Import all models to ensure they're registered with SQLAlchemy Base
from . import models, models_notification  # noqa: F401
from .config import ALLOWED_ORIGINS, CSRF_ENABLED, ENVIRONMENT, MEDIA_ROOT, REMINDERS_ENABLED
from .csrf import CSRF_COOKIE_NAME, CSRFMiddleware, generate_csrf_token, set_csrf_cookie
from .database import Base, SessionLocal, engine
from .domain.appointments.router import router as appointments_router
from .domain.notifications.router import router as notifications_router
from .domain.offers.router import router as offers_router
from .domain.properties.router import router as properties_router
from .domain.reviews.router import router as reviews_router
from .initial_setup import initialize_setup
from .routes.auth import router as auth_router
from .routes.users import router as users_router
from .services.messaging import build_messaging_gateway
from .services.storage import build_media_storage
from .workers.reminder_worker import ReminderScheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Application starting up ({ENVIRONMENT})...")
    Base.metadata.create_all(bind=engine, checkfirst=True)
    logger.info("Database tables created successfully")

    db = SessionLocal()
    try:
        initialize_setup(db)
    finally:
        db.close()

    if not hasattr(app.state, "messaging"):
        app.state.messaging = build_messaging_gateway()
    if not hasattr(app.state, "storage"):
        app.state.storage = build_media_storage()

    reminder_task = None
    if REMINDERS_ENABLED:
        reminder_task = asyncio.create_task(ReminderScheduler(app.state.messaging).run())
    else:
        logger.info("⏸️ Reminder scheduler disabled (REMINDERS_ENABLED=false)")

    yield

    logger.info("Application shutting down...")
    if reminder_task:
        reminder_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await reminder_task


app = FastAPI(title="PropertyHub API", version="1.0.0", lifespan=lifespan)


def _format_validation_error(error: dict) -> str:
    location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "form")]
    message = error.get("msg", "Invalid value")
    if message.startswith("Value error, "):
        message = message[len("Value error, ") :]
    return f"{'.'.join(location)}: {message}" if location else message


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail if isinstance(exc.detail, list) else [str(exc.detail)]
    return JSONResponse(status_code=exc.status_code, content={"message": detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = [_format_validation_error(error) for error in exc.errors()]
    logger.warning(f"Validation error for {request.url.path}: {messages}")
    return JSONResponse(status_code=400, content={"message": messages})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"message": ["Internal server error"]})


if CSRF_ENABLED:
    app.add_middleware(CSRFMiddleware)
    logger.info("🛡️ CSRF protection enabled")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/media", StaticFiles(directory=MEDIA_ROOT, check_dir=False), name="media")

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(properties_router)
app.include_router(appointments_router)
app.include_router(offers_router)
app.include_router(reviews_router)
app.include_router(notifications_router)


@app.get("/")
async def root():
    return {"message": "PropertyHub API", "version": "1.0.0"}


@app.get("/health")
async def health():
    return {"status": "healthy"}


@app.get("/csrf-token")
async def csrf_token(request: Request, response: Response):
    """Issue (or return the existing) CSRF token for the double-submit cookie"""
    token = request.cookies.get(CSRF_COOKIE_NAME) or generate_csrf_token()
    set_csrf_cookie(response, token)
    return {"csrfToken": token}
