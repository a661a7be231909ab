"""
Hire a Clinic 主应用入口
诊室租赁预订与支付对账服务
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clinic import __version__
from clinic_core.engine import EventBus
from clinic_core.notification import NotificationChannelRegistry
from clinic.config import settings
from clinic.database import init_db, SessionLocal
from clinic.errors import ClinicError, ConflictError
from clinic.init_data import seed_rooms
from clinic.notification import EmailChannel
from clinic.payment import StripeGateway
from clinic.routers import auth, rooms, prices, availability, bookings, payments
from clinic.services.notification_service import register_notification_handlers

logger = logging.getLogger(__name__)


def setup_state(app: FastAPI) -> None:
    """创建应用级句柄：事件总线、通知渠道、支付网关"""
    registry = NotificationChannelRegistry()
    registry.register(EmailChannel.from_settings(settings))

    bus = EventBus()
    register_notification_handlers(bus, registry, settings.APP_URL)

    app.state.event_bus = bus
    app.state.notification_registry = registry
    app.state.payment_gateway = StripeGateway(settings.STRIPE_SECRET_KEY)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    init_db()
    db = SessionLocal()
    try:
        seed_rooms(db)
    finally:
        db.close()

    if not settings.STRIPE_SECRET_KEY:
        logger.warning("STRIPE_SECRET_KEY not set, payment calls will fail")
    setup_state(app)
    logger.info(f"{settings.APP_NAME} {__version__} started")

    yield


app = FastAPI(
    title=settings.APP_NAME,
    description="诊室租赁预订与支付对账服务",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.APP_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ClinicError)
async def clinic_error_handler(request: Request, exc: ClinicError):
    """业务异常 -> HTTP 状态码"""
    content = {"detail": exc.message, "error": exc.__class__.__name__}
    if isinstance(exc, ConflictError):
        content["room_id"] = exc.room_id
        content["room_name"] = exc.room_name
    if exc.status_code >= 500:
        logger.error(f"{exc.__class__.__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=content)


app.include_router(auth.router)
app.include_router(rooms.router)
app.include_router(prices.router)
app.include_router(availability.router)
app.include_router(bookings.router)
app.include_router(payments.router)


@app.get("/health")
def health_check():
    """健康检查"""
    return {"status": "healthy", "version": __version__}
