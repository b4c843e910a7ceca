from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI

from globalsim.api import cur_version
from globalsim.api.routers import public_routers
from globalsim.cache._cache import make_redis_client
from globalsim.common.ai_routing import AIProviderAdvisor
from globalsim.common.custom_exceptions import register_all_exceptions
from globalsim.common.logging_setup import setup_logging, shutdown_logging
from globalsim.config.settings import Settings, config_settings
from globalsim.esim.providers import build_esim_registry
from globalsim.esim.repository import ESIMRepository
from globalsim.esim.services import ESIMManager
from globalsim.middlewares.rate_limit_middleware import RateLimitHeadersMiddleware
from globalsim.middlewares.request_id_middleware import RequestIdMiddleware
from globalsim.otp.codec import OTPCodec
from globalsim.otp.providers import SMSRouter, build_sms_registry
from globalsim.otp.repository import OTPRepository
from globalsim.otp.services import OTPService
from globalsim.rate_limiting.rate_limit_fixed_window import FixedWindowRateLimiter
from globalsim.store import InMemoryStore, KeyValueStore, RedisStore


def build_store(settings: Settings) -> KeyValueStore:
    if settings.STORE_BACKEND == "redis":
        return RedisStore(make_redis_client(settings))
    return InMemoryStore()


def wire_services(app: FastAPI, settings: Settings, store: KeyValueStore,
                  ai_transport: Optional[httpx.AsyncBaseTransport] = None):
    app.state.settings = settings
    app.state.store = store
    app.state.rate_limiter = FixedWindowRateLimiter(store, fail_open=settings.RATE_LIMIT_FAIL_OPEN)

    advisor = AIProviderAdvisor(settings, transport=ai_transport) if settings.AI_ROUTING_ENABLED else None
    sms_router = SMSRouter(build_sms_registry(settings), advisor=advisor,
                           send_timeout=settings.PROVIDER_TIMEOUT_SECONDS)
    codec = OTPCodec(settings.OTP_SECRET, length=settings.OTP_LENGTH,
                     expiry_minutes=settings.OTP_EXPIRY_MINUTES)
    app.state.otp_service = OTPService(
        OTPRepository(store), codec, sms_router,
        max_attempts=settings.OTP_MAX_ATTEMPTS,
        default_country_code=settings.PHONE_DEFAULT_COUNTRY_CODE,
        app_name=settings.APP_NAME,
    )
    app.state.esim_manager = ESIMManager(build_esim_registry(settings), ESIMRepository(store),
                                         call_timeout=settings.PROVIDER_TIMEOUT_SECONDS)


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    setup_logging(app.state.settings)
    try:
        yield
    finally:
        await app.state.store.close()
        shutdown_logging()


def create_app(settings: Optional[Settings] = None, store: Optional[KeyValueStore] = None,
               ai_transport: Optional[httpx.AsyncBaseTransport] = None):
    settings = settings or config_settings

    app = FastAPI(
        title=settings.APP_NAME,
        version=cur_version,
        lifespan=app_lifespan)

    wire_services(app, settings, store or build_store(settings), ai_transport)

    app.include_router(public_routers)

    app.add_middleware(RateLimitHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)
    register_all_exceptions(app)

    return app


app = create_app()
