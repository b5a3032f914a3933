from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from otp_portal.api.contracts import HealthResponse
from otp_portal.api.http_setup import register_exception_handlers, register_http_middleware
from otp_portal.auth.client import AuthServiceClient
from otp_portal.auth.credentials import CookieCredentialStore, CookieFlags, CredentialName
from otp_portal.auth.flow import InFlightRegistry
from otp_portal.auth.guard import create_route_guard_middleware
from otp_portal.auth.router import AuthRouteDeps, create_auth_router
from otp_portal.core.config import AppConfig
from otp_portal.core.logging import setup_logging

load_dotenv()
APP_CONFIG = AppConfig.from_env()
setup_logging(APP_CONFIG.logging.level)
LOGGER = logging.getLogger(__name__)


def build_store_factory(config: AppConfig):
    ttl_seconds = {
        CredentialName.TEMP_LOGIN: config.credentials.temp_login_ttl_seconds,
        CredentialName.SESSION: config.credentials.session_ttl_seconds,
    }
    flags = CookieFlags(secure=config.credentials.cookie_secure)

    def store_factory(
        request: Request, response: Response | None = None
    ) -> CookieCredentialStore:
        return CookieCredentialStore(
            request, response, ttl_seconds=ttl_seconds, default_flags=flags
        )

    return store_factory


def create_app(
    config: AppConfig = APP_CONFIG, client: AuthServiceClient | None = None
) -> FastAPI:
    client = client or AuthServiceClient(config.auth_service)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        client.close()

    app = FastAPI(title="OTP Portal", version="1.0.0", lifespan=lifespan)
    store_factory = build_store_factory(config)

    app.middleware("http")(
        create_route_guard_middleware(
            config.guard, lambda request: store_factory(request, None)
        )
    )
    register_http_middleware(app, config=config, logger=LOGGER)
    register_exception_handlers(app, logger=LOGGER)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    app.include_router(
        create_auth_router(
            AuthRouteDeps(
                config=config,
                client=client,
                store_factory=store_factory,
                in_flight=InFlightRegistry(),
            )
        )
    )

    @app.get("/api/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok")

    return app


app = create_app()
