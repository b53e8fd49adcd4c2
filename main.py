from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from settings.config import Settings, settings as default_settings
from core.container import build_container
from core.exceptions import register_exception_handlers
from core.middleware import RequestLoggingMiddleware
from services.messaging_gateway import BaseMessagingGateway
from utils.clock import utc_now
from utils.logger import get_logger, setup_logging
from routes import analytics_routes, auth, order_route, qr_routes, realtime_routes

logger = get_logger("main")


def create_app(app_settings: Optional[Settings] = None, gateway: Optional[BaseMessagingGateway] = None) -> FastAPI:
    app_settings = app_settings or default_settings
    setup_logging(app_settings.LOG_LEVEL)
    container = build_container(app_settings, gateway)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if container.mongo is not None:
            await container.mongo.connect()
            await container.mongo.create_indexes()
        if app_settings.OTP_ECHO_ENABLED and app_settings.is_production:
            logger.warning("OTP_ECHO_ENABLED is on in production, login codes are returned to callers")
        logger.info(f"{app_settings.PROJECT_NAME} started ({app_settings.ENVIRONMENT}, storage={app_settings.STORAGE_BACKEND}, messaging={container.gateway.provider_name})")
        yield
        container.otp_store.clear()
        if container.mongo is not None:
            container.mongo.close()

    app = FastAPI(title="ReadyPing API", version=app_settings.APP_VERSION, lifespan=lifespan)
    app.state.container = container

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[app_settings.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app, expose_stack=not app_settings.is_production)

    @app.get("/api/health")
    async def health_check():
        logger.debug("Health check is successful")
        return {
            "status": "OK",
            "message": "ReadyPing Backend is running",
            "timestamp": utc_now().isoformat() + "Z",
            "version": app_settings.APP_VERSION,
        }

    app.include_router(auth.router)
    app.include_router(order_route.router)
    app.include_router(qr_routes.router)
    app.include_router(analytics_routes.router)
    app.include_router(realtime_routes.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=default_settings.PORT)
