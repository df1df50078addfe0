import logging

from fastapi import FastAPI

from app.core.logging import configure_logging
from app.core.settings import settings
from app.routers.auth import router as auth_router
from app.routers.me import router as me_router
from app.routers.software import router as software_router
from app.routers.users import router as users_router
from app.startup import register_startup

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, debug=settings.debug)

register_startup(app)

app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(software_router, prefix="/software", tags=["software"])
app.include_router(me_router, tags=["me"])
app.include_router(users_router, tags=["users"])

logger.info("%s configured (presigned downloads: %s)", settings.app_name, settings.use_presigned_urls)


@app.get("/health")
def health_check():
    return {"status": "ok"}
