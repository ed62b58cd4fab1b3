import logging

from fastapi import APIRouter, Depends
from pymongo.errors import PyMongoError

from horse_chat.config import get_settings
from horse_chat.database.connection import mongo_db_dependency


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health():
    settings = get_settings()
    return {"status": "ok", "service": settings.app_name, "environment": settings.environment}


@router.get("/db")
async def database_health(db=Depends(mongo_db_dependency)):
    try:
        await db.command("ping")
    except PyMongoError:
        logger.warning("MongoDB ping failed", exc_info=True)
        return {"status": "error", "database": "disconnected"}
    return {"status": "ok", "database": "connected"}
