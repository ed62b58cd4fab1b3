import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from horse_chat.config import get_settings
from horse_chat.database.connection import close_mongo_connection, connect_to_mongo, get_database
from horse_chat.exceptions import ChatError
from horse_chat.repositories.conversation_repository import ConversationRepository
from horse_chat.repositories.message_repository import MessageRepository
from horse_chat.routers.chat import manager
from horse_chat.routers.chat import router as chat_router
from horse_chat.routers.conversations import router as conversations_router
from horse_chat.routers.health import router as health_router
from horse_chat.utils.realtime_bus import ROOM_EVENTS_CHANNEL, close_bus, get_bus


logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


async def stop_relay(relay, relay_task: asyncio.Task) -> None:
    # The reader must be finished before its pubsub connection is closed.
    relay_task.cancel()
    with suppress(asyncio.CancelledError):
        await relay_task
    await relay.cancel()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level)

    await connect_to_mongo()
    db = get_database()
    await ConversationRepository(db).ensure_indexes()
    await MessageRepository(db).ensure_indexes()

    bus = await get_bus()
    relay = None
    relay_task = None
    if bus.enabled:
        relay = await bus.subscribe(ROOM_EVENTS_CHANNEL, manager.deliver_relayed)
        relay_task = asyncio.create_task(relay.run())
        manager.attach_bus(bus)
    try:
        yield
    finally:
        if relay is not None:
            manager.detach_bus()
            await stop_relay(relay, relay_task)
        await close_bus()
        await close_mongo_connection()


app = FastAPI(title="Horse Portal Chat", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(health_router)
app.include_router(conversations_router)
app.include_router(chat_router)
