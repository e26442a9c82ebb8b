from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from campus_messaging.config import get_settings
from campus_messaging.errors import MessagingError
from campus_messaging.logger import configure_logging
from campus_messaging.routers import health, messages, profiles
from campus_messaging.ws import channel

settings = get_settings()
configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    channel.queue_size = settings.live_queue_size
    channel.init_redis(settings.redis_url, settings.redis_channel)
    yield
    # Shutdown
    channel.close_all()
    await channel.close_redis()


app = FastAPI(
    title="Campus Messaging API",
    description="Direct messaging with live updates and read receipts",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MessagingError)
async def messaging_error_handler(request: Request, exc: MessagingError):
    return JSONResponse({"detail": exc.detail}, status_code=exc.status_code)


app.include_router(messages.router, prefix="/api/v1/messages", tags=["Messages"])
app.include_router(profiles.router, prefix="/api/v1/profiles", tags=["Profiles"])
app.include_router(health.router, prefix="/api/v1/health", tags=["Health"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
