from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from typing import Any
from redis.exceptions import RedisError
from campus_messaging.ws import LiveUpdateChannel, get_channel

router = APIRouter()


@router.get("")
async def health_check():
    return {"status": "healthy"}


@router.get("/redis")
async def redis_health(channel: LiveUpdateChannel = Depends(get_channel)) -> Any:
    """Return Redis connection health. If `REDIS_URL` is not configured, returns status `not_configured`.

    Live events are still delivered to sessions on this instance without Redis.
    """
    if channel.redis is None:
        return JSONResponse({"status": "not_configured", "details": "REDIS_URL not set"}, status_code=200)

    try:
        ok = await channel.redis.ping()
        if ok:
            return {"status": "ok", "redis": "connected"}
        else:
            return JSONResponse({"status": "error", "redis": "ping_failed"}, status_code=500)
    except RedisError as e:
        return JSONResponse({"status": "error", "error": str(e)}, status_code=500)
