from typing import AsyncGenerator, Optional

from fastapi import Request
from redis.asyncio import Redis

from src.repository import PasteStore, SubmissionThrottle


async def get_store(request: Request) -> AsyncGenerator[PasteStore, None]:
    yield request.app.state.store


async def get_throttle(request: Request) -> AsyncGenerator[SubmissionThrottle, None]:
    yield request.app.state.throttle


async def get_redis(request: Request) -> AsyncGenerator[Optional[Redis], None]:
    yield request.app.state.redis
