import logging
import os
from typing import List, Optional

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header
from redis.asyncio import Redis
from redis.exceptions import RedisError
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request

from src.models import PasteRecord
from src.repository import PasteStore, SubmissionThrottle

logger = logging.getLogger(__name__)

MAX_PASTE_SIZE = int(os.getenv("MAX_PASTE_SIZE", 1 << 20))
CACHE_EXPIRY_SECONDS = int(os.getenv("CACHE_EXPIRY_SECONDS", 3600))


class RateLimitExceeded(Exception):
    def __init__(self, client_ip: str, retry_after: int):
        self.client_ip = client_ip
        self.retry_after = retry_after
        self.message = f"please wait {retry_after} seconds before creating new paste"
        super().__init__(self.message)


class RecordNotFound(Exception):
    def __init__(self, record_type: str, identifier: str):
        self.record_type = record_type
        self.identifier = identifier
        self.message = f'{record_type} with id "{identifier}" was not found'
        super().__init__(self.message)


class EmptyPaste(Exception):
    def __init__(self):
        self.message = "your paste is empty!"
        super().__init__(self.message)


class PasteTooLarge(Exception):
    def __init__(self, limit: int):
        self.limit = limit
        self.message = "request body too large"
        super().__init__(self.message)


class MalformedPaste(Exception):
    def __init__(self, details: str):
        self.details = details
        self.message = f"bad request: {details}"
        super().__init__(self.message)


class StorageError(Exception):
    def __init__(self, operation: str, details: str):
        self.operation = operation
        self.details = details
        self.message = f"Storage operation '{operation}' failed: {details}"
        super().__init__(self.message)


def checkRateLimit(throttle: SubmissionThrottle, client_ip: str):
    allowed, retry_after = throttle.allow(client_ip)
    if not allowed:
        logger.warning(f"Paste cooldown active for ip address: {client_ip}")
        raise RateLimitExceeded(client_ip, retry_after)


def firstMultipartPart(content_type: str, body: bytes) -> bytes:
    """Return the raw bytes of the first part of a multipart body."""

    _, params = parse_options_header(content_type)
    boundary = params.get(b"boundary")
    if not boundary:
        raise MalformedPaste("missing boundary in multipart body")

    parts: List[bytearray] = []

    def on_part_begin():
        parts.append(bytearray())

    def on_part_data(data: bytes, start: int, end: int):
        if len(parts) == 1:
            parts[0].extend(data[start:end])

    parser = MultipartParser(
        boundary, {"on_part_begin": on_part_begin, "on_part_data": on_part_data}
    )
    try:
        parser.write(body)
        parser.finalize()
    except MultipartParseError as exc:
        raise MalformedPaste(str(exc) or "invalid multipart body") from exc

    if not parts:
        raise MalformedPaste("no parts in multipart body")
    return bytes(parts[0])


async def readPayload(request: Request) -> bytes:
    """Read the paste from a raw body, or from the first part of a multipart body."""

    content_length = request.headers.get("content-length", "")
    if content_length.isdigit() and int(content_length) > MAX_PASTE_SIZE:
        raise PasteTooLarge(MAX_PASTE_SIZE)

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > MAX_PASTE_SIZE:
            raise PasteTooLarge(MAX_PASTE_SIZE)

    if request.headers.get("content-type", "").startswith("multipart/form-data"):
        return firstMultipartPart(request.headers["content-type"], bytes(body))
    return bytes(body)


async def _cachePaste(redis: Optional[Redis], identifier: str, payload: bytes):
    if redis is None:
        return
    try:
        await redis.setex(f"paste:{identifier}", CACHE_EXPIRY_SECONDS, payload)
    except RedisError as exc:
        logger.warning(f"Could not cache paste {identifier}: {str(exc)}")


async def createPaste(
    store: PasteStore, redis: Optional[Redis], payload: bytes
) -> PasteRecord:
    if not payload:
        raise EmptyPaste()
    if len(payload) > MAX_PASTE_SIZE:
        raise PasteTooLarge(MAX_PASTE_SIZE)

    try:
        record = await run_in_threadpool(store.allocate, payload)
    except OSError as exc:
        logger.error(f"Could not store paste of {len(payload)} bytes: {str(exc)}")
        raise StorageError("create paste", str(exc)) from exc

    await _cachePaste(redis, record.identifier, payload)
    logger.info(
        f"Paste created: #{record.ordinal} -> {record.identifier} ({record.size} bytes)"
    )

    return record


async def findPaste(store: PasteStore, redis: Optional[Redis], identifier: str) -> bytes:
    if redis is not None:
        try:
            cached_paste = await redis.get(f"paste:{identifier}")
        except RedisError as exc:
            logger.warning(f"Could not read cached paste {identifier}: {str(exc)}")
            cached_paste = None
        if cached_paste is not None:
            logger.info(f"Cache hit - Serving paste: {identifier}")
            return cached_paste

    try:
        payload = await run_in_threadpool(store.resolve, identifier)
    except OSError as exc:
        logger.error(f"Could not read paste {identifier}: {str(exc)}")
        raise StorageError("read paste", str(exc)) from exc

    if payload is None:
        logger.info(f"Cannot find paste for identifier: {identifier}")
        raise RecordNotFound("paste", identifier)

    await _cachePaste(redis, identifier, payload)
    logger.info(f"Paste found - Serving paste: {identifier}")

    return payload
