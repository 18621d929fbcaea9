import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import PlainTextResponse, Response
from redis.asyncio import Redis

from src.dependencies import get_redis, get_store, get_throttle
from src.repository import PasteStore, SubmissionThrottle
from src.services import (
    MAX_PASTE_SIZE,
    EmptyPaste,
    MalformedPaste,
    PasteTooLarge,
    RateLimitExceeded,
    RecordNotFound,
    StorageError,
    checkRateLimit,
    createPaste,
    findPaste,
    readPayload,
)

logger = logging.getLogger(__name__)
router = APIRouter()

MANPAGE_TEXT = """NAME
	paast - create pastes with different methods

SYNOPSIS
	cat code.txt | curl {HOST} --data-binary @-
	cat code.txt | curl {HOST} -F 'foo=<-'
	cat code.txt | curl {HOST} -F '=<-'
	cat code.txt | http {HOST}

	curl {HOST}/<id>

LIMITS
	Maximum allowed request body size is {MAX_SIZE}.
	Creating pastes has a {COOLDOWN}-second cooldown.

STATUS CODES
	200 - paste created, URL returned in response
	400 - bad request or empty paste input
	404 - paste not found
	413 - paste input too large
	429 - attempt to create too many pastes, please wait {COOLDOWN} seconds
	500 - internal server error
"""


def error_response(status_code: int, message: str, **kwargs) -> PlainTextResponse:
    return PlainTextResponse(f"error: {message}\n", status_code=status_code, **kwargs)


def paste_media_type(payload: bytes) -> str:
    try:
        payload.decode("utf-8")
    except UnicodeDecodeError:
        return "application/octet-stream"
    return "text/plain; charset=utf-8"


def format_size(size: int) -> str:
    for unit in ("bytes", "KB", "MB"):
        if size < 1024 or unit == "MB":
            return f"{size:g} {unit}" if unit == "bytes" else f"{size:.3g} {unit}"
        size /= 1024


# Routes
@router.get("/", response_class=PlainTextResponse)
def manpage(
    request: Request,
    throttle: Annotated[SubmissionThrottle, Depends(get_throttle)],
):
    text = (
        MANPAGE_TEXT.replace("{HOST}", request.url.netloc)
        .replace("{MAX_SIZE}", format_size(MAX_PASTE_SIZE))
        .replace("{COOLDOWN}", f"{throttle.cooldown_seconds:g}")
    )
    return PlainTextResponse(text)


@router.post("/")
async def create(
    request: Request,
    store: Annotated[PasteStore, Depends(get_store)],
    throttle: Annotated[SubmissionThrottle, Depends(get_throttle)],
    redis: Annotated[Optional[Redis], Depends(get_redis)],
):
    try:
        if request.client is not None:
            checkRateLimit(throttle, request.client.host)
        else:
            logger.debug("No client address on request, skipping paste cooldown")

        payload = await readPayload(request)
        record = await createPaste(store, redis, payload)

        return PlainTextResponse(
            f"{request.url.scheme}://{request.url.netloc}/{record.identifier}\n"
        )

    except RateLimitExceeded as exc:
        return error_response(
            status.HTTP_429_TOO_MANY_REQUESTS,
            exc.message,
            headers={"Retry-After": str(exc.retry_after)},
        )

    except (EmptyPaste, MalformedPaste) as exc:
        return error_response(status.HTTP_400_BAD_REQUEST, exc.message)

    except PasteTooLarge as exc:
        return error_response(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, exc.message)

    except StorageError:
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "internal server error"
        )

    except Exception as exc:
        logger.exception(f"Error creating paste: {str(exc)}")
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "internal server error"
        )


@router.get("/{identifier}")
async def retrieve(
    store: Annotated[PasteStore, Depends(get_store)],
    redis: Annotated[Optional[Redis], Depends(get_redis)],
    identifier: str,
):
    try:
        payload = await findPaste(store, redis, identifier)
        return Response(content=payload, media_type=paste_media_type(payload))

    except RecordNotFound as exc:
        return PlainTextResponse(
            f"{exc.message}\n", status_code=status.HTTP_404_NOT_FOUND
        )

    except StorageError:
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "internal server error"
        )

    except Exception as exc:
        logger.exception(f"Error retrieving paste {identifier}: {str(exc)}")
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "internal server error"
        )
