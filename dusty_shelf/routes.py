"""
Dusty Shelf endpoints.

Every route here requires a bearer token; each one authenticates, calls a
single store operation and turns the outcome into a response.
"""

from typing import Dict, List, Type, TypeVar

import structlog
from fastapi import APIRouter, Depends, Path, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ValidationError

from dusty_shelf.auth import get_current_user
from dusty_shelf.config import Settings
from dusty_shelf.database import BookStore
from dusty_shelf.errors import NotFoundError, PayloadTooLargeError
from dusty_shelf.models import (
    INT32_MAX, INT32_MIN,
    Book, BookUpdate, ConfigDto, ErrorResponse, StatusResponse, UserClaims
)

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

UNAUTHORIZED_RESPONSE = {
    "model": ErrorResponse,
    "description": (
        "This response is given when you request a page that you don't have access to "
        "or you have not provided any authentication."
    ),
}
NOT_FOUND_RESPONSE = {"model": ErrorResponse, "description": "There is no book with this id"}
UNAVAILABLE_RESPONSE = {"model": ErrorResponse, "description": "No database connection available"}
TOO_LARGE_RESPONSE = {"model": ErrorResponse, "description": "Request body exceeds the JSON limit"}

router = APIRouter(
    dependencies=[Depends(get_current_user)],
    responses={401: UNAUTHORIZED_RESPONSE, 503: UNAVAILABLE_RESPONSE},
)

RANDOM_BOOK = Book(
    id=0,
    title="Your Personal Diary",
    author="You",
    description="You know what this is about! We don't want to know! :)",
    published=True,
    encoded=[0],
)


def get_book_store(request: Request) -> BookStore:
    return request.app.state.book_store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def book_id_path():
    return Path(..., ge=INT32_MIN, le=INT32_MAX, description="Book identifier")


def json_request_body(model: Type[BaseModel]) -> Dict:
    """OpenAPI request body for models parsed by ``parse_json_body``."""
    return {
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": model.model_json_schema()}},
        }
    }


async def read_limited_body(request: Request, limit: int) -> bytes:
    """
    Read the request body, refusing anything larger than ``limit`` bytes.

    Raises:
        PayloadTooLargeError: If the declared or streamed size exceeds the limit
    """
    too_large = PayloadTooLargeError(f"Request body must not exceed {limit} bytes")

    content_length = request.headers.get("content-length")
    if content_length is not None and content_length.isdigit() and int(content_length) > limit:
        logger.warning("Request body too large", size=int(content_length))
        raise too_large

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            logger.warning("Streamed request body too large", limit=limit)
            raise too_large
    return bytes(body)


async def parse_json_body(request: Request, model: Type[ModelT]) -> ModelT:
    settings: Settings = request.app.state.settings
    body = await read_limited_body(request, settings.json_limit_bytes)
    try:
        return model.model_validate_json(body)
    except ValidationError as e:
        errors = [{**error, "loc": ("body", *error["loc"])} for error in e.errors(include_url=False)]
        raise RequestValidationError(errors, body=body)


# Bodies are parsed only after the bearer token has been accepted
async def book_body(request: Request, user: UserClaims = Depends(get_current_user)) -> Book:
    return await parse_json_body(request, Book)


async def book_update_body(request: Request, user: UserClaims = Depends(get_current_user)) -> BookUpdate:
    return await parse_json_body(request, BookUpdate)


@router.get("/", response_class=PlainTextResponse, tags=["Home"])
async def index():
    """Welcome message."""
    return "Welcome To The Dusty Shelf"


@router.get("/config", response_class=PlainTextResponse, tags=["ConfigDto"])
async def get_config(settings: Settings = Depends(get_settings)):
    """Greet the configured demo user."""
    config = ConfigDto(name=settings.config_name, age=settings.config_age)
    return f"Hello {config.name}, welcome to the club {config.age}!"


@router.get("/book/random", response_model=Book, tags=["Books"])
async def get_random_book():
    """A placeholder book that never touches the database."""
    return RANDOM_BOOK


@router.get("/book/all", response_model=List[Book], tags=["Books"])
async def get_all_books(store: BookStore = Depends(get_book_store)):
    """Get every book on the shelf."""
    return await store.list_all()


@router.get("/book/{book_id}", response_model=Book, responses={404: NOT_FOUND_RESPONSE}, tags=["Books"])
async def get_by_id(
    book_id: int = book_id_path(),
    store: BookStore = Depends(get_book_store),
):
    """Get a single book by ID."""
    return await store.get_by_id(book_id)


@router.post(
    "/add_book",
    response_model=Book,
    responses={413: TOO_LARGE_RESPONSE},
    openapi_extra=json_request_body(Book),
    tags=["Add Book"],
)
async def add_book(
    book: Book = Depends(book_body),
    store: BookStore = Depends(get_book_store),
    user: UserClaims = Depends(get_current_user),
):
    """Put a book on the shelf. The id is chosen by the caller."""
    logger.info("Adding book", book_id=book.id, user_id=user.id)
    return await store.insert(book)


@router.put(
    "/update_book/{book_id}",
    response_model=StatusResponse,
    responses={404: NOT_FOUND_RESPONSE, 413: TOO_LARGE_RESPONSE},
    openapi_extra=json_request_body(BookUpdate),
    tags=["Update Book"],
)
async def update_book(
    book: BookUpdate = Depends(book_update_body),
    book_id: int = book_id_path(),
    store: BookStore = Depends(get_book_store),
):
    """
    Replace title, author and description of a book.

    - **book_id**: Book identifier
    - ``published`` and ``encoded`` in the body are ignored
    """
    affected = await store.update(book_id, book.title, book.author, book.description)
    if affected == 0:
        raise NotFoundError()
    return StatusResponse(response=f"Book Updated Successfully! RESULT: {affected}")


@router.delete(
    "/delete_book/{book_id}",
    response_model=StatusResponse,
    responses={404: NOT_FOUND_RESPONSE},
    tags=["Delete Book"],
)
async def delete_book(
    book_id: int = book_id_path(),
    store: BookStore = Depends(get_book_store),
):
    """Remove a book from the shelf."""
    affected = await store.delete(book_id)
    if affected != 1:
        raise NotFoundError()
    return StatusResponse(response=f"Book with id: {book_id} is removed from the Shelf now")
