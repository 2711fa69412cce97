"""
API models and schemas for the Dusty Shelf service.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, conint

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1
EXP_MAX = 2 ** 128 - 1


class Book(BaseModel):
    """A book kept on the shelf."""
    id: int = Field(..., ge=INT32_MIN, le=INT32_MAX, description="Book identifier, supplied by the client")
    title: str = Field(..., min_length=1, description="Book title")
    author: str = Field(..., min_length=1, description="Book author")
    description: str = Field(..., min_length=1, description="Book description")
    published: bool = Field(..., description="Whether the book is published")
    encoded: List[conint(ge=0, le=255)] = Field(
        default_factory=list,
        description="Raw binary payload as an array of byte values"
    )

    @classmethod
    def from_row(cls, row) -> "Book":
        """Build a Book from a ``books`` table row."""
        return cls(
            id=row.id,
            title=row.title,
            author=row.author,
            description=row.description,
            published=row.published,
            encoded=list(row.encoded or b""),
        )

    def encoded_bytes(self) -> bytes:
        return bytes(self.encoded)


class BookUpdate(BaseModel):
    """Fields replaced by an update; anything else in the body is ignored."""
    title: str = Field(..., min_length=1, description="New book title")
    author: str = Field(..., min_length=1, description="New book author")
    description: str = Field(..., min_length=1, description="New book description")

    model_config = {"extra": "ignore"}


class UserClaims(BaseModel):
    """Identity decoded from a bearer JWT. Two claims are equal when their ids match."""
    id: int = Field(..., description="User identifier")
    aud: str = Field(..., description="Audience")
    sub: str = Field(..., description="Subject")
    exp: int = Field(..., ge=0, le=EXP_MAX, description="Expiry as a unix timestamp")

    def __eq__(self, other):
        if isinstance(other, UserClaims):
            return self.id == other.id
        return NotImplemented

    def __hash__(self):
        return hash(self.id)


class ConfigDto(BaseModel):
    """Demo configuration greeted by /config."""
    name: str
    age: int = Field(..., ge=0, le=255)


class StatusResponse(BaseModel):
    """Plain status message."""
    response: str = Field(..., description="Outcome of the operation")


class ErrorResponse(BaseModel):
    """Error response model."""
    err: str = Field(..., description="Short error label")
    msg: Optional[str] = Field(None, description="Human readable message")
    code: int = Field(..., description="HTTP status code")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
