"""Pydantic schemas for user records and user endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class UserRecord(BaseModel):
    """A user record as stored by the record source and held in the cache."""

    id: int = Field(..., description="Immutable record identifier.")
    name: str = Field(..., description="Display name.")
    email: str = Field(..., description="Contact email address.")


class CreateUserRequest(BaseModel):
    """Payload for creating a user.

    Fields are optional at the schema level so that missing or blank values
    are reported by the service as a ``ValidationAppError`` (HTTP 400) instead
    of a framework-level 422.
    """

    name: str | None = Field(default=None, description="Display name (required).")
    email: str | None = Field(default=None, description="Contact email (required).")


class UserLookupResponse(BaseModel):
    """Lookup result with provenance."""

    source: Literal["cache", "source"] = Field(
        ...,
        description="Where the record came from: the cache or the backing source.",
    )
    user: UserRecord


class CreateUserResponse(BaseModel):
    user: UserRecord
