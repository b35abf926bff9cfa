# src/studymate/schemas/session.py
"""Study session Pydantic schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from studymate.db.time import as_utc


class RatingSubmit(BaseModel):
    """Schema for rating the other participant of a session.

    A missing or zero score records completion without a rating.
    """

    score: int | None = Field(None, ge=0, le=5, description="Score from 1 to 5; 0 skips")
    review: str = Field("", max_length=2000, description="Optional free-text review")


class RatingResponse(BaseModel):
    """One participant's rating of the other."""

    target_user_id: int
    rater_id: int
    score: int
    review: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class SessionResponse(BaseModel):
    """Schema for study session state returned by the API."""

    id: int
    conversation_id: int
    post_id: int | None
    participants: list[int]
    post_snapshot: dict[str, Any]
    status: str
    started_at: datetime | None
    ended_at: datetime | None
    ending_requested_by: int | None
    ending_requested_at: datetime | None
    auto_close_at: datetime | None
    completion_deadline_at: datetime | None
    confirmed_by: list[int]
    completed_by: list[int]
    ratings: list[RatingResponse]

    @model_validator(mode="before")
    @classmethod
    def _from_session(cls, data: object) -> object:
        if isinstance(data, dict):
            return data
        extracted: dict[str, object] = {
            field_name: getattr(data, field_name, None)
            for field_name in cls.model_fields
            if field_name not in ("participants", "confirmed_by", "completed_by", "ratings")
        }
        extracted["participants"] = list(getattr(data, "participants", ()))
        extracted["confirmed_by"] = sorted(getattr(data, "confirmed_by", ()))
        extracted["completed_by"] = sorted(getattr(data, "completed_by", ()))
        extracted["ratings"] = list(getattr(data, "ratings", ()))
        return extracted

    @field_validator(
        "started_at",
        "ended_at",
        "ending_requested_at",
        "auto_close_at",
        "completion_deadline_at",
    )
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)


class SessionActionResponse(BaseModel):
    """Result of an action that may have ended the session's lifecycle.

    ``session`` is null once the session has been cleaned up.
    """

    session: SessionResponse | None
    cleaned_up: bool = False
