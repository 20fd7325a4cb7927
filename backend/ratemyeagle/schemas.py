"""Pydantic schemas for request / response validation.

Request bodies and derived statistics use camelCase on the wire (the
front end's convention); stored rows are returned with their column names.
"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


# ── Shared ───────────────────────────────────────────────────────────────────

class HealthResponse(CamelModel):
    status: str = "ok"
    version: str = "1.0.0"
    timestamp: datetime
    database: str
    auth_service: str


class SetupResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str
    details: Optional[Any] = None


# ── Professor ────────────────────────────────────────────────────────────────

class ProfessorCreate(CamelModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    title: str = Field(min_length=1)
    department: str = Field(min_length=1)
    email: Optional[str] = None
    office_location: Optional[str] = None
    courses: Optional[str] = None
    bio: Optional[str] = None

    @field_validator("email", "office_location", "courses", "bio", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ProfessorSummary(BaseModel):
    id: str
    first_name: str
    last_name: str
    title: str
    department: str

    class Config:
        from_attributes = True


class ProfessorOut(ProfessorSummary):
    email: Optional[str] = None
    office_location: Optional[str] = None
    courses: Optional[str] = None
    bio: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime


class ProfessorListResponse(BaseModel):
    professors: list[ProfessorOut]


class ProfessorCreatedResponse(BaseModel):
    professor: ProfessorOut


# ── Rating ───────────────────────────────────────────────────────────────────

YesNo = Literal["yes", "no"]


class RatingCreate(CamelModel):
    course_code: str = Field(min_length=1)
    is_online_course: bool = False
    overall_rating: int = Field(ge=1, le=5)
    difficulty: int = Field(ge=1, le=5)
    would_take_again: YesNo
    taken_for_credit: Optional[str] = None
    used_textbooks: Optional[str] = None
    attendance_mandatory: Optional[str] = None
    grade_received: Optional[str] = None
    selected_tags: list[str] = Field(default_factory=list)
    review: str = Field(min_length=1)


class RatingOut(BaseModel):
    id: str
    professor_id: str
    user_id: str
    course_code: str
    is_online: bool
    rating: int
    difficulty: int
    would_take_again: bool
    for_credit: Optional[bool] = None
    used_textbooks: Optional[bool] = None
    attendance_mandatory: Optional[bool] = None
    grade: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    review: str
    created_at: datetime

    class Config:
        from_attributes = True


class UserRatingOut(RatingOut):
    professor: Optional[ProfessorSummary] = None


class TagCount(BaseModel):
    tag: str
    count: int


class RatingStats(CamelModel):
    total_ratings: int = 0
    avg_rating: float = 0
    avg_difficulty: float = 0
    top_tags: list[TagCount] = Field(default_factory=list)


class ProfessorRatingsResponse(BaseModel):
    ratings: list[RatingOut]
    stats: RatingStats


class RatingCreatedResponse(BaseModel):
    rating: RatingOut
    message: str = "Rating submitted successfully"


class UserRatingsResponse(BaseModel):
    ratings: list[UserRatingOut]


# ── Forum ────────────────────────────────────────────────────────────────────

class ForumMessageCreate(BaseModel):
    content: str = Field(min_length=1)

    class Config:
        str_strip_whitespace = True


class ForumMessageOut(BaseModel):
    id: str
    user_id: str
    username: str
    content: str
    created_at: datetime

    class Config:
        from_attributes = True


class ForumMessagesResponse(BaseModel):
    messages: list[ForumMessageOut]


class ForumMessageCreatedResponse(BaseModel):
    message: ForumMessageOut
