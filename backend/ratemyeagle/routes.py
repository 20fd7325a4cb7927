"""API routes – health, setup, professors, ratings, user ratings."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ratemyeagle.auth import AuthUser, get_current_user
from ratemyeagle.cache import cache_get, cache_invalidate, cache_set, professors_key, ratings_key
from ratemyeagle.config import get_settings
from ratemyeagle.database import get_db, init_db
from ratemyeagle.errors import NotFound, StorageError, ValidationFailed
from ratemyeagle.models import Professor, ProfessorRating
from ratemyeagle.schemas import (
    HealthResponse,
    ProfessorCreate,
    ProfessorCreatedResponse,
    ProfessorListResponse,
    ProfessorOut,
    ProfessorRatingsResponse,
    RatingCreate,
    RatingCreatedResponse,
    RatingOut,
    SetupResponse,
    UserRatingOut,
    UserRatingsResponse,
)
from ratemyeagle.stats import compute_rating_stats

logger = logging.getLogger(__name__)

router = APIRouter()

DUPLICATE_RATING = "You have already rated this professor"


def _configured(value: str) -> str:
    return "configured" if value else "not configured"


def _yes_no(answer: str | None) -> bool | None:
    if answer == "yes":
        return True
    if answer == "no":
        return False
    return None


# ── Health / setup ───────────────────────────────────────────────────────────

@router.get("/health", response_model=HealthResponse, tags=["health"])
def health():
    settings = get_settings()
    return HealthResponse(
        timestamp=datetime.now(timezone.utc),
        database=_configured(settings.database_url),
        auth_service=_configured(settings.supabase_url and settings.supabase_service_role_key),
    )


@router.post("/setup", response_model=SetupResponse, tags=["health"])
def setup():
    """Create any missing tables; safe to call repeatedly."""
    try:
        init_db()
    except SQLAlchemyError as exc:
        logger.error("Database setup failed: %s", exc)
        body = SetupResponse(success=False, error=str(exc), message="Database setup failed")
        return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))
    logger.info("Database setup completed")
    return SetupResponse(success=True, message="Database tables are ready")


# ── Professors ───────────────────────────────────────────────────────────────

def _professor_list(query, cache_key: str) -> ProfessorListResponse:
    cached = cache_get(cache_key)
    if cached:
        return ProfessorListResponse(**cached)
    try:
        professors = query.order_by(Professor.created_at.desc()).all()
    except SQLAlchemyError as exc:
        logger.error("Error fetching professors: %s", exc)
        raise StorageError("Failed to fetch professors", details=str(exc))

    data = ProfessorListResponse(professors=[ProfessorOut.model_validate(p) for p in professors])
    cache_set(cache_key, data.model_dump(mode="json"))
    return data


@router.get("/professors", response_model=ProfessorListResponse, tags=["professors"])
def list_professors(db: Session = Depends(get_db)):
    return _professor_list(db.query(Professor), professors_key())


@router.post("/professors", response_model=ProfessorCreatedResponse, tags=["professors"])
def create_professor(
    payload: ProfessorCreate,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    professor = Professor(**payload.model_dump(), created_by=user.id)
    try:
        db.add(professor)
        db.commit()
        db.refresh(professor)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Database error creating professor: %s", exc)
        raise StorageError("Failed to create professor", details=str(exc))

    cache_invalidate(professors_key("*"))
    logger.info("Professor %s created by %s", professor.id, user.id)
    return ProfessorCreatedResponse(professor=ProfessorOut.model_validate(professor))


@router.get(
    "/professors/department/{department}",
    response_model=ProfessorListResponse,
    tags=["professors"],
)
def professors_by_department(department: str, db: Session = Depends(get_db)):
    query = db.query(Professor).filter(Professor.department == department)
    return _professor_list(query, professors_key(f"department:{department}"))


@router.get("/professors/search", response_model=ProfessorListResponse, tags=["professors"])
def search_professors(q: str = Query(""), db: Session = Depends(get_db)):
    term = q.strip()
    if not term:
        return ProfessorListResponse(professors=[])
    query = db.query(Professor).filter(
        or_(
            Professor.first_name.icontains(term, autoescape=True),
            Professor.last_name.icontains(term, autoescape=True),
            Professor.department.icontains(term, autoescape=True),
        )
    )
    return _professor_list(query, professors_key(f"search:{term.lower()}"))


# ── Ratings ──────────────────────────────────────────────────────────────────

@router.post(
    "/professors/{professor_id}/ratings",
    response_model=RatingCreatedResponse,
    tags=["ratings"],
)
def create_rating(
    professor_id: str,
    payload: RatingCreate,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        professor = db.get(Professor, professor_id)
        existing = (
            db.query(ProfessorRating.id)
            .filter_by(professor_id=professor_id, user_id=user.id)
            .first()
        )
    except SQLAlchemyError as exc:
        raise StorageError("Failed to create rating", details=str(exc))

    if professor is None:
        raise NotFound("Professor not found")
    if existing:
        logger.info("User %s has already rated professor %s", user.id, professor_id)
        raise ValidationFailed(DUPLICATE_RATING)

    rating = ProfessorRating(
        professor_id=professor_id,
        user_id=user.id,
        course_code=payload.course_code,
        is_online=payload.is_online_course,
        rating=payload.overall_rating,
        difficulty=payload.difficulty,
        would_take_again=payload.would_take_again == "yes",
        for_credit=_yes_no(payload.taken_for_credit),
        used_textbooks=_yes_no(payload.used_textbooks),
        attendance_mandatory=_yes_no(payload.attendance_mandatory),
        grade=payload.grade_received or None,
        tags=list(payload.selected_tags),
        review=payload.review,
    )
    try:
        db.add(rating)
        db.commit()
        db.refresh(rating)
    except IntegrityError:
        # Lost a race against a concurrent submission from the same user.
        db.rollback()
        raise ValidationFailed(DUPLICATE_RATING)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Database error creating rating: %s", exc)
        raise StorageError("Failed to create rating", details=str(exc))

    cache_invalidate(ratings_key(professor_id))
    logger.info("Rating %s submitted for professor %s", rating.id, professor_id)
    return RatingCreatedResponse(rating=RatingOut.model_validate(rating))


@router.get(
    "/professors/{professor_id}/ratings",
    response_model=ProfessorRatingsResponse,
    tags=["ratings"],
)
def professor_ratings(professor_id: str, db: Session = Depends(get_db)):
    cache_key = ratings_key(professor_id)
    cached = cache_get(cache_key)
    if cached:
        return ProfessorRatingsResponse(**cached)

    try:
        professor = db.get(Professor, professor_id)
        ratings = (
            db.query(ProfessorRating)
            .filter_by(professor_id=professor_id)
            .order_by(ProfessorRating.created_at.desc())
            .all()
        ) if professor else []
    except SQLAlchemyError as exc:
        logger.error("Error fetching ratings: %s", exc)
        raise StorageError("Failed to fetch ratings", details=str(exc))
    if professor is None:
        raise NotFound("Professor not found")

    data = ProfessorRatingsResponse(
        ratings=[RatingOut.model_validate(r) for r in ratings],
        stats=compute_rating_stats(ratings),
    )
    cache_set(cache_key, data.model_dump(mode="json"))
    return data


# ── Users ────────────────────────────────────────────────────────────────────

@router.get("/users/ratings", response_model=UserRatingsResponse, tags=["users"])
def user_ratings(user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        ratings = (
            db.query(ProfessorRating)
            .options(joinedload(ProfessorRating.professor))
            .filter_by(user_id=user.id)
            .order_by(ProfessorRating.created_at.desc())
            .all()
        )
    except SQLAlchemyError as exc:
        logger.error("Error fetching user ratings: %s", exc)
        raise StorageError("Failed to fetch user ratings", details=str(exc))
    return UserRatingsResponse(ratings=[UserRatingOut.model_validate(r) for r in ratings])
