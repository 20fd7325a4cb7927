"""Student forum – short-lived chat messages.

Messages older than the retention window are hidden from reads. Expired
rows can be removed with:
    python -m ratemyeagle.forum
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ratemyeagle.auth import AuthUser, get_current_user, get_forum_reader
from ratemyeagle.config import get_settings
from ratemyeagle.database import db_session, get_db
from ratemyeagle.errors import StorageError
from ratemyeagle.models import ForumMessage, utcnow
from ratemyeagle.schemas import (
    ForumMessageCreate,
    ForumMessageCreatedResponse,
    ForumMessageOut,
    ForumMessagesResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/forum", tags=["forum"])

MAX_MESSAGES = 200


def retention_cutoff(now: Optional[datetime] = None) -> datetime:
    settings = get_settings()
    return (now or utcnow()) - timedelta(minutes=settings.forum_retention_minutes)


@router.get("/messages", response_model=ForumMessagesResponse)
def list_messages(
    reader: Optional[AuthUser] = Depends(get_forum_reader),
    db: Session = Depends(get_db),
):
    try:
        # newest MAX_MESSAGES within the window, returned oldest first
        rows = (
            db.query(ForumMessage)
            .filter(ForumMessage.created_at >= retention_cutoff())
            .order_by(ForumMessage.created_at.desc())
            .limit(MAX_MESSAGES)
            .all()
        )
    except SQLAlchemyError as exc:
        logger.error("Error fetching forum messages: %s", exc)
        raise StorageError("Failed to fetch messages", details=str(exc))
    return ForumMessagesResponse(messages=[ForumMessageOut.model_validate(m) for m in reversed(rows)])


@router.post("/messages", response_model=ForumMessageCreatedResponse)
def post_message(
    payload: ForumMessageCreate,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    message = ForumMessage(user_id=user.id, username=user.display_name, content=payload.content)
    try:
        db.add(message)
        db.commit()
        db.refresh(message)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Database error posting forum message: %s", exc)
        raise StorageError("Failed to send message", details=str(exc))
    logger.info("Forum message %s posted by %s", message.id, user.id)
    return ForumMessageCreatedResponse(message=ForumMessageOut.model_validate(message))


def purge_expired_messages(session: Session, now: Optional[datetime] = None) -> int:
    """Delete messages past the retention window; returns the number removed."""
    removed = (
        session.query(ForumMessage)
        .filter(ForumMessage.created_at < retention_cutoff(now))
        .delete(synchronize_session=False)
    )
    logger.info("Purged %d expired forum messages", removed)
    return removed


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    with db_session() as session:
        purge_expired_messages(session)
