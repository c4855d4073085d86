from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.errors import NotFound
from ..db import get_db
from ..models import GameList, Review, User
from ..schemas import ListPreviewOut, MemberPage, ReviewPage, UserPublicOut
from ..services.profiles import list_members, public_profile
from ..services.serializers import pagination, serialize_list_previews, serialize_reviews

router = APIRouter()
PROFILE_PREVIEW_SIZE = 4


def _user_by_name(db: Session, username: str) -> User:
    user = db.query(User).filter(User.username == username).first()
    if not user:
        raise NotFound("User not found")
    return user


@router.get("", response_model=MemberPage)
def members(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort: str = Query("reviews"),
    db: Session = Depends(get_db),
):
    rows, total = list_members(db, page=page, limit=limit, sort=sort)
    return {"members": rows, "pagination": pagination(page, limit, total)}


@router.get("/{username}", response_model=UserPublicOut)
def profile(username: str, db: Session = Depends(get_db)):
    return public_profile(db, _user_by_name(db, username))


@router.get("/{username}/reviews", response_model=ReviewPage)
def user_reviews(
    username: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    user = _user_by_name(db, username)
    total = db.query(func.count(Review.id)).filter(Review.user_id == user.id).scalar() or 0
    reviews = (
        db.query(Review)
        .filter(Review.user_id == user.id)
        .order_by(Review.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "reviews": serialize_reviews(db, reviews, expand_user=False),
        "pagination": pagination(page, limit, int(total)),
    }


@router.get("/{username}/lists", response_model=List[ListPreviewOut])
def user_lists(username: str, db: Session = Depends(get_db)):
    user = _user_by_name(db, username)
    lists = (
        db.query(GameList)
        .filter(GameList.user_id == user.id)
        .order_by(GameList.created_at.desc())
        .all()
    )
    return serialize_list_previews(db, lists, preview_size=PROFILE_PREVIEW_SIZE)
