from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import Conflict, NotFound
from ..db import get_db
from ..models import Review, ReviewLike, User
from ..schemas import LikeOut, MessageOut, ReviewCreate, ReviewOut, ReviewUpdate
from ..services.game_ids import parse_game_ref
from ..services.game_resolver import GameResolver
from ..services.ratings import recompute_average_rating
from ..services.serializers import like_counts, serialize_reviews
from .deps import get_current_user, get_game_resolver

router = APIRouter()


def _own_review(db: Session, review_id: str, user: User) -> Review:
    review = (
        db.query(Review)
        .filter(Review.id == review_id, Review.user_id == user.id)
        .first()
    )
    if not review:
        raise NotFound("Review not found")
    return review


@router.post("", response_model=ReviewOut)
def create_review(
    payload: ReviewCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    resolver: GameResolver = Depends(get_game_resolver),
):
    ref = parse_game_ref(payload.game_id)
    game = resolver.resolve(db, ref)

    existing = (
        db.query(Review.id)
        .filter(Review.user_id == current_user.id, Review.game_id == game.id)
        .first()
    )
    if existing:
        raise Conflict("Already reviewed")

    review = Review(
        user_id=current_user.id,
        game_id=game.id,
        rating=payload.rating,
        text=payload.text,
    )
    db.add(review)
    try:
        db.flush()
    except IntegrityError:
        # a concurrent request won the (user, game) unique key
        db.rollback()
        raise Conflict("Already reviewed")
    recompute_average_rating(db, game.id)
    db.commit()
    db.refresh(review)
    return serialize_reviews(db, [review])[0]


@router.get("/recent", response_model=List[ReviewOut])
def recent_reviews(limit: int = Query(5, ge=1, le=50), db: Session = Depends(get_db)):
    reviews = db.query(Review).order_by(Review.created_at.desc()).limit(limit).all()
    return serialize_reviews(db, reviews)


@router.get("/my", response_model=List[ReviewOut])
def my_reviews(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    reviews = (
        db.query(Review)
        .filter(Review.user_id == current_user.id)
        .order_by(Review.created_at.desc())
        .limit(10)
        .all()
    )
    return serialize_reviews(db, reviews, expand_user=False)


@router.get("/game/{game_id}", response_model=List[ReviewOut])
def game_reviews(
    game_id: str,
    db: Session = Depends(get_db),
    resolver: GameResolver = Depends(get_game_resolver),
):
    game = resolver.find_local(db, parse_game_ref(game_id))
    if game is None:
        # never cached locally, so nobody has reviewed it
        return []
    reviews = (
        db.query(Review)
        .filter(Review.game_id == game.id)
        .order_by(Review.created_at.desc())
        .all()
    )
    return serialize_reviews(db, reviews, expand_game=False)


@router.put("/{review_id}", response_model=ReviewOut)
def update_review(
    review_id: str,
    payload: ReviewUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    review = _own_review(db, review_id, current_user)
    if payload.rating is not None:
        review.rating = payload.rating
    if payload.text is not None:
        review.text = payload.text
    recompute_average_rating(db, review.game_id)
    db.commit()
    db.refresh(review)
    return serialize_reviews(db, [review])[0]


@router.delete("/{review_id}", response_model=MessageOut)
def delete_review(
    review_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    review = _own_review(db, review_id, current_user)
    game_id = review.game_id
    db.query(ReviewLike).filter(ReviewLike.review_id == review.id).delete(synchronize_session=False)
    db.delete(review)
    recompute_average_rating(db, game_id)
    db.commit()
    return {"message": "Review deleted"}


@router.post("/{review_id}/like", response_model=LikeOut)
def like_review(
    review_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not db.get(Review, review_id):
        raise NotFound("Review not found")
    existing = (
        db.query(ReviewLike)
        .filter(ReviewLike.review_id == review_id, ReviewLike.user_id == current_user.id)
        .first()
    )
    if not existing:
        db.add(ReviewLike(review_id=review_id, user_id=current_user.id))
        try:
            db.commit()
        except IntegrityError:
            # liked concurrently by the same user
            db.rollback()
    return {"message": "Liked", "likes_count": like_counts(db, [review_id]).get(review_id, 0)}


@router.delete("/{review_id}/like", response_model=LikeOut)
def unlike_review(
    review_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not db.get(Review, review_id):
        raise NotFound("Review not found")
    db.query(ReviewLike).filter(
        ReviewLike.review_id == review_id, ReviewLike.user_id == current_user.id
    ).delete(synchronize_session=False)
    db.commit()
    return {"message": "Unliked", "likes_count": like_counts(db, [review_id]).get(review_id, 0)}
