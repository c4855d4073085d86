from __future__ import annotations

from typing import Dict, List, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.errors import InvalidInput
from ..models import GAME_STATUSES, Game, GameList, GameStatus, Review, User
from .serializers import game_preview, load_games

MEMBER_SORTS = ("reviews", "recent")
RECENT_GAMES_PER_MEMBER = 4


def status_counts(db: Session, user_id: str) -> Dict[str, int]:
    rows = (
        db.query(GameStatus.status, func.count(GameStatus.id))
        .filter(GameStatus.user_id == user_id)
        .group_by(GameStatus.status)
        .all()
    )
    counts = {status: 0 for status in GAME_STATUSES}
    for status, count in rows:
        if status in counts:
            counts[status] = int(count)
    counts["total"] = sum(counts[status] for status in GAME_STATUSES)
    return counts


def user_stats(db: Session, user_id: str) -> Dict[str, int]:
    reviews = db.query(func.count(Review.id)).filter(Review.user_id == user_id).scalar() or 0
    lists = db.query(func.count(GameList.id)).filter(GameList.user_id == user_id).scalar() or 0
    played = (
        db.query(func.count(GameStatus.id))
        .filter(GameStatus.user_id == user_id, GameStatus.status == "played")
        .scalar()
        or 0
    )
    return {"reviews": int(reviews), "lists": int(lists), "games_played": int(played)}


def public_profile(db: Session, user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "bio": user.bio,
        "profile_picture": user.profile_picture,
        "created_at": user.created_at,
        "stats": user_stats(db, user.id),
    }


def _recent_review_games(db: Session, user_ids: List[str]) -> Dict[str, List[dict]]:
    recent: Dict[str, List[dict]] = {user_id: [] for user_id in user_ids}
    if not user_ids:
        return recent
    # newest first per user; capped in Python to stay portable across dialects
    rows = (
        db.query(Review.user_id, Review.game_id)
        .filter(Review.user_id.in_(user_ids))
        .order_by(Review.user_id, Review.created_at.desc())
        .all()
    )
    picked: Dict[str, List[str]] = {user_id: [] for user_id in user_ids}
    for user_id, game_id in rows:
        if len(picked[user_id]) < RECENT_GAMES_PER_MEMBER:
            picked[user_id].append(game_id)
    games = load_games(db, (game_id for ids in picked.values() for game_id in ids))
    for user_id, game_ids in picked.items():
        recent[user_id] = [game_preview(games[game_id]) for game_id in game_ids if game_id in games]
    return recent


def list_members(db: Session, *, page: int, limit: int, sort: str) -> Tuple[List[dict], int]:
    if sort not in MEMBER_SORTS:
        raise InvalidInput(f"Unknown sort: {sort}")

    review_counts = (
        db.query(Review.user_id.label("user_id"), func.count(Review.id).label("review_count"))
        .group_by(Review.user_id)
        .subquery()
    )
    list_counts = (
        db.query(GameList.user_id.label("user_id"), func.count(GameList.id).label("list_count"))
        .group_by(GameList.user_id)
        .subquery()
    )
    played_counts = (
        db.query(GameStatus.user_id.label("user_id"), func.count(GameStatus.id).label("played_count"))
        .filter(GameStatus.status == "played")
        .group_by(GameStatus.user_id)
        .subquery()
    )
    review_count = func.coalesce(review_counts.c.review_count, 0)
    list_count = func.coalesce(list_counts.c.list_count, 0)
    played_count = func.coalesce(played_counts.c.played_count, 0)

    query = (
        db.query(User, review_count, list_count, played_count)
        .outerjoin(review_counts, review_counts.c.user_id == User.id)
        .outerjoin(list_counts, list_counts.c.user_id == User.id)
        .outerjoin(played_counts, played_counts.c.user_id == User.id)
    )
    if sort == "recent":
        query = query.order_by(User.created_at.desc(), User.username)
    else:
        query = query.order_by(review_count.desc(), User.created_at.desc(), User.username)

    total = db.query(func.count(User.id)).scalar() or 0
    rows = query.offset((page - 1) * limit).limit(limit).all()
    recent = _recent_review_games(db, [user.id for user, *_ in rows])

    members = [
        {
            "id": user.id,
            "username": user.username,
            "bio": user.bio,
            "profile_picture": user.profile_picture,
            "created_at": user.created_at,
            "stats": {
                "reviews": int(reviews),
                "lists": int(lists),
                "games_played": int(played),
            },
            "recent_games": recent.get(user.id, []),
        }
        for user, reviews, lists, played in rows
    ]
    return members, int(total)


def site_stats(db: Session) -> Dict[str, int]:
    return {
        "games": int(db.query(func.count(Game.id)).scalar() or 0),
        "reviews": int(db.query(func.count(Review.id)).scalar() or 0),
        "lists": int(db.query(func.count(GameList.id)).scalar() or 0),
        "members": int(db.query(func.count(User.id)).scalar() or 0),
    }
