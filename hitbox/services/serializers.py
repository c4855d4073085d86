"""Explicit expansion of id references into response payloads.

Nothing here relies on ORM relationships: every read path loads the related
rows it needs with one ``IN`` query per table.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import Comment, Game, GameList, ListEntry, Review, ReviewLike, User


def user_summary(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {"id": user.id, "username": user.username, "profile_picture": user.profile_picture}


def game_summary(game: Optional[Game]) -> Optional[dict]:
    if game is None:
        return None
    return {
        "id": game.id,
        "igdb_id": game.igdb_id,
        "title": game.title,
        "slug": game.slug,
        "cover_image": game.cover_image,
        "release_date": game.release_date,
    }


def game_payload(game: Game) -> dict:
    return {
        "id": game.id,
        "igdb_id": game.igdb_id,
        "title": game.title,
        "slug": game.slug,
        "description": game.description,
        "cover_image": game.cover_image,
        "release_date": game.release_date,
        "genres": list(game.genres or []),
        "platforms": list(game.platforms or []),
        "developer": game.developer,
        "publisher": game.publisher,
        "average_rating": float(game.average_rating or 0.0),
        "is_remote": False,
    }


def game_preview(game: Game) -> dict:
    return {"title": game.title, "cover_image": game.cover_image}


def load_users(db: Session, user_ids: Iterable[str]) -> Dict[str, User]:
    ids = {user_id for user_id in user_ids if user_id}
    if not ids:
        return {}
    return {user.id: user for user in db.query(User).filter(User.id.in_(ids)).all()}


def load_games(db: Session, game_ids: Iterable[str]) -> Dict[str, Game]:
    ids = {game_id for game_id in game_ids if game_id}
    if not ids:
        return {}
    return {game.id: game for game in db.query(Game).filter(Game.id.in_(ids)).all()}


def like_counts(db: Session, review_ids: Iterable[str]) -> Dict[str, int]:
    ids = list(set(review_ids))
    if not ids:
        return {}
    rows = (
        db.query(ReviewLike.review_id, func.count(ReviewLike.id))
        .filter(ReviewLike.review_id.in_(ids))
        .group_by(ReviewLike.review_id)
        .all()
    )
    return {review_id: int(count) for review_id, count in rows}


def serialize_reviews(
    db: Session,
    reviews: List[Review],
    *,
    expand_user: bool = True,
    expand_game: bool = True,
) -> List[dict]:
    users = load_users(db, (r.user_id for r in reviews)) if expand_user else {}
    games = load_games(db, (r.game_id for r in reviews)) if expand_game else {}
    likes = like_counts(db, (r.id for r in reviews))
    return [
        {
            "id": review.id,
            "user_id": review.user_id,
            "game_id": review.game_id,
            "rating": review.rating,
            "text": review.text,
            "likes_count": likes.get(review.id, 0),
            "created_at": review.created_at,
            "updated_at": review.updated_at,
            "user": user_summary(users.get(review.user_id)) if expand_user else None,
            "game": game_summary(games.get(review.game_id)) if expand_game else None,
        }
        for review in reviews
    ]


def list_game_ids(db: Session, list_ids: Iterable[str]) -> Dict[str, List[str]]:
    ids = list(set(list_ids))
    ordered: Dict[str, List[str]] = {list_id: [] for list_id in ids}
    if not ids:
        return ordered
    rows = (
        db.query(ListEntry.list_id, ListEntry.game_id)
        .filter(ListEntry.list_id.in_(ids))
        .order_by(ListEntry.list_id, ListEntry.position, ListEntry.created_at)
        .all()
    )
    for list_id, game_id in rows:
        ordered[list_id].append(game_id)
    return ordered


def comment_counts(db: Session, list_ids: Iterable[str]) -> Dict[str, int]:
    ids = list(set(list_ids))
    if not ids:
        return {}
    rows = (
        db.query(Comment.list_id, func.count(Comment.id))
        .filter(Comment.list_id.in_(ids))
        .group_by(Comment.list_id)
        .all()
    )
    return {list_id: int(count) for list_id, count in rows}


def _list_base(game_list: GameList, game_ids: List[str]) -> dict:
    return {
        "id": game_list.id,
        "user_id": game_list.user_id,
        "name": game_list.name,
        "description": game_list.description,
        "is_custom": bool(game_list.is_custom),
        "game_ids": game_ids,
        "created_at": game_list.created_at,
        "updated_at": game_list.updated_at,
    }


def serialize_list(db: Session, game_list: GameList) -> dict:
    return _list_base(game_list, list_game_ids(db, [game_list.id])[game_list.id])


def serialize_list_details(db: Session, lists: List[GameList], *, expand_user: bool = True) -> List[dict]:
    entries = list_game_ids(db, (item.id for item in lists))
    games = load_games(db, (game_id for ids in entries.values() for game_id in ids))
    users = load_users(db, (item.user_id for item in lists)) if expand_user else {}
    details = []
    for item in lists:
        game_ids = entries.get(item.id, [])
        payload = _list_base(item, game_ids)
        payload["user"] = user_summary(users.get(item.user_id)) if expand_user else None
        payload["games"] = [game_payload(games[game_id]) for game_id in game_ids if game_id in games]
        details.append(payload)
    return details


def serialize_list_previews(
    db: Session,
    lists: List[GameList],
    *,
    preview_size: int,
    with_comments: bool = False,
    expand_user: bool = False,
) -> List[dict]:
    entries = list_game_ids(db, (item.id for item in lists))
    preview_ids = [game_id for ids in entries.values() for game_id in ids[:preview_size]]
    games = load_games(db, preview_ids)
    comments = comment_counts(db, (item.id for item in lists)) if with_comments else {}
    users = load_users(db, (item.user_id for item in lists)) if expand_user else {}
    previews = []
    for item in lists:
        game_ids = entries.get(item.id, [])
        previews.append(
            {
                "id": item.id,
                "name": item.name,
                "description": item.description,
                "game_count": len(game_ids),
                "comment_count": comments.get(item.id, 0) if with_comments else None,
                "preview_games": [
                    game_preview(games[game_id])
                    for game_id in game_ids[:preview_size]
                    if game_id in games
                ],
                "user": user_summary(users.get(item.user_id)) if expand_user else None,
                "created_at": item.created_at,
            }
        )
    return previews


def serialize_comments(db: Session, comments: List[Comment]) -> List[dict]:
    users = load_users(db, (c.user_id for c in comments))
    return [
        {
            "id": comment.id,
            "list_id": comment.list_id,
            "user_id": comment.user_id,
            "text": comment.text,
            "created_at": comment.created_at,
            "user": user_summary(users.get(comment.user_id)),
        }
        for comment in comments
    ]


def pagination(page: int, limit: int, count: int) -> dict:
    pages = (count + limit - 1) // limit if limit > 0 else 0
    return {"current": page, "total": pages, "count": count}
