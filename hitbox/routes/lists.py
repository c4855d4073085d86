from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import Conflict, InvalidInput, NotAuthorized, NotFound
from ..db import get_db
from ..models import Comment, GameList, ListEntry, User, utcnow
from ..schemas import (
    DiscoverPage,
    ListAddGame,
    ListCreate,
    ListDetailOut,
    ListOut,
    ListUpdate,
    MessageOut,
)
from ..services.game_ids import parse_game_ref
from ..services.game_resolver import GameResolver
from ..services.serializers import (
    pagination,
    serialize_list,
    serialize_list_details,
    serialize_list_previews,
)
from .deps import get_current_user, get_game_resolver

router = APIRouter()
_DISCOVER_SORTS = ("popular", "recent")
_DISCOVER_PREVIEW_SIZE = 5
_DUPLICATE_NAME = "You already have a list with that name"


def _get_list(db: Session, list_id: str) -> GameList:
    game_list = db.get(GameList, list_id)
    if not game_list:
        raise NotFound("List not found")
    return game_list


def _owned_list(db: Session, list_id: str, user: User) -> GameList:
    game_list = _get_list(db, list_id)
    if game_list.user_id != user.id:
        raise NotAuthorized("Not authorized")
    return game_list


def _name_taken(db: Session, user_id: str, name: str, exclude_id: str = None) -> bool:
    query = db.query(GameList.id).filter(GameList.user_id == user_id, GameList.name == name)
    if exclude_id:
        query = query.filter(GameList.id != exclude_id)
    return query.first() is not None


@router.get("/discover", response_model=DiscoverPage)
def discover_lists(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort: str = Query("popular"),
    db: Session = Depends(get_db),
):
    if sort not in _DISCOVER_SORTS:
        raise InvalidInput(f"Unknown sort: {sort}")

    query = db.query(GameList)
    if sort == "popular":
        sizes = (
            db.query(ListEntry.list_id.label("list_id"), func.count(ListEntry.id).label("size"))
            .group_by(ListEntry.list_id)
            .subquery()
        )
        query = query.outerjoin(sizes, sizes.c.list_id == GameList.id).order_by(
            func.coalesce(sizes.c.size, 0).desc(), GameList.created_at.desc()
        )
    else:
        query = query.order_by(GameList.created_at.desc())

    total = db.query(func.count(GameList.id)).scalar() or 0
    lists = query.offset((page - 1) * limit).limit(limit).all()
    return {
        "lists": serialize_list_previews(
            db,
            lists,
            preview_size=_DISCOVER_PREVIEW_SIZE,
            with_comments=True,
            expand_user=True,
        ),
        "pagination": pagination(page, limit, int(total)),
    }


@router.get("", response_model=List[ListDetailOut])
def my_lists(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    lists = (
        db.query(GameList)
        .filter(GameList.user_id == current_user.id)
        .order_by(GameList.created_at.desc())
        .all()
    )
    return serialize_list_details(db, lists, expand_user=False)


@router.post("", response_model=ListOut)
def create_list(
    payload: ListCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if _name_taken(db, current_user.id, payload.name):
        raise Conflict(_DUPLICATE_NAME)
    game_list = GameList(
        user_id=current_user.id,
        name=payload.name,
        description=payload.description,
        is_custom=True,
    )
    db.add(game_list)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict(_DUPLICATE_NAME)
    db.refresh(game_list)
    return serialize_list(db, game_list)


@router.post("/{list_id}/add", response_model=ListDetailOut)
def add_game_to_list(
    list_id: str,
    payload: ListAddGame,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    resolver: GameResolver = Depends(get_game_resolver),
):
    ref = parse_game_ref(payload.game_id)
    game_list = _owned_list(db, list_id, current_user)
    game = resolver.resolve(db, ref)

    already = (
        db.query(ListEntry.id)
        .filter(ListEntry.list_id == game_list.id, ListEntry.game_id == game.id)
        .first()
    )
    if already:
        raise Conflict("Game already in list")

    last_position = (
        db.query(func.max(ListEntry.position)).filter(ListEntry.list_id == game_list.id).scalar()
    )
    db.add(
        ListEntry(
            list_id=game_list.id,
            game_id=game.id,
            position=(last_position or 0) + 1,
        )
    )
    game_list.updated_at = utcnow()
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Game already in list")
    db.refresh(game_list)
    return serialize_list_details(db, [game_list])[0]


@router.get("/{list_id}", response_model=ListDetailOut)
def get_list(list_id: str, db: Session = Depends(get_db)):
    return serialize_list_details(db, [_get_list(db, list_id)])[0]


@router.put("/{list_id}", response_model=ListOut)
def update_list(
    list_id: str,
    payload: ListUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    game_list = _owned_list(db, list_id, current_user)
    name = (payload.name or "").strip()
    if name and name != game_list.name:
        if _name_taken(db, current_user.id, name, exclude_id=game_list.id):
            raise Conflict(_DUPLICATE_NAME)
        game_list.name = name
    if payload.description is not None:
        game_list.description = payload.description
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict(_DUPLICATE_NAME)
    db.refresh(game_list)
    return serialize_list(db, game_list)


@router.delete("/{list_id}", response_model=MessageOut)
def delete_list(
    list_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    game_list = _owned_list(db, list_id, current_user)
    db.query(ListEntry).filter(ListEntry.list_id == game_list.id).delete(synchronize_session=False)
    db.query(Comment).filter(Comment.list_id == game_list.id).delete(synchronize_session=False)
    db.delete(game_list)
    db.commit()
    return {"message": "List removed"}


@router.delete("/{list_id}/game/{game_id}", response_model=ListDetailOut)
def remove_game_from_list(
    list_id: str,
    game_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    resolver: GameResolver = Depends(get_game_resolver),
):
    game_list = _owned_list(db, list_id, current_user)
    game = resolver.find_local(db, parse_game_ref(game_id))
    removed = 0
    if game is not None:
        removed = (
            db.query(ListEntry)
            .filter(ListEntry.list_id == game_list.id, ListEntry.game_id == game.id)
            .delete(synchronize_session=False)
        )
    if not removed:
        raise NotFound("Game not found in list")
    game_list.updated_at = utcnow()
    db.commit()
    db.refresh(game_list)
    return serialize_list_details(db, [game_list])[0]
