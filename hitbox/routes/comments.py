from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.errors import Forbidden, InvalidInput, NotFound
from ..db import get_db
from ..models import COMMENT_MAX_LENGTH, Comment, GameList, User
from ..schemas import CommentIn, CommentOut, MessageOut
from ..services.serializers import serialize_comments
from .deps import get_current_user

router = APIRouter()


def _require_list(db: Session, list_id: str) -> GameList:
    game_list = db.get(GameList, list_id)
    if not game_list:
        raise NotFound("List not found")
    return game_list


@router.get("/list/{list_id}", response_model=List[CommentOut])
def list_comments(list_id: str, db: Session = Depends(get_db)):
    _require_list(db, list_id)
    comments = (
        db.query(Comment)
        .filter(Comment.list_id == list_id)
        .order_by(Comment.created_at.desc())
        .all()
    )
    return serialize_comments(db, comments)


@router.post("/list/{list_id}", response_model=CommentOut, status_code=201)
def add_comment(
    list_id: str,
    payload: CommentIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    text = payload.text or ""
    if not text.strip():
        raise InvalidInput("Comment text is required")
    if len(text) > COMMENT_MAX_LENGTH:
        raise InvalidInput(f"Comment must be under {COMMENT_MAX_LENGTH} characters")
    _require_list(db, list_id)

    comment = Comment(list_id=list_id, user_id=current_user.id, text=text.strip())
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return serialize_comments(db, [comment])[0]


@router.delete("/{comment_id}", response_model=MessageOut)
def delete_comment(
    comment_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    comment = db.get(Comment, comment_id)
    if not comment:
        raise NotFound("Comment not found")
    if comment.user_id != current_user.id:
        raise Forbidden("Not authorized to delete this comment")
    db.delete(comment)
    db.commit()
    return {"message": "Comment deleted"}
