from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from ..core.errors import NotAuthorized
from ..core.security import decode_access_token
from ..db import get_db
from ..models import User
from ..services.game_ids import IGDB_PROVIDER
from ..services.game_resolver import GameResolver
from ..services.igdb import IGDBClient, get_igdb_client


def _extract_token(x_auth_token: Optional[str], authorization: Optional[str]) -> Optional[str]:
    if x_auth_token and x_auth_token.strip():
        return x_auth_token.strip()
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return None


def get_current_user_optional(
    x_auth_token: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> Optional[User]:
    token = _extract_token(x_auth_token, authorization)
    if not token:
        return None
    user_id = decode_access_token(token)
    if not user_id:
        return None
    return db.get(User, user_id)


def get_current_user(
    x_auth_token: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> User:
    token = _extract_token(x_auth_token, authorization)
    if not token:
        raise NotAuthorized("No token, authorization denied")
    user_id = decode_access_token(token)
    if not user_id:
        raise NotAuthorized("Token is not valid")
    user = db.get(User, user_id)
    if not user:
        raise NotAuthorized("Token is not valid")
    return user


def get_game_resolver(client: IGDBClient = Depends(get_igdb_client)) -> GameResolver:
    return GameResolver({IGDB_PROVIDER: client})
