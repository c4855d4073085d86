import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import Conflict, InvalidInput
from ..core.security import create_access_token, hash_password, verify_password
from ..db import get_db
from ..models import User
from ..schemas import LoginIn, MeOut, MessageOut, ProfileUpdate, RegisterIn, TokenOut, UserOut
from ..services.profiles import user_stats
from .deps import get_current_user

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/register", response_model=TokenOut)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    email = payload.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise Conflict("User already exists")
    if db.query(User).filter(User.username == payload.username).first():
        raise Conflict("Username is already taken")

    user = User(
        username=payload.username,
        email=email,
        password_hash=hash_password(payload.password),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("User already exists")
    db.refresh(user)
    logger.info("Registered user %s", user.username)
    return {"token": create_access_token(user.id)}


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == payload.email.lower()).first()
    if not user or not verify_password(payload.password, user.password_hash):
        raise InvalidInput("Invalid credentials")
    return {"token": create_access_token(user.id)}


@router.post("/logout", response_model=MessageOut)
def logout():
    # tokens are stateless; the client drops its copy
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=MeOut)
def get_me(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    payload = UserOut.model_validate(current_user).model_dump()
    payload["stats"] = user_stats(db, current_user.id)
    return payload


@router.put("/me", response_model=UserOut)
def update_me(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if payload.username:
        username = payload.username.strip()
        taken = db.query(User).filter(User.username == username).first()
        if taken and taken.id != current_user.id:
            raise Conflict("Username is already taken")
        current_user.username = username
    if payload.email:
        email = payload.email.lower()
        taken = db.query(User).filter(User.email == email).first()
        if taken and taken.id != current_user.id:
            raise Conflict("Email is already taken")
        current_user.email = email
    if payload.bio is not None:
        current_user.bio = payload.bio
    if payload.profile_picture is not None:
        current_user.profile_picture = payload.profile_picture
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Username or email is already taken")
    db.refresh(current_user)
    return current_user
