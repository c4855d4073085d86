from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import Game, Review


def recompute_average_rating(db: Session, game_id: str) -> float:
    """Store the mean of every review rating for ``game_id`` on the game.

    Always a full recomputation, never a running average. The caller commits.
    """

    db.flush()
    average = db.query(func.avg(Review.rating)).filter(Review.game_id == game_id).scalar()
    value = float(average) if average is not None else 0.0
    db.query(Game).filter(Game.id == game_id).update(
        {Game.average_rating: value}, synchronize_session="fetch"
    )
    return value
