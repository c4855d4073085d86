from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from anyio import from_thread
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import InvalidInput, NotFound
from ..models import Game
from .game_ids import IGDB_PROVIDER, ExternalGameId, GameRef, LocalGameId
from .igdb import IGDBClient
from .mappers import map_igdb_game

logger = logging.getLogger(__name__)


class GameResolver:
    """Turns a parsed game reference into a persisted local ``Game``.

    Review creation, status updates and list additions all go through
    :meth:`resolve`, so a catalog game is cached exactly once no matter
    which of them references it first.

    ``resolve`` runs inside a worker thread (sync route handlers); catalog
    calls hop back onto the event loop so the shared token refresh stays
    single-flight.
    """

    def __init__(self, catalogs: Dict[str, IGDBClient]) -> None:
        self._catalogs = catalogs

    def _catalog_for(self, provider: str) -> IGDBClient:
        catalog = self._catalogs.get(provider)
        if catalog is None:
            raise InvalidInput(f"Unsupported game provider: {provider}")
        return catalog

    def find_local(self, db: Session, ref: GameRef) -> Optional[Game]:
        if isinstance(ref, LocalGameId):
            return db.get(Game, ref.value)
        if ref.provider != IGDB_PROVIDER:
            return None
        return db.query(Game).filter(Game.igdb_id == ref.external_id).first()

    def resolve(self, db: Session, ref: GameRef) -> Game:
        game = self.find_local(db, ref)
        if game is not None:
            return game
        if isinstance(ref, LocalGameId):
            raise NotFound("Game not found")
        return self._import_external(db, ref)

    def _fetch_external(self, ref: ExternalGameId) -> Optional[Dict[str, Any]]:
        catalog = self._catalog_for(ref.provider)
        return from_thread.run(catalog.fetch_game, ref.external_id)

    def _import_external(self, db: Session, ref: ExternalGameId) -> Game:
        payload = self._fetch_external(ref)
        if not payload:
            raise NotFound("Game not found")

        game = Game(**map_igdb_game(payload), average_rating=0.0)
        db.add(game)
        try:
            db.commit()
        except IntegrityError:
            # another request cached the same catalog game first
            db.rollback()
            existing = self.find_local(db, ref)
            if existing is None:
                raise
            return existing
        db.refresh(game)
        logger.info("Cached %s as local game %s (%s)", ref, game.id, game.title)
        return game
