import asyncio
import time

import httpx
import pytest
from sqlalchemy import event
from sqlalchemy.orm import Session

from hitbox.main import app
from hitbox.models import Game, GameStatus
from hitbox.services.igdb import get_igdb_client
from hitbox.services.mappers import map_igdb_game

from conftest import auth_headers, igdb_row, register


def test_status_for_fresh_catalog_game_creates_local_record(client, headers, db_session):
    response = client.post("/game-status", json={"gameId": 1020, "status": "playing"}, headers=headers)

    assert response.status_code == 200, response.text
    body = response.json()
    game = db_session.query(Game).filter(Game.igdb_id == 1020).one()
    assert body == {"status": "playing", "game": game.id}
    assert game.title == "Grand Theft Auto V"
    assert game.cover_image.startswith("https://")
    entry = db_session.query(GameStatus).one()
    assert (entry.game_id, entry.status) == (game.id, "playing")


def test_every_entry_point_resolves_to_the_same_game(client, headers, igdb_session, db_session):
    status = client.post("/game-status", json={"gameId": "1942", "status": "played"}, headers=headers)
    review = client.post("/reviews", json={"gameId": 1942, "rating": 4}, headers=headers)
    created = client.post("/lists", json={"name": "Favourites"}, headers=headers)
    added = client.post(f"/lists/{created.json()['id']}/add", json={"gameId": "igdb:1942"}, headers=headers)

    assert status.status_code == 200, status.text
    assert review.status_code == 200, review.text
    assert added.status_code == 200, added.text

    games = db_session.query(Game).filter(Game.igdb_id == 1942).all()
    assert len(games) == 1
    local_id = games[0].id
    assert status.json()["game"] == local_id
    assert review.json()["game_id"] == local_id
    assert added.json()["game_ids"] == [local_id]
    # only the first reference reached the catalog
    assert igdb_session.query_posts == 1


def test_local_id_is_accepted_after_caching(client, headers, db_session):
    client.post("/game-status", json={"gameId": 7346, "status": "want_to_play"}, headers=headers)
    local_id = db_session.query(Game.id).filter(Game.igdb_id == 7346).scalar()

    response = client.post("/reviews", json={"gameId": local_id, "rating": 5}, headers=headers)

    assert response.status_code == 200
    assert response.json()["game"]["igdb_id"] == 7346


def test_unknown_local_id_is_not_found(client, headers):
    response = client.post(
        "/game-status",
        json={"gameId": "0b6f1f7e-3a52-4c1e-9a59-2f5d3c6f1a10", "status": "played"},
        headers=headers,
    )

    assert response.status_code == 404


def test_catalog_miss_is_not_found(client, headers, db_session):
    response = client.post("/reviews", json={"gameId": 99999, "rating": 3}, headers=headers)

    assert response.status_code == 404
    assert db_session.query(Game).count() == 0


def test_catalog_outage_is_a_generic_server_error(client, headers, igdb_session):
    igdb_session.token_failures = 10

    response = client.post("/game-status", json={"gameId": 1020, "status": "played"}, headers=headers)

    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to fetch game details"}


def test_game_detail_is_remote_until_referenced(client, headers, db_session):
    remote = client.get("/games/1020")

    assert remote.status_code == 200
    assert remote.json()["is_remote"] is True
    assert remote.json()["local_id"] is None
    assert db_session.query(Game).count() == 0

    client.post("/reviews", json={"gameId": 1020, "rating": 5}, headers=headers)
    local = client.get("/games/1020")

    assert local.json()["is_remote"] is False
    assert local.json()["average_rating"] == 5.0
    assert client.get(f"/games/{local.json()['id']}").json()["igdb_id"] == 1020


def test_browse_overlays_local_ratings(client, headers):
    client.post("/reviews", json={"gameId": 1942, "rating": 3}, headers=headers)

    response = client.get("/games", params={"genre": "rpg", "ordering": "-rating"})

    assert response.status_code == 200
    by_id = {game["id"]: game for game in response.json()}
    assert by_id["1942"]["average_rating"] == 3.0
    assert by_id["1942"]["local_id"] is not None
    assert by_id["1020"]["average_rating"] == 0.0


def test_browse_rejects_unknown_genre(client):
    assert client.get("/games", params={"genre": "cooking"}).status_code == 400


def test_create_local_game(client):
    response = client.post("/games", json={"title": "Homebrew", "igdbId": 555, "releaseDate": "2021-05-01"})

    assert response.status_code == 200
    assert response.json()["is_remote"] is False
    assert client.post("/games", json={"title": "Homebrew", "igdbId": 555}).status_code == 400


def test_second_user_reuses_cached_game(client, headers, igdb_session):
    other = auth_headers(register(client, "player2"))

    client.post("/game-status", json={"gameId": 1020, "status": "played"}, headers=headers)
    client.post("/game-status", json={"gameId": 1020, "status": "playing"}, headers=other)

    assert igdb_session.query_posts == 1


@pytest.mark.parametrize(
    "method, path",
    [
        ("GET", "/reviews/game/" + "9" * 25),
        ("DELETE", "/game-status/" + str(2**63)),
        ("GET", "/games/" + "9" * 25),
    ],
)
def test_oversized_catalog_id_is_invalid(client, headers, method, path):
    response = client.request(method, path, headers=headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid game ID"


def test_oversized_catalog_id_in_body_is_invalid(client, headers, igdb_session):
    response = client.post("/game-status", json={"gameId": 10**25, "status": "played"}, headers=headers)

    assert response.status_code == 400
    assert igdb_session.query_posts == 0


class RacingCatalog:
    """Catalog whose lookup lets another writer cache the game first."""

    def __init__(self, engine, row):
        self.engine = engine
        self.row = row
        self.fetches = 0

    async def fetch_game(self, igdb_id):
        self.fetches += 1
        other = Session(bind=self.engine)
        try:
            other.add(Game(**map_igdb_game(self.row), average_rating=0.0))
            other.commit()
        finally:
            other.close()
        return self.row


def test_losing_the_cache_race_reuses_the_winner(client, headers, engine, db_session):
    catalog = RacingCatalog(engine, igdb_row(1020, "Grand Theft Auto V"))
    app.dependency_overrides[get_igdb_client] = lambda: catalog

    response = client.post("/game-status", json={"gameId": 1020, "status": "playing"}, headers=headers)

    assert response.status_code == 200, response.text
    games = db_session.query(Game).filter(Game.igdb_id == 1020).all()
    assert len(games) == 1
    assert response.json() == {"status": "playing", "game": games[0].id}
    assert catalog.fetches == 1


def test_resolving_a_game_does_not_stall_other_requests(client, token, engine):
    def slow_execute(*_args):
        time.sleep(0.05)

    event.listen(engine, "before_cursor_execute", slow_execute)

    async def run():
        gaps = []
        done = asyncio.Event()

        async def ticker():
            last = time.perf_counter()
            while not done.is_set():
                await asyncio.sleep(0.005)
                now = time.perf_counter()
                gaps.append(now - last)
                last = now

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://hitbox.test") as http:
            ticking = asyncio.ensure_future(ticker())
            response = await http.post(
                "/game-status",
                json={"gameId": 1020, "status": "playing"},
                headers=auth_headers(token),
            )
            done.set()
            await ticking
        return response, max(gaps)

    try:
        response, longest_gap = asyncio.run(run())
    finally:
        event.remove(engine, "before_cursor_execute", slow_execute)

    assert response.status_code == 200, response.text
    # every query sleeps 50ms; none of that may land on the event loop
    assert longest_gap < 0.1
