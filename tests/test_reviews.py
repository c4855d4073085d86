from hitbox.models import Game, Review

from conftest import auth_headers, register


def _game_rating(db_session, igdb_id):
    db_session.expire_all()
    return db_session.query(Game.average_rating).filter(Game.igdb_id == igdb_id).scalar()


def test_duplicate_review_is_rejected(client, headers, db_session):
    first = client.post("/reviews", json={"gameId": 1020, "rating": 4, "text": "Great"}, headers=headers)
    second = client.post("/reviews", json={"gameId": "1020", "rating": 2}, headers=headers)

    assert first.status_code == 200
    assert second.status_code == 400
    assert second.json()["detail"] == "Already reviewed"
    assert db_session.query(Review).count() == 1


def test_average_rating_is_recomputed_from_all_reviews(client, db_session):
    users = [auth_headers(register(client, f"rater{index}")) for index in range(3)]

    client.post("/reviews", json={"gameId": 1020, "rating": 5}, headers=users[0])
    client.post("/reviews", json={"gameId": 1020, "rating": 3}, headers=users[1])
    assert _game_rating(db_session, 1020) == 4.0

    client.post("/reviews", json={"gameId": 1020, "rating": 4}, headers=users[2])
    assert _game_rating(db_session, 1020) == 4.0


def test_update_and_delete_recompute_average(client, db_session):
    alice = auth_headers(register(client, "alice"))
    bob = auth_headers(register(client, "bob"))
    review = client.post("/reviews", json={"gameId": 1942, "rating": 2}, headers=alice).json()
    client.post("/reviews", json={"gameId": 1942, "rating": 4}, headers=bob)

    updated = client.put(f"/reviews/{review['id']}", json={"rating": 5}, headers=alice)
    assert updated.status_code == 200
    assert _game_rating(db_session, 1942) == 4.5

    deleted = client.delete(f"/reviews/{review['id']}", headers=alice)
    assert deleted.status_code == 200
    assert _game_rating(db_session, 1942) == 4.0


def test_last_review_removed_resets_average(client, headers, db_session):
    review = client.post("/reviews", json={"gameId": 1942, "rating": 3}, headers=headers).json()

    client.delete(f"/reviews/{review['id']}", headers=headers)

    assert _game_rating(db_session, 1942) == 0.0


def test_rating_out_of_range_is_rejected(client, headers):
    assert client.post("/reviews", json={"gameId": 1020, "rating": 6}, headers=headers).status_code == 400
    assert client.post("/reviews", json={"gameId": 1020, "rating": 0}, headers=headers).status_code == 400


def test_only_the_author_can_edit(client, headers):
    review = client.post("/reviews", json={"gameId": 1020, "rating": 4}, headers=headers).json()
    intruder = auth_headers(register(client, "intruder"))

    assert client.put(f"/reviews/{review['id']}", json={"rating": 1}, headers=intruder).status_code == 404
    assert client.delete(f"/reviews/{review['id']}", headers=intruder).status_code == 404


def test_review_requires_token(client):
    response = client.post("/reviews", json={"gameId": 1020, "rating": 4})

    assert response.status_code == 401
    assert response.json()["detail"] == "No token, authorization denied"


def test_likes_are_idempotent(client, headers):
    review = client.post("/reviews", json={"gameId": 1020, "rating": 4}, headers=headers).json()
    fan = auth_headers(register(client, "fan"))

    client.post(f"/reviews/{review['id']}/like", headers=fan)
    liked = client.post(f"/reviews/{review['id']}/like", headers=fan)
    assert liked.json()["likes_count"] == 1

    unliked = client.delete(f"/reviews/{review['id']}/like", headers=fan)
    assert unliked.json()["likes_count"] == 0


def test_review_listings(client, headers):
    client.post("/reviews", json={"gameId": 1020, "rating": 4}, headers=headers)
    client.post("/reviews", json={"gameId": 1942, "rating": 5}, headers=headers)

    recent = client.get("/reviews/recent").json()
    mine = client.get("/reviews/my", headers=headers).json()
    for_game = client.get("/reviews/game/1020").json()

    assert len(recent) == 2
    assert recent[0]["user"]["username"] == "player1"
    assert len(mine) == 2
    assert [review["rating"] for review in for_game] == [4]


def test_reviews_for_uncached_game_are_empty(client, igdb_session):
    response = client.get("/reviews/game/7346")

    assert response.status_code == 200
    assert response.json() == []
    assert igdb_session.query_posts == 0
