from hitbox.models import Comment, ListEntry

from conftest import auth_headers, register


def _create_list(client, headers, name="Favourites", **extra):
    response = client.post("/lists", json={"name": name, **extra}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def test_create_list_and_reject_duplicate_name(client, headers):
    created = _create_list(client, headers, description="All time")
    duplicate = client.post("/lists", json={"name": "Favourites"}, headers=headers)

    assert created["is_custom"] is True
    assert created["game_ids"] == []
    assert duplicate.status_code == 400


def test_other_users_may_reuse_a_list_name(client, headers):
    _create_list(client, headers)
    other = auth_headers(register(client, "player2"))

    assert client.post("/lists", json={"name": "Favourites"}, headers=other).status_code == 200


def test_blank_list_name_is_rejected(client, headers):
    assert client.post("/lists", json={"name": "   "}, headers=headers).status_code == 400


def test_games_keep_insertion_order_and_no_duplicates(client, headers):
    game_list = _create_list(client, headers)

    client.post(f"/lists/{game_list['id']}/add", json={"gameId": 1942}, headers=headers)
    added = client.post(f"/lists/{game_list['id']}/add", json={"gameId": 1020}, headers=headers)
    duplicate = client.post(f"/lists/{game_list['id']}/add", json={"gameId": "1942"}, headers=headers)

    assert [game["igdb_id"] for game in added.json()["games"]] == [1942, 1020]
    assert duplicate.status_code == 400
    assert duplicate.json()["detail"] == "Game already in list"


def test_remove_game_from_list(client, headers):
    game_list = _create_list(client, headers)
    client.post(f"/lists/{game_list['id']}/add", json={"gameId": 1942}, headers=headers)

    removed = client.delete(f"/lists/{game_list['id']}/game/1942", headers=headers)
    missing = client.delete(f"/lists/{game_list['id']}/game/1942", headers=headers)

    assert removed.status_code == 200
    assert removed.json()["games"] == []
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Game not found in list"


def test_non_owner_cannot_modify(client, headers):
    game_list = _create_list(client, headers)
    other = auth_headers(register(client, "player2"))

    add = client.post(f"/lists/{game_list['id']}/add", json={"gameId": 1020}, headers=other)
    rename = client.put(f"/lists/{game_list['id']}", json={"name": "Mine now"}, headers=other)
    delete = client.delete(f"/lists/{game_list['id']}", headers=other)

    assert add.status_code == rename.status_code == delete.status_code == 401
    assert add.json()["detail"] == "Not authorized"


def test_rename_and_public_detail(client, headers):
    game_list = _create_list(client, headers)
    _create_list(client, headers, name="Backlog")

    clash = client.put(f"/lists/{game_list['id']}", json={"name": "Backlog"}, headers=headers)
    renamed = client.put(f"/lists/{game_list['id']}", json={"name": "Top picks"}, headers=headers)
    detail = client.get(f"/lists/{game_list['id']}")

    assert clash.status_code == 400
    assert renamed.json()["name"] == "Top picks"
    assert detail.status_code == 200
    assert detail.json()["user"]["username"] == "player1"
    assert client.get("/lists/0b6f1f7e-3a52-4c1e-9a59-2f5d3c6f1a10").status_code == 404


def test_delete_list_removes_entries_and_comments(client, headers, db_session):
    game_list = _create_list(client, headers)
    client.post(f"/lists/{game_list['id']}/add", json={"gameId": 1020}, headers=headers)
    client.post(f"/comments/list/{game_list['id']}", json={"text": "Nice"}, headers=headers)

    response = client.delete(f"/lists/{game_list['id']}", headers=headers)

    assert response.status_code == 200
    assert db_session.query(ListEntry).count() == 0
    assert db_session.query(Comment).count() == 0


def test_my_lists_and_discover(client, headers):
    small = _create_list(client, headers, name="Small")
    big = _create_list(client, headers, name="Big")
    client.post(f"/lists/{small['id']}/add", json={"gameId": 1020}, headers=headers)
    for igdb_id in (1020, 1942, 7346):
        client.post(f"/lists/{big['id']}/add", json={"gameId": igdb_id}, headers=headers)
    client.post(f"/comments/list/{big['id']}", json={"text": "Solid picks"}, headers=headers)

    mine = client.get("/lists", headers=headers).json()
    popular = client.get("/lists/discover", params={"sort": "popular"}).json()
    recent = client.get("/lists/discover", params={"sort": "recent", "limit": 1}).json()

    assert {item["name"] for item in mine} == {"Small", "Big"}
    assert [item["name"] for item in popular["lists"]] == ["Big", "Small"]
    assert popular["lists"][0]["game_count"] == 3
    assert popular["lists"][0]["comment_count"] == 1
    assert len(popular["lists"][0]["preview_games"]) == 3
    assert recent["pagination"] == {"current": 1, "total": 2, "count": 2}
    assert recent["lists"][0]["name"] == "Big"
