"""
HTTP API: game lifecycle, persistence and error responses.
Each test runs against its own SQLite file.
"""

import threading
import time

import pytest
from fastapi.testclient import TestClient

from conquest.api import main
from conquest.api.database import (
    get_db,
    init_db,
    make_engine,
    make_session_factory,
    resolve_database_url,
)
from conquest.engine.state import GameState


@pytest.fixture
def client(tmp_path):
    engine = make_engine(resolve_database_url(f"sqlite:///{tmp_path / 'test.db'}"))
    init_db(bind=engine)
    TestingSession = make_session_factory(engine)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    main.app.dependency_overrides[get_db] = override_get_db
    main.sessions.clear()
    main.game_stats.clear()
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()
    main.sessions.clear()
    main.game_stats.clear()
    engine.dispose()


def _create(client, seed=5):
    response = client.post("/games", json={
        "name": "Test game",
        "players": [{"name": "alice"}, {"name": "bob", "color": "#123456"}],
        "seed": seed,
    })
    assert response.status_code == 200
    return response.json()


def _owned(state, player):
    return sorted(tid for tid, ts in state["territories"].items() if ts["owner"] == player)


def _finish_placement(client, game_id, state):
    for _ in range(2):
        player = state["current_player"]
        body = client.post(f"/games/{game_id}/place", json={
            "territory_id": _owned(state, player)[0],
            "count": state["remaining_armies"][player],
        }).json()
        state = body["state"]
    return state


def test_root_and_maps(client):
    assert client.get("/").json()["message"] == "Conquest API"
    maps = client.get("/maps").json()["maps"]
    assert {"id": "classic", "display_name": "Classic World", "territory_count": 42} in maps


def test_create_game_deals_territories(client):
    body = _create(client)
    state = body["state"]
    assert state["phase"] == "initial_placement"
    assert len(_owned(state, "alice")) == 21
    assert state["remaining_armies"] == {"alice": 19, "bob": 19}
    assert state["players"][1]["color"] == "#123456"


def test_create_game_errors(client):
    response = client.post("/games", json={"players": [{"name": "solo"}]})
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidSetup"

    response = client.post("/games", json={
        "players": [{"name": "alice"}, {"name": "bob"}],
        "map_id": "atlantis",
    })
    assert response.status_code == 400


def test_play_to_deploy(client):
    body = _create(client)
    game_id = body["game_id"]
    state = _finish_placement(client, game_id, body["state"])
    assert state["phase"] == "deploy"
    assert state["current_player"] == "alice"

    actions = client.get(f"/games/{game_id}/available-actions").json()
    assert actions["phase"] == "deploy"
    assert actions["remaining_armies"] == state["remaining_armies"]["alice"]
    assert not actions["can_advance_phase"]


def test_rule_errors_are_400(client):
    body = _create(client)
    game_id = body["game_id"]
    target = _owned(body["state"], "alice")[0]

    response = client.post(f"/games/{game_id}/place", json={"territory_id": target, "count": 100})
    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "InsufficientReinforcements",
        "message": response.json()["message"],
    }

    response = client.post(f"/games/{game_id}/combat/exchange", json={
        "attacker_remaining": 1, "defender_remaining": 0,
    })
    assert response.status_code == 400
    assert response.json()["error"] == "WrongPhase"

    state = client.get(f"/games/{game_id}").json()["state"]
    assert state["remaining_armies"]["alice"] == 19


def test_unknown_game_is_404(client):
    assert client.get("/games/nope").status_code == 404
    assert client.post("/games/nope/advance-phase").status_code == 404
    assert client.delete("/games/nope").status_code == 404


def test_games_survive_a_restart(client):
    body = _create(client)
    game_id = body["game_id"]
    target = _owned(body["state"], "alice")[0]
    client.post(f"/games/{game_id}/click", json={"territory_id": target})
    before = client.get(f"/games/{game_id}").json()["state"]

    main.sessions.clear()
    main.game_stats.clear()
    after = client.get(f"/games/{game_id}").json()
    assert after["state"] == before
    assert after["map"]["id"] == "classic"
    assert client.get(f"/games/{game_id}/stats").json()["global"]["total_battles"] == 0


def test_list_and_delete(client):
    game_id = _create(client)["game_id"]
    games = client.get("/games").json()["games"]
    assert [g["id"] for g in games] == [game_id]
    assert games[0]["phase"] == "initial_placement"

    assert client.delete(f"/games/{game_id}").json() == {"deleted": game_id}
    assert client.get(f"/games/{game_id}").status_code == 404


def test_database_url_resolution(monkeypatch):
    assert resolve_database_url("postgres://u:p@host/db") == "postgresql://u:p@host/db"
    assert resolve_database_url("sqlite:///x.db") == "sqlite:///x.db"
    monkeypatch.delenv("DATABASE_URL", raising=False)
    assert resolve_database_url().startswith("sqlite:///")
    assert resolve_database_url().endswith(".db")


def test_first_load_is_shared_between_concurrent_requests(client, monkeypatch):
    body = _create(client)
    game_id = body["game_id"]
    target = _owned(body["state"], "alice")[0]
    main.sessions.clear()
    main.game_stats.clear()

    original = GameState.from_json
    loading = threading.Event()
    calls = []

    def slow_from_json(data):
        calls.append(data)
        if len(calls) == 1:
            loading.set()
            time.sleep(0.3)
        return original(data)

    monkeypatch.setattr(GameState, "from_json", staticmethod(slow_from_json))

    reader = threading.Thread(target=lambda: client.get(f"/games/{game_id}"))
    reader.start()
    assert loading.wait(timeout=5)
    response = client.post(f"/games/{game_id}/click", json={"territory_id": target})
    reader.join(timeout=5)

    assert response.json()["state"]["territories"][target]["armies"] == 2
    assert len(calls) == 1
    assert main.sessions[game_id].state.territories[target].armies == 2
