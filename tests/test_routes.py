import pytest

pytest.importorskip("httpx", reason="httpx requis pour les tests client FastAPI")

from fastapi.testclient import TestClient

from rulewheel.config.settings import Settings
from rulewheel.main import create_app

AUTH_HEADERS = {"Authorization": "Bearer test-token"}


@pytest.fixture
def client():
    app = create_app(Settings(APP_NAME="Rule Wheel (tests)", ADMIN_TOKEN="test-token"))
    with TestClient(app) as test_client:
        yield test_client


def test_root_ping(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["ok"] is True


def test_health_reports_counters(client):
    payload = client.get("/health").json()
    assert payload == {
        "ok": True,
        "service": "Rule Wheel (tests)",
        "lobbies": 0,
        "players": 0,
        "connections": 0,
    }

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "create_lobby", "payload": {"playerName": "Host"}})
        assert ws.receive_json()["type"] == "lobby_created"

        payload = client.get("/health").json()
        assert (payload["lobbies"], payload["players"], payload["connections"]) == (1, 1, 1)


def test_admin_routes_require_bearer_token(client):
    assert client.get("/lobbies").status_code == 401
    wrong = client.get("/lobbies", headers={"Authorization": "Bearer nope"})
    assert wrong.status_code == 403
    assert client.delete("/lobbies/any").status_code == 401

    response = client.get("/lobbies", headers=AUTH_HEADERS)
    assert response.status_code == 200
    assert response.json() == {"lobbies": []}


def test_admin_can_inspect_and_close_a_lobby(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "create_lobby", "payload": {"playerName": "Host"}})
        game = ws.receive_json()["payload"]["game"]

        listing = client.get("/lobbies", headers=AUTH_HEADERS).json()["lobbies"]
        assert [(l["code"], l["players"]) for l in listing] == [(game["code"], 1)]

        document = client.get(f"/lobbies/{game['code'].lower()}", headers=AUTH_HEADERS).json()
        assert document["id"] == game["id"]
        assert document["players"][0]["isHost"] is True

        closed = client.delete(f"/lobbies/{game['id']}", headers=AUTH_HEADERS)
        assert closed.status_code == 200
        assert closed.json()["notified"] == 1
        assert ws.receive_json() == {
            "type": "lobby_closed",
            "payload": {"lobbyId": game["id"], "code": game["code"]},
        }

        ws.send_json({"type": "start_game"})
        assert ws.receive_json()["payload"] == {"message": "You are not in a lobby"}

    assert client.get("/lobbies/ZZZZ", headers=AUTH_HEADERS).status_code == 404
    assert client.delete(f"/lobbies/{game['id']}", headers=AUTH_HEADERS).status_code == 404
