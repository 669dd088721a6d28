"""End-to-end tests of the player shell API against a fake media server."""

import httpx
import pytest
from fastapi.testclient import TestClient

from tvshows import config, main
from tvshows.config import Settings
from tvshows.services.hosts import HostRegistry
from tvshows.services.remote import KEYCODE_DPAD_RIGHT

EPISODES = ["E5", "E4", "E3", "E2", "E1"]


def media_server(request):
    path = request.url.path
    if path == "/home":
        return httpx.Response(200, json={"Star Plus": [{"title": "Anupamaa", "icon": None}]})
    if path.startswith("/episodes/"):
        if request.url.params.get("load_more") == "true":
            return httpx.Response(200, json={"episodes": EPISODES, "has_more": False})
        return httpx.Response(200, json={"episodes": EPISODES[:3], "has_more": True})
    if path.endswith("/E0"):
        return httpx.Response(200, json=[])
    if path.endswith("/E9"):
        return httpx.Response(200, json=[["E9 part 1"]])
    if path.startswith("/episode/"):
        episode = path.rsplit("/", 1)[-1]
        return httpx.Response(
            200, json=[[f"{episode} part {i}", f"/videos/{episode}/{i}.mp4"] for i in (1, 2, 3)]
        )
    return httpx.Response(404, text="Not found")


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "CONFIG_DIR", tmp_path)
    monkeypatch.setattr(config, "SETTINGS_FILE", tmp_path / "settings.json")
    monkeypatch.setattr(config, "_settings", None)

    def create_shell():
        settings = Settings(hosts=["tv.local:3000"])
        registry = HostRegistry(settings.hosts)
        return main.PlayerShell(registry, settings, transport=httpx.MockTransport(media_server))

    monkeypatch.setattr(main, "create_shell", create_shell)
    with TestClient(main.app) as c:
        yield c


def _open(client, episode="E4"):
    return client.post(f"/session/Star%20Plus/Anupamaa/{episode}")


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "host": "tv.local:3000"}


def test_home(client):
    response = client.get("/home")
    assert response.status_code == 200
    assert response.json() == {"Star Plus": [{"title": "Anupamaa", "icon": None}]}


def test_episodes_and_load_more(client):
    first = client.get("/episodes/Star%20Plus/Anupamaa").json()
    assert first["episodes"] == ["E5", "E4", "E3"]
    assert first["has_more"] is True
    assert first["loaded"] is True

    more = client.get("/episodes/Star%20Plus/Anupamaa", params={"load_more": "true"}).json()
    assert more["episodes"] == EPISODES
    assert more["has_more"] is False
    assert more["pages"] == 2


def test_open_session_plays_first_part(client):
    response = _open(client)
    assert response.status_code == 200
    snapshot = response.json()
    assert snapshot["phase"] == "playing"
    assert len(snapshot["parts"]) == 3
    assert snapshot["current_part"]["url"] == "http://tv.local:3000/videos/E4/1.mp4"

    directives = client.get("/session/directives").json()["directives"]
    assert directives[-1]["action"] == "load"
    assert directives[-1]["url"] == "http://tv.local:3000/videos/E4/1.mp4"


def test_progress_and_commands(client):
    _open(client)
    state = client.post("/session/progress", json={"current_time": 10, "total_duration": 1200}).json()
    assert state["current_time"] == 10

    snapshot = client.post("/session/command", json={"name": "seek_by", "value": -15}).json()
    assert snapshot["state"]["current_time"] == 0

    snapshot = client.post("/session/command", json={"name": "speed_up"}).json()
    assert snapshot["state"]["speed"] == 2.0

    snapshot = client.post("/session/command", json={"name": "toggle_pause"}).json()
    assert snapshot["state"]["speed"] == 1.0
    assert snapshot["state"]["paused"] is False


def test_unknown_command_is_rejected(client):
    _open(client)
    response = client.post("/session/command", json={"name": "rewind_time"})
    assert response.status_code == 400


def test_key_event_reaches_open_session(client):
    assert client.post("/session/key", json={"key_code": KEYCODE_DPAD_RIGHT}).json()["delivered"] == 0
    _open(client)
    response = client.post("/session/key", json={"key_code": KEYCODE_DPAD_RIGHT})
    assert response.json() == {"status": "ok", "delivered": 1}


def test_finishing_last_part_continues_with_older_episode(client):
    _open(client)
    for _ in range(3):
        snapshot = client.post("/session/ended").json()

    assert snapshot["episode"] == "E3"
    assert snapshot["phase"] == "playing"
    assert client.get("/session").json()["episode"] == "E3"


def test_empty_parts_is_not_found(client):
    response = _open(client, "E0")
    assert response.status_code == 404
    assert client.get("/session").status_code == 404


def test_player_error_fails_session(client):
    _open(client)
    snapshot = client.post("/session/error", json={"message": "decoder error"}).json()
    assert snapshot["phase"] == "failed"
    assert snapshot["error"] == "decoder error"


def test_no_session(client):
    assert client.get("/session").status_code == 404
    assert client.post("/session/command", json={"name": "toggle_pause"}).status_code == 404


def test_close_session(client):
    _open(client)
    assert client.delete("/session").json() == {"status": "ok"}
    assert client.get("/session").status_code == 404


def test_settings(client):
    assert client.get("/api/settings").json()["seek_step"] == 15.0
    updated = client.put("/api/settings", json={"seek_step": 30}).json()
    assert updated["seek_step"] == 30


def test_notices_and_logs(client):
    _open(client)
    client.post("/session/command", json={"name": "previous_part"})
    notices = client.get("/api/notices").json()["notices"]
    assert notices[0]["kind"] == "boundary"

    assert client.get("/api/logs").status_code == 200


def test_malformed_parts_fail_cleanly(client):
    """A broken parts payload is an upstream error, not a stuck session."""
    response = _open(client, "E9")
    assert response.status_code == 502
    assert response.json()["detail"]["kind"] == "invalid_response"
    assert client.get("/session").status_code == 404
