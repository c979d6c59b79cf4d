import pytest

from doodle.config import Config
from doodle.game import service, words
from doodle.realtime.bindings import bindings
from doodle.server import create_app


class TestConfig(Config):
    __test__ = False

    TESTING = True
    SECRET_KEY = "test-secret"
    SOCKETIO_ASYNC_MODE = "threading"
    TRUST_PROXY_HEADERS = False
    ROUND_TIMER_ENABLED = False
    ROUND_DURATION_SEC = 60
    MIN_PLAYERS = 2
    CORRECT_GUESS_POINTS = 10
    ROOM_CODE_LENGTH = 6
    WORD_LIST = []


@pytest.fixture(autouse=True)
def clean_state():
    service.clear_rooms()
    bindings.clear()
    service.configure(round_duration_sec=60, min_players=2, correct_guess_points=10, room_code_length=6)
    words.configure()
    yield
    service.clear_rooms()
    bindings.clear()


@pytest.fixture()
def fixed_word(monkeypatch):
    monkeypatch.setattr(service, "pick_word", lambda: "apple")
    return "apple"


@pytest.fixture()
def app_and_socketio():
    return create_app(TestConfig)


@pytest.fixture()
def flask_app(app_and_socketio):
    return app_and_socketio[0]


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def connect(app_and_socketio):
    app, socketio = app_and_socketio
    opened = []

    def _connect():
        sio_client = socketio.test_client(app)
        opened.append(sio_client)
        return sio_client

    yield _connect

    for sio_client in opened:
        try:
            if sio_client.is_connected():
                sio_client.disconnect()
        except Exception:
            pass


def payloads(received, name):
    return [pkt["args"][0] if pkt["args"] else None for pkt in received if pkt["name"] == name]


def join(sio_client, room_code, name):
    """Join a room and return this connection's player id."""
    sio_client.emit("room:join", {"roomCode": room_code, "name": name})
    joined = payloads(sio_client.get_received(), "room:joined")
    assert joined, "expected a room:joined ack"
    return joined[-1]["playerId"]
