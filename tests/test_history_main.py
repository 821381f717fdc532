import json
import urllib.error
import urllib.request
from datetime import datetime

import pytest

from locationtracking.history_client import create_client
from locationtracking.history_main import HistoryApplication, main
from locationtracking.mock_db import MockDBClient
from locationtracking.model import Location, LocationInfo

COLLECTION = "location-history"
BG = [20.2576593, 44.8154844]
CU = [21.3135146, 43.9322129]


def _millis(ts):
    return int(datetime.fromisoformat(ts).timestamp() * 1000)


def _post(app, path, payload):
    data = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    request = urllib.request.Request(
        f"http://127.0.0.1:{app.http_server.port}{path}",
        data=data,
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    try:
        with urllib.request.urlopen(request, timeout=5) as response:
            return response.status, response.read()
    except urllib.error.HTTPError as exc:
        return exc.code, exc.read()


def _stored(db, username, ts):
    documents = db.get_response(COLLECTION, {"username": username, "timestamp": _millis(ts)}, None, None, 0, 0)
    assert len(documents) == 1
    return documents


@pytest.fixture
def db():
    return MockDBClient()


@pytest.fixture
def app(db):
    application = HistoryApplication(db, ("127.0.0.1", 0), "127.0.0.1:0")
    application.start()
    yield application
    application.stop()


@pytest.fixture
def rpc(app):
    client = create_client(f"127.0.0.1:{app.grpc_port}")
    yield client
    client.close()


def _send(rpc, username, coordinates, ts):
    rpc.update_user_location(
        LocationInfo(username=username, location=Location("Point", list(coordinates)), timestamp=_millis(ts)),
        timeout=5,
    )


def test_update_over_rpc_is_stored(db, rpc):
    _send(rpc, "user5", BG, "2025-01-10T00:00:00+00:00")
    (document,) = _stored(db, "user5", "2025-01-10T00:00:00+00:00")
    assert document["username"] == "user5"
    assert document["location"] == {"type": "Point", "coordinates": BG}
    assert document["distance"] == 0


def test_distance_end_to_end(db, app, rpc):
    first, second = "2025-01-10T00:00:00+00:00", "2025-01-11T00:00:00+00:00"
    _send(rpc, "user3", BG, first)
    db.set_response(
        COLLECTION, {"username": "user3"}, {"distance": 1, "location": 1}, {"timestamp": -1}, 1, 1,
        _stored(db, "user3", first),
    )
    _send(rpc, "user3", CU, second)

    start, end = "2025-01-09T00:00:00+00:00", "2025-01-11T00:00:00+00:00"
    db.set_response(
        COLLECTION, {"username": "user3", "timestamp": {"$gte": _millis(start)}}, {"distance": 1},
        {"timestamp": 1}, 1, 1, _stored(db, "user3", first),
    )
    db.set_response(
        COLLECTION, {"username": "user3", "timestamp": {"$lte": _millis(end)}}, {"distance": 1},
        {"timestamp": -1}, 1, 1, _stored(db, "user3", second),
    )

    status, body = _post(app, "/user/distance", {"username": "user3", "start": start, "end": end})
    assert status == 200
    assert abs(json.loads(body)["distance"] - 129.183169) <= 0.001


def test_empty_history_gives_zero(app):
    status, body = _post(
        app,
        "/user/distance",
        {"username": "user1", "start": "2025-01-01T00:00:00+00:00", "end": "2025-01-02T00:00:00+00:00"},
    )
    assert status == 200
    assert json.loads(body) == {"distance": 0.0}


def test_invalid_request_is_bad_request(app):
    status, body = _post(app, "/user/distance", b"{not json")
    assert status == 400
    assert body == b""


def test_metrics_count_requests(app):
    _post(app, "/user/distance", b"{not json")
    with urllib.request.urlopen(f"http://127.0.0.1:{app.http_server.port}/metrics", timeout=5) as response:
        text = response.read().decode()
    assert 'path="/user/distance",code="400"} 1' in text


def test_stop_closes_servers(db):
    application = HistoryApplication(db, ("127.0.0.1", 0), "127.0.0.1:0")
    application.start()
    port = application.http_server.port
    application.stop()
    assert application.http_server is None
    with pytest.raises(urllib.error.URLError):
        urllib.request.urlopen(f"http://127.0.0.1:{port}/metrics", timeout=2)


def test_context_manager_starts_and_stops(db):
    with HistoryApplication(db, ("127.0.0.1", 0), "127.0.0.1:0") as application:
        assert application.grpc_port > 0
    assert application.grpc_server is None


def test_main_help_exits_cleanly():
    with pytest.raises(SystemExit) as excinfo:
        main(["--help"])
    assert excinfo.value.code == 0