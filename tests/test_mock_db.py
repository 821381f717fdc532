import hashlib

import pytest

from locationtracking.mock_db import MockDBClient, generate_key, hash_json
from locationtracking.model import Location, LocationInfo


def test_hash_json_ignores_key_order():
    assert hash_json('{"a":1,"b":[1,2]}') == hash_json(b'{"b":[1.0,2],"a":1}')


def test_hash_json_is_sha256_hex():
    digest = hash_json("{}")
    assert digest == hashlib.sha256(b"{}").hexdigest()


def test_generate_key_differs_by_page():
    assert generate_key("c", {"u": "x"}, None, None, 1, 1) != generate_key("c", {"u": "x"}, None, None, 2, 1)
    assert generate_key("c", {"u": "x"}, None, None, 1, 1) == generate_key("c", {"u": "x"}, None, None, 1, 1)


def test_generate_key_accepts_models():
    loc = Location("Point", [1.0, 2.0])
    assert generate_key("c", {"g": loc}, None, None, 1, 1) == generate_key(
        "c", {"g": {"coordinates": [1, 2], "type": "Point"}}, None, None, 1, 1
    )


def test_save_then_get_response():
    db = MockDBClient()
    info = LocationInfo("user1", Location("Point", [1.0, 2.0]), 0.0, 7)
    db.save_or_replace_document("location", info, {"username": "user1"})
    assert db.get_response("location", {"username": "user1"}, None, None, 0, 0) == [info.to_document()]


def test_find_returns_preset_or_empty():
    db = MockDBClient()
    db.set_response("c", {"a": 1}, {"p": 1}, {"s": -1}, 1, 1, [{"distance": 5.0}])
    assert db.find("c", {"a": 1}, {"p": 1}, {"s": -1}, 1, 1) == [{"distance": 5.0}]
    assert db.find("c", {"a": 2}, {"p": 1}, {"s": -1}, 1, 1) == []


def test_results_are_copies():
    db = MockDBClient()
    db.set_response("c", {}, None, None, 0, 0, [{"x": [1]}])
    db.get_response("c", {}, None, None, 0, 0)[0]["x"].append(2)
    assert db.get_response("c", {}, None, None, 0, 0) == [{"x": [1]}]


def test_unserialisable_filter_raises():
    with pytest.raises(TypeError):
        generate_key("c", {"x": object()}, None, None, 0, 0)