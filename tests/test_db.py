from locationtracking.db import ClientInfo, MongoClient, create_client
from locationtracking.model import Location, LocationInfo


class FakeCollection:
    def __init__(self):
        self.calls = []

    def replace_one(self, filter, document, upsert):
        self.calls.append(("replace_one", filter, document, upsert))

    def create_index(self, keys):
        self.calls.append(("create_index", keys))

    def find(self, filter, **kwargs):
        self.calls.append(("find", filter, kwargs))
        return iter([{"username": "user1"}])


class FakeDatabase(dict):
    def __init__(self):
        super().__init__()
        self.created = []

    def __missing__(self, key):
        self[key] = FakeCollection()
        return self[key]

    def create_collection(self, name):
        self.created.append(name)


class FakeClient:
    def __init__(self):
        self.databases = {}
        self.closed = False

    def __getitem__(self, name):
        return self.databases.setdefault(name, FakeDatabase())

    def close(self):
        self.closed = True


def make():
    fake = FakeClient()
    return fake, MongoClient(fake, "tracking")


def test_client_info_from_env():
    info = ClientInfo.from_env({"MONGODB_URI": "mongodb://localhost", "MONGODB_DEFAULT_DB": "db"})
    assert info.uri == "mongodb://localhost"
    assert info.default_database == "db"
    assert info.username == ""


def test_find_paginates_and_sorts():
    fake, client = make()
    docs = client.find("location", {"a": 1}, {"username": 1}, {"username": 1}, 3, 10)
    assert docs == [{"username": "user1"}]
    _, filter, kwargs = fake["tracking"]["location"].calls[0]
    assert filter == {"a": 1}
    assert kwargs == {"limit": 10, "skip": 20, "sort": [("username", 1)], "projection": {"username": 1}}


def test_find_without_sort_or_projection():
    fake, client = make()
    client.find("c", {}, None, None, 1, 1)
    assert fake["tracking"]["c"].calls[0][2] == {"limit": 1, "skip": 0}


def test_save_converts_model_and_upserts():
    fake, client = make()
    info = LocationInfo("user1", Location("Point", [1.0, 2.0]), 0.0, 5)
    client.save_or_replace_document("location", info, {"username": "user1"})
    assert fake["tracking"]["location"].calls[0] == (
        "replace_one", {"username": "user1"}, info.to_document(), True
    )


def test_indexes_collection_and_disconnect():
    fake, client = make()
    client.create_collection("location")
    client.create_index("location", "timestamp", -1)
    client.create_2dsphere_index("location", "location")
    client.disconnect()
    db = fake["tracking"]
    assert db.created == ["location"]
    assert db["location"].calls == [
        ("create_index", [("timestamp", -1)]),
        ("create_index", [("location", "2dsphere")]),
    ]
    assert fake.closed is True


def test_create_client_is_lazy():
    client = create_client(ClientInfo(uri="mongodb://localhost:27017", default_database="tracking"))
    try:
        assert client._db.name == "tracking"
    finally:
        client.disconnect()