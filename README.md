# locationtracking

Building blocks for keeping track of where users are, backed by MongoDB:

- **location history** (`locationtracking.history_service`,
  `locationtracking.history_main`) keeps every reported position with a
  running total of the distance travelled (great-circle distance, in
  kilometres) and answers "how far did this user travel between two
  moments?". It receives position updates over gRPC and distance queries
  over HTTP.
- **current locations** (`locationtracking.location_service`) stores each
  user's latest position, answers "who is near this point?" queries, and
  forwards every update to the history service through a gRPC client.

HTTP servers built on `locationtracking.web.JsonServer` also serve
Prometheus-style request counters at `GET /metrics`.

## Installation

```
pip install .
```

With the test dependencies:

```
pip install ".[test]"
pytest
```

## Configuration

The history service reads its MongoDB settings from the environment
(`locationtracking.db.ClientInfo.from_env`):

| Variable             | Meaning                          |
|----------------------|----------------------------------|
| `MONGODB_URI`        | connection string                |
| `MONGODB_USERNAME`   | user name                        |
| `MONGODB_PASSWORD`   | password                         |
| `MONGODB_AUTH_DB`    | authentication database          |
| `MONGODB_DEFAULT_DB` | database holding the collections |

On start-up it creates the `location-history` collection with indexes on
`username`, `timestamp` and a 2dsphere index on `location`.

## Running the history service

```
location-history-management
```

Serves HTTP on port 8080 and gRPC on port 50051. Stop it with Ctrl+C or
SIGTERM; each server is given up to ten seconds to shut down, then the
database connection is closed.

### `POST /user/distance`

```json
{"username": "user1",
 "start": "2025-01-01T00:00:00+00:00",
 "end": "2025-01-02T00:00:00+00:00"}
```

`username` is 4–16 letters or digits; `start` and `end` are times of the
form `YYYY-MM-DDTHH:MM:SS±HH:MM`. Returns `{"distance": <km>}`: the
running total at the last recorded position at or before `end`, minus the
running total at the first recorded position at or after `start`. Missing
positions count as 0, and an `end` before `start` gives 0.

Malformed or invalid requests get `400 Bad Request`; database failures
give `500 Internal Server Error`.

### gRPC `UpdateUserLocation`

Accepts a username, a GeoJSON point and a millisecond timestamp. The
stored record gets the previous total plus the haversine distance from the
user's latest known position. `locationtracking.history_client` has the
message encoding (`encode_location_info`, `decode_location_info`), a
client (`create_client(target)` returning an `LHMGRPCClient`) and
`add_update_user_location_handler` for registering a handler on a
`grpc.Server`.

`HistoryApplication(db, http_address, grpc_address)` runs both servers
in-process; it works as a context manager.

## The current-location service

`LocationService(db, history_client)` provides:

- `update_user_location(username, coordinates)` – stores a GeoJSON point
  with the current time and sends it to the history client;
- `search_user_location(coordinates, distance, page_number, page_size)` –
  usernames within `distance` metres of the point, sorted by username,
  one page at a time (pages start at 1);
- `handle_update_request(body)` and `handle_search_request(body)` – JSON
  request handlers returning `(status, payload)`, ready to be routed by a
  `JsonServer`. The update body is
  `{"username": "user1", "coordinates": "44.8154844,20.2576593"}`; the
  search body is
  `{"coordinates": "...", "distance": 10.0, "pageNumber": 1, "pageSize": 10}`.

`extract_coordinates("lat,lon")` returns `[lon, lat]`, the order GeoJSON
expects, and raises `ValueError` when a value is out of range.

```python
from locationtracking.mock_db import MockDBClient
from locationtracking.history_client import MockGRPCClient
from locationtracking.location_service import LocationService, extract_coordinates

service = LocationService(MockDBClient(), MockGRPCClient())
service.update_user_location("user1", extract_coordinates("44.8154844,20.2576593"))
```

`MockDBClient` answers `find` with responses preset through
`set_response`, and `MockGRPCClient` records every update in `updates`;
both are meant for tests.

## What the package does not do

There is no ready-made command or server application for the
current-location service: the package has `LocationService` and its
request handlers, but wiring them to a `JsonServer`, a `MongoClient` and
an `LHMGRPCClient` is left to the caller. Only the history service has a
command.