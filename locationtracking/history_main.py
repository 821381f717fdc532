"""Location history service: HTTP distance queries and RPC location updates."""

from __future__ import annotations

import argparse
import logging
import signal
import threading
from concurrent import futures
from typing import Mapping

import grpc

from .db import ClientInfo, DBClient, create_client
from .history_client import add_update_user_location_handler
from .history_service import LOCATION_HISTORY_COLLECTION, LocationHistoryService
from .web import JsonServer

log = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT = 10.0


def init_mongo_client(environ: Mapping[str, str] | None = None) -> DBClient:
    """Connect using MONGODB_* settings and prepare the history collection."""
    client = create_client(ClientInfo.from_env(environ))
    client.create_collection(LOCATION_HISTORY_COLLECTION)
    client.create_index(LOCATION_HISTORY_COLLECTION, "username", 1)
    client.create_index(LOCATION_HISTORY_COLLECTION, "timestamp", -1)
    client.create_2dsphere_index(LOCATION_HISTORY_COLLECTION, "location")
    log.info("successfully initialized mongo client and created collections and indexes")
    return client


class HistoryApplication:
    """The HTTP and RPC servers of the history service, sharing one database."""

    def __init__(
        self,
        db: DBClient,
        http_address: tuple[str, int] = ("", 8080),
        grpc_address: str = "[::]:50051",
    ) -> None:
        self.db = db
        self.service = LocationHistoryService(db)
        self._http_address = http_address
        self._grpc_address = grpc_address
        self.http_server: JsonServer | None = None
        self.grpc_server: grpc.Server | None = None
        self.grpc_port: int | None = None

    def start(self) -> None:
        if self.http_server is not None or self.grpc_server is not None:
            log.info("servers already initialized")
            return

        grpc_server = grpc.server(futures.ThreadPoolExecutor(max_workers=10))
        add_update_user_location_handler(grpc_server, self.service.update_user_location)
        port = grpc_server.add_insecure_port(self._grpc_address)
        if port == 0:
            raise RuntimeError(f"failed to listen on {self._grpc_address}")

        http_server = JsonServer(
            {("POST", "/user/distance"): self.service.handle_distance_request},
            self._http_address,
        )
        threading.Thread(target=http_server.serve_forever, name="http-server", daemon=True).start()
        log.info("started http server on port %d", http_server.port)

        grpc_server.start()
        log.info("started grpc server on port %d", port)

        self.http_server = http_server
        self.grpc_server = grpc_server
        self.grpc_port = port

    def stop(self) -> None:
        """Stop both servers, allowing each up to 10 seconds, and disconnect."""
        grpc_stopped = None
        if self.grpc_server is not None:
            log.info("shutting down grpc server...")
            grpc_stopped = self.grpc_server.stop(SHUTDOWN_TIMEOUT)

        if self.http_server is not None:
            log.info("shutting down http server...")
            if self.http_server.shutdown(SHUTDOWN_TIMEOUT):
                log.info("successfully shut down http server")
            else:
                log.error("http server did not shut down in time")

        if grpc_stopped is not None:
            grpc_stopped.wait()
            log.info("successfully shut down grpc server")

        log.info("disconnecting mongo client...")
        try:
            self.db.disconnect()
        except Exception:
            log.exception("error disconnecting mongo client")
        else:
            log.info("successfully disconnected mongo client")

        self.http_server = None
        self.grpc_server = None
        self.grpc_port = None

    def __enter__(self) -> "HistoryApplication":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="location-history-management",
        description="Serve user distance queries on :8080 and location updates on :50051.",
    )
    parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    stop_requested = threading.Event()

    def _request_stop(signum, frame) -> None:
        stop_requested.set()

    previous = {sig: signal.signal(sig, _request_stop) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        app = HistoryApplication(init_mongo_client())
        app.start()
        try:
            while not stop_requested.wait(1.0):
                pass
        finally:
            app.stop()
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())