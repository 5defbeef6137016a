# src/task_mirror/remote/common.py

from __future__ import annotations

from typing import Any


class ServerTimestamp:
    """
    Sentinel for "the store's clock at write time".

    Adapters resolve it when the write is committed (SQLite: time.time(),
    Firestore: a REQUEST_TIME field transform).
    """

    _instance: ServerTimestamp | None = None

    def __new__(cls) -> ServerTimestamp:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = ServerTimestamp()


def is_server_timestamp(value: Any) -> bool:
    return isinstance(value, ServerTimestamp)
