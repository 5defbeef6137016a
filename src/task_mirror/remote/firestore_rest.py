# src/task_mirror/remote/firestore_rest.py

from __future__ import annotations

"""
Firestore REST adapter.

Talks to the Firestore v1 REST API with httpx:
- partial updates go through documents:commit (updateMask + currentDocument.exists,
  server timestamps as REQUEST_TIME field transforms)
- subscriptions poll documents:runQuery with a groupCode EQUAL filter

Auth is a plain bearer token (an ID/OAuth token obtained elsewhere); token refresh is
out of scope here.
"""

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from ..core.ports import ErrorCallback, RemoteDocument, SnapshotCallback, Subscription
from ..errors import RemoteStoreError
from .common import SERVER_TIMESTAMP, is_server_timestamp
from .polling import PollingSubscription

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://firestore.googleapis.com/v1"


# ---- value codec ----

def encode_value(value: Any) -> dict[str, Any]:
    """Python value -> Firestore typed Value."""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        ts = value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
        return {"timestampValue": ts}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    raise TypeError(f"Unsupported Firestore value type: {type(value).__name__}")


def encode_fields(data: dict[str, Any]) -> dict[str, Any]:
    return {k: encode_value(v) for k, v in data.items()}


def decode_value(value: dict[str, Any]) -> Any:
    """Firestore typed Value -> Python value (timestamps stay ISO strings)."""
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "timestampValue" in value:
        return value["timestampValue"]
    if "referenceValue" in value:
        return value["referenceValue"]
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields") or {})
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values") or []]
    logger.debug("Unknown Firestore value kind: %s", list(value))
    return None


def decode_fields(fields: dict[str, Any]) -> dict[str, Any]:
    return {k: decode_value(v) for k, v in fields.items()}


def _doc_id(name: str) -> str:
    return name.rsplit("/", 1)[-1]


class FirestoreRestTaskStore:
    def __init__(
            self,
            *,
            project_id: str,
            database: str = "(default)",
            collection: str = "tasks",
            base_url: str = DEFAULT_BASE_URL,
            token: str | None = None,
            timeout_seconds: float = 10.0,
            poll_interval_seconds: float = 2.0,
            transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not project_id or not project_id.strip():
            raise ValueError("project_id is required")

        self.collection = collection
        self._db_path = f"projects/{project_id}/databases/{database}"
        self._docs_path = f"{self._db_path}/documents"
        self._poll_interval = float(poll_interval_seconds)
        self._subscriptions: list[PollingSubscription] = []

        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            headers=headers,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )
        logger.info("FirestoreRestTaskStore ready db=%s collection=%s", self._db_path, collection)

    def _doc_name(self, task_id: str) -> str:
        return f"{self._docs_path}/{self.collection}/{task_id}"

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(method, url, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise RemoteStoreError(
                f"Firestore {method} {url} failed: HTTP {status} {_error_message(e.response)}",
                status_code=status,
            ) from e
        except httpx.HTTPError as e:
            raise RemoteStoreError(f"Firestore {method} {url} failed: {e.__class__.__name__}: {e}") from e
        return resp

    # ---- queries ----

    async def run_group_query(self, group_code: str) -> list[RemoteDocument]:
        body = {
            "structuredQuery": {
                "from": [{"collectionId": self.collection}],
                "where": {
                    "fieldFilter": {
                        "field": {"fieldPath": "groupCode"},
                        "op": "EQUAL",
                        "value": {"stringValue": group_code},
                    }
                },
            }
        }
        resp = await self._request("POST", f"{self._docs_path}:runQuery", json=body)

        out: list[RemoteDocument] = []
        for item in resp.json():
            doc = item.get("document") if isinstance(item, dict) else None
            if not doc:
                # runQuery emits readTime-only rows for empty results.
                continue
            out.append(RemoteDocument(id=_doc_id(doc["name"]), data=decode_fields(doc.get("fields") or {})))
        return out

    # ---- RemoteTaskStore ----

    async def subscribe(
            self,
            group_code: str,
            on_snapshot: SnapshotCallback,
            on_error: ErrorCallback | None = None,
    ) -> Subscription:
        async def _fetch() -> list[RemoteDocument]:
            return await self.run_group_query(group_code)

        sub = PollingSubscription(
            f"firestore:{self.collection}:{group_code}",
            _fetch,
            on_snapshot,
            on_error,
            interval_seconds=self._poll_interval,
        )
        await sub.start()
        self._subscriptions.append(sub)
        return sub

    async def write_fields(self, task_id: str, fields: dict[str, Any]) -> None:
        plain = {k: v for k, v in fields.items() if not is_server_timestamp(v)}
        transforms = [
            {"fieldPath": k, "setToServerValue": "REQUEST_TIME"}
            for k, v in fields.items()
            if is_server_timestamp(v)
        ]

        write: dict[str, Any] = {
            "update": {"name": self._doc_name(task_id), "fields": encode_fields(plain)},
            "updateMask": {"fieldPaths": list(plain)},
            "currentDocument": {"exists": True},
        }
        if transforms:
            write["updateTransforms"] = transforms

        await self._request("POST", f"{self._docs_path}:commit", json={"writes": [write]})
        self._wake_subscriptions()

    async def delete_record(self, task_id: str) -> None:
        await self._request("DELETE", self._doc_name(task_id))
        self._wake_subscriptions()

    async def create_record(self, fields: dict[str, Any]) -> str:
        plain = {k: v for k, v in fields.items() if not is_server_timestamp(v)}
        resp = await self._request(
            "POST",
            f"{self._docs_path}/{self.collection}",
            json={"fields": encode_fields(plain)},
        )
        task_id = _doc_id(resp.json()["name"])
        self._wake_subscriptions()
        return task_id

    def server_timestamp(self) -> Any:
        return SERVER_TIMESTAMP

    def _wake_subscriptions(self) -> None:
        self._subscriptions = [s for s in self._subscriptions if s.active]
        for sub in self._subscriptions:
            sub.wake()

    async def aclose(self) -> None:
        for sub in self._subscriptions:
            sub.cancel()
        self._subscriptions.clear()
        await self._client.aclose()


def _error_message(resp: httpx.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(payload, dict):
        err = payload.get("error")
        if isinstance(err, dict):
            return str(err.get("message") or err.get("status") or "")
    return ""
