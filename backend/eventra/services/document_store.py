import json
import logging
import sqlite3
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional, Protocol
from uuid import uuid4

logger = logging.getLogger(__name__)

Document = Dict[str, Any]


def new_document_id() -> str:
    return uuid4().hex[:20]


class DocumentStore(Protocol):
    """Get/set/query primitives over named collections of loosely-typed documents."""

    def create(self, collection: str, data: Document, doc_id: Optional[str] = None) -> str: ...

    def create_many(self, collection: str, docs: Iterable[Document]) -> List[str]: ...

    def get(self, collection: str, doc_id: str) -> Optional[Document]: ...

    def list(self, collection: str) -> List[Document]: ...

    def update(self, collection: str, doc_id: str, fields: Document) -> None: ...

    def delete(self, collection: str, doc_id: str) -> None: ...


def _strip_id(data: Document) -> Document:
    return {key: value for key, value in data.items() if key != "id"}


class SqliteDocumentStore:
    def __init__(self, db_path: str) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS documents (
                        collection TEXT NOT NULL,
                        id TEXT NOT NULL,
                        data_json TEXT NOT NULL DEFAULT '{}',
                        PRIMARY KEY (collection, id)
                    )
                    """
                )
                conn.commit()

    def create(self, collection: str, data: Document, doc_id: Optional[str] = None) -> str:
        doc_id = doc_id or new_document_id()
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO documents (collection, id, data_json) VALUES (?, ?, ?)
                    ON CONFLICT(collection, id) DO UPDATE SET data_json = excluded.data_json
                    """,
                    (collection, doc_id, json.dumps(_strip_id(data))),
                )
                conn.commit()
        return doc_id

    def create_many(self, collection: str, docs: Iterable[Document]) -> List[str]:
        rows = [(collection, new_document_id(), json.dumps(_strip_id(doc))) for doc in docs]
        if not rows:
            return []
        with self._lock:
            with self._connect() as conn:
                conn.executemany(
                    "INSERT INTO documents (collection, id, data_json) VALUES (?, ?, ?)",
                    rows,
                )
                conn.commit()
        return [row[1] for row in rows]

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        with self._lock:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT id, data_json FROM documents WHERE collection = ? AND id = ?",
                    (collection, doc_id),
                ).fetchone()
        if not row:
            return None
        return {"id": row["id"], **self._safe_json_object(row["data_json"])}

    def list(self, collection: str) -> List[Document]:
        with self._lock:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT id, data_json FROM documents WHERE collection = ? ORDER BY rowid",
                    (collection,),
                ).fetchall()
        return [{"id": row["id"], **self._safe_json_object(row["data_json"])} for row in rows]

    def update(self, collection: str, doc_id: str, fields: Document) -> None:
        with self._lock:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT data_json FROM documents WHERE collection = ? AND id = ?",
                    (collection, doc_id),
                ).fetchone()
                current = self._safe_json_object(row["data_json"]) if row else {}
                current.update(_strip_id(fields))
                conn.execute(
                    """
                    INSERT INTO documents (collection, id, data_json) VALUES (?, ?, ?)
                    ON CONFLICT(collection, id) DO UPDATE SET data_json = excluded.data_json
                    """,
                    (collection, doc_id, json.dumps(current)),
                )
                conn.commit()

    def delete(self, collection: str, doc_id: str) -> None:
        with self._lock:
            with self._connect() as conn:
                conn.execute("DELETE FROM documents WHERE collection = ? AND id = ?", (collection, doc_id))
                conn.commit()

    def _safe_json_object(self, raw_value: Any) -> Document:
        if raw_value in (None, ""):
            return {}
        try:
            parsed = json.loads(raw_value)
        except json.JSONDecodeError:
            logger.warning("Skipping undecodable document payload")
            return {}
        return parsed if isinstance(parsed, dict) else {}


class FirebaseDocumentStore:
    """Firebase Realtime Database backend; every collection is a child of the root."""

    def __init__(self, credentials_path: str, database_url: str) -> None:
        import firebase_admin
        from firebase_admin import credentials, db

        if not database_url:
            raise ValueError("FIREBASE_DATABASE_URL is required for the firebase store backend")
        if not firebase_admin._apps:  # pylint: disable=protected-access
            options = {"databaseURL": database_url}
            if credentials_path:
                firebase_admin.initialize_app(credentials.Certificate(credentials_path), options)
            else:
                firebase_admin.initialize_app(options=options)
            logger.info("Firebase Realtime Database initialized (%s)", database_url)
        self._db = db

    def _ref(self, path: str):
        return self._db.reference(path)

    def create(self, collection: str, data: Document, doc_id: Optional[str] = None) -> str:
        payload = _strip_id(data)
        if doc_id:
            self._ref(f"{collection}/{doc_id}").set(payload)
            return doc_id
        return self._ref(collection).push(payload).key

    def create_many(self, collection: str, docs: Iterable[Document]) -> List[str]:
        batch = {new_document_id(): _strip_id(doc) for doc in docs}
        if batch:
            # One multi-path update commits the whole batch atomically.
            self._ref(collection).update(batch)
        return list(batch.keys())

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        value = self._ref(f"{collection}/{doc_id}").get()
        if not isinstance(value, dict):
            return None
        return {"id": doc_id, **value}

    def list(self, collection: str) -> List[Document]:
        value = self._ref(collection).get()
        if not isinstance(value, dict):
            return []
        return [{"id": key, **doc} for key, doc in value.items() if isinstance(doc, dict)]

    def update(self, collection: str, doc_id: str, fields: Document) -> None:
        self._ref(f"{collection}/{doc_id}").update(_strip_id(fields))

    def delete(self, collection: str, doc_id: str) -> None:
        self._ref(f"{collection}/{doc_id}").delete()
