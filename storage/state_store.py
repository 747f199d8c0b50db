"""Key/value persistence for the local task state."""
from __future__ import annotations

import json
from typing import Any, Callable, Optional

from sqlmodel import SQLModel, Session, create_engine

from core.settings import STATE_DB_PATH
from datetime_utils import utc_now
from models.local_state import LocalStateRecord


STATE_TABLES = [LocalStateRecord.__table__]

_state_engine = None


def get_state_engine():
    """Return (and lazily create) the SQLAlchemy engine for the state store."""

    global _state_engine
    if _state_engine is None:
        STATE_DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        _state_engine = create_engine(f"sqlite:///{STATE_DB_PATH.as_posix()}", echo=False)
    return _state_engine


def init_state_store(engine=None) -> None:
    SQLModel.metadata.create_all(engine or get_state_engine(), tables=STATE_TABLES)


def get_state_session() -> Session:
    return Session(get_state_engine())


class StateStore:
    """``get``/``set`` primitives over the ``localstaterecord`` table."""

    def __init__(self, session_factory: Callable[[], Session] = get_state_session):
        self._session_factory = session_factory

    def get(self, key: str, default: Any = None) -> Any:
        with self._session_factory() as session:
            row = session.get(LocalStateRecord, key)
            if row is None:
                return default
            try:
                return json.loads(row.payload_json)
            except json.JSONDecodeError:
                return default

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False, sort_keys=True)
        with self._session_factory() as session:
            row = session.get(LocalStateRecord, key)
            if row is None:
                row = LocalStateRecord(key=key)
            row.payload_json = payload
            row.updated_at = utc_now()
            session.add(row)
            session.commit()

    def delete(self, key: str) -> None:
        with self._session_factory() as session:
            row: Optional[LocalStateRecord] = session.get(LocalStateRecord, key)
            if row is not None:
                session.delete(row)
                session.commit()


__all__ = ["StateStore", "get_state_engine", "get_state_session", "init_state_store"]
