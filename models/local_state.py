"""SQLModel table backing the local get/set state primitives."""

from __future__ import annotations

from datetime import datetime

from sqlmodel import Field, SQLModel

from datetime_utils import utc_now


class LocalStateRecord(SQLModel, table=True):
    key: str = Field(primary_key=True)
    payload_json: str = "null"
    updated_at: datetime = Field(default_factory=utc_now)


__all__ = ["LocalStateRecord"]
