"""Key-value rows backing the registry and history documents."""

import json
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from furlong.config import local_now_naive
from furlong.models.database import Base


class StoreEntry(Base):
    """One JSON document stored under a key, with an optimistic version counter."""

    __tablename__ = "store_entries"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, default="null")
    version: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=local_now_naive, onupdate=local_now_naive
    )

    @property
    def value(self) -> Any:
        return json.loads(self.value_json) if self.value_json else None

    @value.setter
    def value(self, data: Any) -> None:
        self.value_json = json.dumps(data)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "key": self.key,
            "version": self.version,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
