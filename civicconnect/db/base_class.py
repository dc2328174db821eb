import re
from datetime import datetime
from typing import Any

from sqlalchemy import Column, DateTime
from sqlalchemy.orm import as_declarative, declared_attr

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


class TimestampMixin:
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


@as_declarative()
class Base(TimestampMixin):
    """
    Declarative base for all CivicConnect tables.

    Table names are the snake_cased class name ("Issue" -> "issue").
    """

    id: Any
    __name__: str

    @declared_attr
    def __tablename__(cls) -> str:
        return _CAMEL_BOUNDARY.sub("_", cls.__name__).lower()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id}>"
