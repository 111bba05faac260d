"""Declarative base and column aliases shared by atkit's SQL models."""

from datetime import datetime

from sqlalchemy import DateTime, String, orm
from sqlalchemy.orm import mapped_column

from typing_extensions import Annotated

str512 = Annotated[str, 512]
storekey = Annotated[str, mapped_column(String(512), primary_key=True)]
timestamp = Annotated[datetime, "timestamp"]


class Base(orm.DeclarativeBase):
    type_annotation_map = {
        str512: String(512),
        storekey: String(512),
        timestamp: DateTime(timezone=True),
    }
