"""
Declarative base shared by every ORM model.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    # models annotate plain Python types next to Column() definitions
    __allow_unmapped__ = True
