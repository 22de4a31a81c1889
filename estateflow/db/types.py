import enum
from typing import Type

from sqlalchemy import Enum as SQLEnum


def enum_column(enum_cls: Type[enum.Enum], length: int = 20) -> SQLEnum:
    """Store the enum's value (e.g. "TeamLead") as a plain string column."""
    return SQLEnum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
