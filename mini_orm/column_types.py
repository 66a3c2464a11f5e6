import typing
import uuid
from datetime import date, datetime, time, timedelta
from decimal import Decimal


# Column value kinds a scalar attribute may hold to be mapped onto a table column.
MAPPABLE_TYPES: typing.FrozenSet[typing.Type] = frozenset(
    {str, bool, int, float, Decimal, datetime, date, time, timedelta, bytes, uuid.UUID}
)


def is_mappable(field_type: typing.Type) -> bool:
    return field_type in MAPPABLE_TYPES
