import typing
import uuid
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, Float, Integer, Interval, LargeBinary, Numeric, String, Time, Uuid
from sqlalchemy.types import TypeEngine


mapping: typing.Dict[typing.Type, typing.Type[TypeEngine]] = {
    str: String,
    bool: Boolean,
    int: Integer,
    float: Float,
    Decimal: Numeric,
    datetime: DateTime,
    date: Date,
    time: Time,
    timedelta: Interval,
    bytes: LargeBinary,
    uuid.UUID: Uuid,
}


def convert(arg: typing.Type) -> typing.Type[TypeEngine]:
    try:
        return mapping[arg]
    except KeyError:
        raise TypeError(f"Unsupported type - {arg}")
