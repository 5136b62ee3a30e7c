"""
Converts command-line tokens into typed values.

`coerce` is pure: the same (type, token) pair always yields the same value or
the same error. Value-parse failures raise `InvalidValue`; types with no rule
raise `UnsupportedType`.
"""

import datetime
import decimal
import types
import typing
import uuid
from typing import Any, Optional, Tuple

import dateutil.parser

from cmdwrap.cmdwrap_datatypes import ParamType, InvalidValue, UnsupportedType


# --- Token parsers ---

def _parse_bool(token: str) -> bool:
    text = token.strip().lower()
    if text == "true":
        return True
    if text == "false":
        return False
    raise ValueError(token)


def _parse_int(token: str) -> int:
    # int() accepts '1_000'; the command line should not
    if "_" in token:
        raise ValueError(token)
    return int(token)


def _parse_decimal(token: str) -> decimal.Decimal:
    try:
        value = decimal.Decimal(token.strip())
    except decimal.InvalidOperation as e:
        raise ValueError(token) from e
    if not value.is_finite():
        raise ValueError(token)
    return value


def _parse_char(token: str) -> str:
    if not token:
        raise ValueError("empty token")
    return token[0]


def _parse_datetime(token: str) -> datetime.datetime:
    try:
        return dateutil.parser.parse(token)
    except OverflowError as e:
        raise ValueError(token) from e


def _parse_date(token: str) -> datetime.date:
    return _parse_datetime(token).date()


_PARSERS = {
    ParamType.STRING: lambda t: t,
    ParamType.BOOLEAN: _parse_bool,
    ParamType.FLOAT: float,
    ParamType.DOUBLE: float,
    ParamType.DECIMAL: _parse_decimal,
    ParamType.CHAR: _parse_char,
    ParamType.DATETIME: _parse_datetime,
    ParamType.DATE: _parse_date,
    ParamType.UUID: uuid.UUID,
}


def coerce(param_type: ParamType, token: str, type_name: Optional[str] = None, parameter: Optional[str] = None) -> Any:
    """Convert `token` into a value of `param_type`."""
    shown = type_name or param_type.value
    if param_type is ParamType.UNSUPPORTED:
        raise UnsupportedType(shown, parameter)

    if param_type.is_integer:
        try:
            value = _parse_int(token)
        except (ValueError, TypeError):
            raise InvalidValue(token, shown, parameter) from None
        bounds = param_type.bounds
        if bounds is not None and not (bounds[0] <= value <= bounds[1]):
            raise InvalidValue(token, shown, parameter)
        return value

    parser = _PARSERS.get(param_type)
    if parser is None:
        raise UnsupportedType(shown, parameter)
    try:
        return parser(token)
    except (ValueError, TypeError, AttributeError):
        raise InvalidValue(token, shown, parameter) from None


# --- Annotation mapping ---

_ANNOTATION_TYPES = {
    str: ParamType.STRING,
    bool: ParamType.BOOLEAN,
    int: ParamType.INTEGER,
    float: ParamType.DOUBLE,
    decimal.Decimal: ParamType.DECIMAL,
    datetime.datetime: ParamType.DATETIME,
    datetime.date: ParamType.DATE,
    uuid.UUID: ParamType.UUID,
}


def _annotation_name(annotation: Any) -> str:
    name = getattr(annotation, "__qualname__", None) or getattr(annotation, "__name__", None)
    if isinstance(name, str):
        module = getattr(annotation, "__module__", None)
        if module and module != "builtins":
            return f"{module}.{name}"
        return name
    return str(annotation)


def param_type_for(annotation: Any) -> Tuple[ParamType, Optional[str]]:
    """Map a Python annotation onto a ParamType.

    Returns the type and, for unsupported annotations, a display name.
    `Optional[X]` unwraps to X, and `Annotated[int, ParamType.UINT8]`
    selects an explicit ParamType.
    """
    if annotation is None or annotation is type(None):
        return ParamType.UNSUPPORTED, "None"
    if isinstance(annotation, ParamType):
        return annotation, None

    origin = typing.get_origin(annotation)
    if origin is typing.Annotated:
        base, *extras = typing.get_args(annotation)
        for extra in extras:
            if isinstance(extra, ParamType):
                return extra, None
        return param_type_for(base)

    if origin is typing.Union or isinstance(annotation, types.UnionType):
        members = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(members) == 1:
            return param_type_for(members[0])
        return ParamType.UNSUPPORTED, " | ".join(_annotation_name(m) for m in members)

    # Exact lookup first; bool is an int subclass and datetime a date subclass
    found = _ANNOTATION_TYPES.get(annotation)
    if found is not None:
        return found, None
    return ParamType.UNSUPPORTED, _annotation_name(annotation)


def param_type_for_value(value: Any) -> ParamType:
    """Infer a ParamType from a default value when there is no annotation."""
    if value is None:
        return ParamType.STRING
    found, _ = param_type_for(type(value))
    return found if found is not ParamType.UNSUPPORTED else ParamType.STRING
