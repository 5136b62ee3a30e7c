import datetime
import decimal
import typing
import uuid

import pytest

from cmdwrap.cmdwrap_coerce import coerce, param_type_for, param_type_for_value
from cmdwrap.cmdwrap_datatypes import ParamType, InvalidValue, UnsupportedType


def test_string_is_identity():
    assert coerce(ParamType.STRING, "hello world") == "hello world"
    assert coerce(ParamType.STRING, "") == ""


@pytest.mark.parametrize("token,expected", [
    ("true", True), ("True", True), ("TRUE", True),
    ("false", False), ("False", False), (" false ", False),
])
def test_boolean_is_case_insensitive(token, expected):
    assert coerce(ParamType.BOOLEAN, token) is expected


@pytest.mark.parametrize("token", ["yes", "1", "", "truthy"])
def test_boolean_rejects_other_words(token):
    with pytest.raises(InvalidValue):
        coerce(ParamType.BOOLEAN, token)


def test_integer_parse():
    assert coerce(ParamType.INTEGER, "42") == 42
    assert coerce(ParamType.INT32, "-17") == -17
    assert coerce(ParamType.INTEGER, str(2**80)) == 2**80


@pytest.mark.parametrize("ptype,token", [
    (ParamType.UINT8, "256"),
    (ParamType.UINT8, "-1"),
    (ParamType.INT8, "128"),
    (ParamType.INT16, "-32769"),
    (ParamType.UINT32, "4294967296"),
    (ParamType.INT64, str(2**63)),
])
def test_integer_widths_are_range_checked(ptype, token):
    with pytest.raises(InvalidValue):
        coerce(ptype, token)


def test_integer_width_bounds_inclusive():
    assert coerce(ParamType.UINT8, "255") == 255
    assert coerce(ParamType.INT8, "-128") == -128
    assert coerce(ParamType.UINT64, str(2**64 - 1)) == 2**64 - 1


@pytest.mark.parametrize("token", ["4.2", "abc", "", "1_000"])
def test_integer_rejects_non_integers(token):
    with pytest.raises(InvalidValue):
        coerce(ParamType.INTEGER, token)


def test_floating_point_family():
    assert coerce(ParamType.DOUBLE, "2.5") == 2.5
    assert coerce(ParamType.FLOAT, "-1e3") == -1000.0
    assert coerce(ParamType.DECIMAL, "10.25") == decimal.Decimal("10.25")
    with pytest.raises(InvalidValue):
        coerce(ParamType.DOUBLE, "two")
    with pytest.raises(InvalidValue):
        coerce(ParamType.DECIMAL, "ten")
    with pytest.raises(InvalidValue):
        coerce(ParamType.DECIMAL, "NaN")


def test_char_takes_first_character():
    assert coerce(ParamType.CHAR, "xyz") == "x"
    with pytest.raises(InvalidValue):
        coerce(ParamType.CHAR, "")


def test_datetime_and_date():
    assert coerce(ParamType.DATETIME, "2012-03-04 05:06:07") == datetime.datetime(2012, 3, 4, 5, 6, 7)
    assert coerce(ParamType.DATE, "2012-03-04") == datetime.date(2012, 3, 4)
    with pytest.raises(InvalidValue):
        coerce(ParamType.DATETIME, "not a date")


def test_uuid():
    text = "12345678-1234-5678-1234-567812345678"
    assert coerce(ParamType.UUID, text) == uuid.UUID(text)
    with pytest.raises(InvalidValue):
        coerce(ParamType.UUID, "not-a-uuid")


def test_unsupported_type_is_distinct_from_invalid_value():
    with pytest.raises(UnsupportedType) as exc:
        coerce(ParamType.UNSUPPORTED, "anything", "Widget", "thing")
    assert not isinstance(exc.value, InvalidValue)
    assert "cannot be bound from the command line" in str(exc.value)
    assert exc.value.parameter == "thing"


def test_invalid_value_names_parameter_token_and_type():
    with pytest.raises(InvalidValue) as exc:
        coerce(ParamType.INTEGER, "abc", parameter="count")
    err = exc.value
    assert err.token == "abc"
    assert err.parameter == "count"
    assert err.type_name == "int"
    assert "--count" in str(err) and "abc" in str(err)


class Widget:
    pass


@pytest.mark.parametrize("annotation,expected", [
    (str, ParamType.STRING),
    (bool, ParamType.BOOLEAN),
    (int, ParamType.INTEGER),
    (float, ParamType.DOUBLE),
    (decimal.Decimal, ParamType.DECIMAL),
    (datetime.datetime, ParamType.DATETIME),
    (datetime.date, ParamType.DATE),
    (uuid.UUID, ParamType.UUID),
    (typing.Optional[int], ParamType.INTEGER),
    (int | None, ParamType.INTEGER),
    (typing.Annotated[int, ParamType.UINT8], ParamType.UINT8),
    (ParamType.CHAR, ParamType.CHAR),
])
def test_param_type_for_annotations(annotation, expected):
    ptype, _ = param_type_for(annotation)
    assert ptype is expected


def test_param_type_for_unsupported_keeps_a_display_name():
    ptype, name = param_type_for(Widget)
    assert ptype is ParamType.UNSUPPORTED
    assert name.endswith("Widget")
    ptype, name = param_type_for(list)
    assert ptype is ParamType.UNSUPPORTED
    assert name == "list"


def test_param_type_for_value_infers_from_defaults():
    assert param_type_for_value(3) is ParamType.INTEGER
    assert param_type_for_value(True) is ParamType.BOOLEAN
    assert param_type_for_value(None) is ParamType.STRING
    assert param_type_for_value([1]) is ParamType.STRING
