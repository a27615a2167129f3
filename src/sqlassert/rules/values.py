"""Type-directed conversion between literals, result cells and value domains.

Every value that enters or leaves a rule goes through one of these functions,
keyed by the rule's declared ``DataType``:

- ``cast_literal``: author-supplied numeric literal -> Decimal / float / int
- ``parse_temporal_literal``: author-supplied date text -> date / datetime
- ``decode_cell``: raw query result cell -> typed domain value
- ``coerce_value``: interchange form (ISO strings, decimal strings) -> domain value

Domain representations:

    DATE      datetime.date
    DATETIME  datetime.datetime (naive)
    DECIMAL   decimal.Decimal
    FLOAT     float
    INTEGER   int
    TEXT      str
"""

from __future__ import annotations

import math
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlassert.core.models.base import DataType, Dialect
from sqlassert.rules.errors import ConfigurationError, ConversionError, EmptyResult, FormatError

NumericValue = Decimal | float | int
TemporalValue = datetime | date
DomainValue = datetime | date | Decimal | float | int | str


# =============================================================================
# Numeric literals
# =============================================================================


def cast_literal(value: Any, data_type: DataType, finite: bool = True) -> NumericValue:
    """Convert a numeric literal into the canonical representation of a domain.

    Args:
        value: int, float, Decimal or numeric text
        data_type: One of DECIMAL, FLOAT, INTEGER
        finite: Reject infinities and NaN for FLOAT

    Returns:
        Decimal, float or int respectively

    Raises:
        ConfigurationError: If the domain is not numeric
        ConversionError: If the literal cannot be represented in the domain
    """
    if not data_type.is_numeric:
        raise ConfigurationError(
            "The data type for a number rule should be one of DECIMAL, FLOAT, or INTEGER, "
            f"but {data_type.value} was provided."
        )
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal, str)):
        raise ConversionError(f"The value {value!r} is not a number.")

    if data_type is DataType.DECIMAL:
        return _to_decimal(value)
    if data_type is DataType.FLOAT:
        return _to_float(value, finite)
    return _to_int(value)


def _to_decimal(value: int | float | Decimal | str) -> Decimal:
    try:
        if isinstance(value, float):
            # repr gives the shortest text that round-trips, so 2.27 -> Decimal("2.27")
            result = Decimal(repr(value))
        elif isinstance(value, str):
            result = Decimal(value.strip())
        else:
            result = Decimal(value)
    except (InvalidOperation, ValueError) as e:
        raise ConversionError(f"The value {value!r} could not be converted to a decimal.") from e
    if not result.is_finite():
        raise ConversionError(f"The value {value!r} could not be converted to a decimal.")
    return result


def _to_float(value: int | float | Decimal | str, finite: bool = True) -> float:
    try:
        result = float(value.strip() if isinstance(value, str) else value)
    except (ValueError, OverflowError) as e:
        raise ConversionError(f"The value {value!r} could not be converted to a float.") from e
    if finite and not math.isfinite(result):
        raise ConversionError(f"The value {value!r} could not be converted to a float.")
    return result


def _to_int(value: int | float | Decimal | str) -> int:
    if isinstance(value, int):
        return value
    number = _to_decimal(value) if not isinstance(value, Decimal) else value
    if not number.is_finite() or number != number.to_integral_value():
        raise ConversionError(f"The value {value!r} could not be converted to an integer.")
    return int(number)


# =============================================================================
# Temporal literals
# =============================================================================


def _parse_date_only(text: str) -> datetime:
    return datetime.combine(date.fromisoformat(text), time.min)


def _parse_date_time(text: str) -> datetime:
    return datetime.fromisoformat(text)


# DATE values are tried as plain dates first, DATETIME values as timestamps first.
_TEXT_PARSERS = {
    DataType.DATE: (_parse_date_only, _parse_date_time),
    DataType.DATETIME: (_parse_date_time, _parse_date_only),
}


def _parse_temporal_text(text: str, data_type: DataType) -> datetime:
    for parser in _TEXT_PARSERS[data_type]:
        try:
            return parser(text.strip())
        except ValueError:
            continue
    raise FormatError(
        f"Could not parse {text!r} as a {data_type.value} using ISO-8601 date or date-time formats."
    )


def _narrow(value: datetime, data_type: DataType) -> TemporalValue:
    return value.date() if data_type is DataType.DATE else value


def parse_temporal_literal(value: Any, data_type: DataType) -> TemporalValue:
    """Convert an author-supplied date or date-time into the domain's representation.

    Raises:
        ConfigurationError: If the domain is not DATE or DATETIME
        FormatError: If text matches neither accepted format
    """
    if not data_type.is_temporal:
        raise ConfigurationError(
            f"The data type for a date rule should be DATE or DATETIME, but {data_type.value} "
            "was provided."
        )
    if isinstance(value, datetime):
        return _narrow(value, data_type)
    if isinstance(value, date):
        return _narrow(datetime.combine(value, time.min), data_type)
    if isinstance(value, str):
        return _narrow(_parse_temporal_text(value, data_type), data_type)
    raise FormatError(f"Cannot interpret {value!r} as a {data_type.value}.")


# =============================================================================
# Result cells
# =============================================================================


def decode_cell(raw: Any, data_type: DataType, dialect: Dialect) -> DomainValue:
    """Convert one raw result cell into a typed domain value.

    Dialects without native temporal columns (SQLite) return dates as text,
    which is parsed; every other dialect must hand back a native date value.
    FLOAT columns may hold infinities and NaN, which are kept as is.

    Raises:
        EmptyResult: If the cell is NULL
        FormatError: If the cell cannot be read as the declared domain
    """
    if raw is None:
        raise EmptyResult(f"Expected a {data_type.value} value, but the cell was NULL.")

    if data_type.is_temporal:
        if isinstance(raw, (date, datetime)):
            return parse_temporal_literal(raw, data_type)
        if isinstance(raw, str) and not dialect.has_native_temporal_types:
            return _narrow(_parse_temporal_text(raw, data_type), data_type)
        raise FormatError(
            f"Cannot read {raw!r} as a {data_type.value} value from a {dialect.value} datasource."
        )

    if data_type.is_numeric:
        try:
            return cast_literal(raw, data_type, finite=False)
        except ConversionError as e:
            raise FormatError(
                f"Cannot read {raw!r} as a {data_type.value} value "
                f"from a {dialect.value} datasource."
            ) from e

    if isinstance(raw, bytes):
        return raw.decode("utf-8")
    return raw if isinstance(raw, str) else str(raw)


def coerce_value(value: Any, data_type: DataType, finite: bool = True) -> DomainValue:
    """Re-type a value that was encoded to a JSON-friendly form.

    Observed values pass ``finite=False`` since FLOAT cells may be infinite.
    """
    if data_type.is_temporal:
        return parse_temporal_literal(value, data_type)
    if data_type.is_numeric:
        return cast_literal(value, data_type, finite)
    return value if isinstance(value, str) else str(value)
