"""
Module: payroll_kernel.db.types
Responsibility: Column types and helpers for exact money and rate storage.
    Centralizes precision, rounding, and currency-code validation so that
    every model and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    selectors/ and outer layers.  MUST NOT import from any of those.

Invariants enforced:
    - No floats anywhere in payroll storage.  ``ExactDecimal`` is
      ``NUMERIC(p, s)`` on PostgreSQL and a canonical decimal string on
      SQLite, whose NUMERIC affinity would otherwise round-trip through a
      binary double.
    - Values are written exactly or not at all: an amount with more decimal
      places than the column scale is refused, never rounded.
    - ``round_money()`` is the only sanctioned rounding function and is
      used for display text only.

Failure modes:
    - InvalidOperation if a non-numeric value reaches ``ExactDecimal``.
    - ValueError if a value does not fit ``NUMERIC(p, s)`` exactly.
    - ``validate_currency_code`` returns False for unknown ISO 4217 codes.
"""

from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import Numeric, String
from sqlalchemy.types import TypeDecorator

MONEY_PRECISION = 38
MONEY_SCALE = 18
RATE_SCALE = 18
DISPLAY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


class ExactDecimal(TypeDecorator):
    """
    Decimal column that never stores a binary float.

    Contract:
        PostgreSQL: native ``NUMERIC(precision, scale)``.
        SQLite: ``VARCHAR(64)`` holding ``str(Decimal)``.

    Guarantees:
        - process_bind_param: pads to ``scale`` places; raises ValueError
          for a value that would need rounding or more than ``precision``
          digits.
        - process_result_value: always returns ``Decimal`` or None.
        - cache_ok=True enables SQLAlchemy statement caching.
    """

    impl = Numeric
    cache_ok = True

    def __init__(self, precision: int = MONEY_PRECISION, scale: int = MONEY_SCALE):
        super().__init__()
        self.precision = precision
        self.scale = scale
        self._quantum = Decimal(1).scaleb(-scale)

    def fits(self, value: Decimal) -> bool:
        """True when ``value`` is stored without rounding or overflow."""
        return fits_numeric(value, self.precision, self.scale)

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(64))
        return dialect.type_descriptor(
            Numeric(self.precision, self.scale, asdecimal=True)
        )

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, float):
            raise TypeError("float is not accepted for exact decimal columns")
        value = Decimal(value)
        if not self.fits(value):
            raise ValueError(
                f"{value} does not fit NUMERIC({self.precision}, {self.scale}) exactly"
            )
        quantized = value.quantize(self._quantum, context=Context(prec=self.precision))
        if dialect.name == "sqlite":
            return str(quantized)
        return quantized

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(str(value)) if not isinstance(value, Decimal) else value


def fits_numeric(
    value: Decimal,
    precision: int = MONEY_PRECISION,
    scale: int = MONEY_SCALE,
) -> bool:
    """True when ``value`` is representable in ``NUMERIC(precision, scale)``."""
    if not value.is_finite():
        return False
    try:
        quantized = value.quantize(
            Decimal(1).scaleb(-scale), context=Context(prec=precision),
        )
    except InvalidOperation:
        return False
    return quantized == value


# Monetary amount, 38 digits total, 18 decimal places
Money = Annotated[Decimal, ExactDecimal(MONEY_PRECISION, MONEY_SCALE)]

# Tax rate fraction, 18 decimal places
Rate = Annotated[Decimal, ExactDecimal(MONEY_PRECISION, RATE_SCALE)]

# ISO 4217 currency code (e.g., "USD", "KHR")
CurrencyCode = Annotated[str, String(3)]

# Short identifier strings
ShortCode = Annotated[str, String(50)]

# Long text for descriptions
LongText = Annotated[str, String(4000)]


def round_money(
    value: Decimal,
    decimal_places: int = DISPLAY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to ``decimal_places``.

    This is the ONLY sanctioned rounding function.  Stored amounts are never
    passed through it; it exists for human-readable descriptions and reports.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)


ISO_4217_CURRENCIES: frozenset[str] = frozenset({
    "USD", "EUR", "GBP", "JPY", "CHF", "CAD", "AUD", "NZD",
    "AED", "AFN", "ALL", "AMD", "ANG", "AOA", "ARS", "AWG", "AZN",
    "BAM", "BBD", "BDT", "BGN", "BHD", "BIF", "BMD", "BND", "BOB", "BRL", "BSD", "BTN", "BWP", "BYN", "BZD",
    "CDF", "CLP", "CNY", "COP", "CRC", "CUP", "CVE", "CZK",
    "DJF", "DKK", "DOP", "DZD",
    "EGP", "ERN", "ETB",
    "FJD", "FKP",
    "GEL", "GHS", "GIP", "GMD", "GNF", "GTQ", "GYD",
    "HKD", "HNL", "HTG", "HUF",
    "IDR", "ILS", "INR", "IQD", "IRR", "ISK",
    "JMD", "JOD",
    "KES", "KGS", "KHR", "KMF", "KPW", "KRW", "KWD", "KYD", "KZT",
    "LAK", "LBP", "LKR", "LRD", "LSL", "LYD",
    "MAD", "MDL", "MGA", "MKD", "MMK", "MNT", "MOP", "MRU", "MUR", "MVR", "MWK", "MXN", "MYR", "MZN",
    "NAD", "NGN", "NIO", "NOK", "NPR",
    "OMR",
    "PAB", "PEN", "PGK", "PHP", "PKR", "PLN", "PYG",
    "QAR",
    "RON", "RSD", "RUB", "RWF",
    "SAR", "SBD", "SCR", "SDG", "SEK", "SGD", "SHP", "SLE", "SOS", "SRD", "SSP", "STN", "SVC", "SYP", "SZL",
    "THB", "TJS", "TMT", "TND", "TOP", "TRY", "TTD", "TWD", "TZS",
    "UAH", "UGX", "UYU", "UZS",
    "VES", "VND", "VUV",
    "WST",
    "XAF", "XCD", "XOF", "XPF",
    "YER",
    "ZAR", "ZMW", "ZWL",
})


def validate_currency_code(code: str) -> bool:
    """Return True when ``code`` is an uppercase ISO 4217 code."""
    return code in ISO_4217_CURRENCIES
