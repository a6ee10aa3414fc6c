"""
QRIS Types & Constants — EMV QRCPS Merchant Presented Mode
===========================================================

Foundational type definitions, protocol constants, error classes and the
CRC-16 checksum for the QRIS codec. This module has ZERO external
dependencies beyond the Python standard library.

Specification Authority:
  - EMV QR Code Specification for Payment Systems (QRCPS), Merchant
    Presented Mode — TLV framing, CRC field 63
  - QRIS (Bank Indonesia) — global unique identifier, IDR currency, ID country

Every field in a payload is framed as:
    tag(2 decimal digits) + length(2 decimal digits, zero-padded) + value
"""

import math
from dataclasses import dataclass
from typing import Dict, Optional, Any, Union
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

# ═══════════════════════════════════════════════════════════════
# FIELD TAGS
# ═══════════════════════════════════════════════════════════════

TAG_PAYLOAD_FORMAT      = "00"
TAG_POINT_OF_INITIATION = "01"
TAG_MERCHANT_ACCOUNT    = "26"  # 26-51 reserved for account info; QRIS uses 26
TAG_CATEGORY_CODE       = "52"
TAG_CURRENCY            = "53"
TAG_AMOUNT              = "54"
TAG_COUNTRY_CODE        = "58"
TAG_MERCHANT_NAME       = "59"
TAG_MERCHANT_CITY       = "60"
TAG_ADDITIONAL_DATA     = "62"
TAG_CRC                 = "63"

# Nested subfields
SUBTAG_GLOBAL_ID        = "00"  # inside 26
SUBTAG_MERCHANT_PAN     = "01"  # inside 26
SUBTAG_BILL_NUMBER      = "01"  # inside 62


# ═══════════════════════════════════════════════════════════════
# PROTOCOL CONSTANTS (fixed by the standard, not configurable)
# ═══════════════════════════════════════════════════════════════

PAYLOAD_FORMAT_INDICATOR = "01"
POI_STATIC               = "11"  # same QR for all transactions
POI_DYNAMIC              = "12"  # amount embedded, one QR per transaction
QRIS_GLOBAL_ID           = "ID.CO.QRIS.WWW"
MERCHANT_CATEGORY_CODE   = "5999"  # miscellaneous retail
CURRENCY_IDR             = "360"   # ISO 4217 numeric
COUNTRY_CODE             = "ID"

CRC_PREFIX               = TAG_CRC + "04"  # "6304"
PAYLOAD_PREFIX           = TAG_PAYLOAD_FORMAT + "02" + PAYLOAD_FORMAT_INDICATOR  # "000201"

MAX_NAME_LENGTH          = 25
MAX_CITY_LENGTH          = 15
MAX_FIELD_LENGTH         = 99  # two decimal digits of length prefix
MIN_PAYLOAD_LENGTH       = 50  # sanity floor for validate()

# CRC-16/CCITT-FALSE parameters
CRC_POLYNOMIAL           = 0x1021
CRC_INITIAL              = 0xFFFF

CENT                     = Decimal("0.01")  # amount precision of field 54

# Fallbacks used when a payment method's account details are incomplete
DEFAULT_MERCHANT_NAME    = "AGDS Corp"
DEFAULT_MERCHANT_CITY    = "Jakarta"


# Human-readable keys for parsed payloads
FIELD_NAMES = {
    TAG_PAYLOAD_FORMAT:      "payloadFormatIndicator",
    TAG_POINT_OF_INITIATION: "pointOfInitiation",
    TAG_MERCHANT_ACCOUNT:    "merchantAccountInfo",
    TAG_CATEGORY_CODE:       "merchantCategoryCode",
    TAG_CURRENCY:            "transactionCurrency",
    TAG_AMOUNT:              "transactionAmount",
    TAG_COUNTRY_CODE:        "countryCode",
    TAG_MERCHANT_NAME:       "merchantName",
    TAG_MERCHANT_CITY:       "merchantCity",
    TAG_ADDITIONAL_DATA:     "additionalData",
    TAG_CRC:                 "crc",
}


def field_name(tag: str) -> str:
    """Readable key for a tag; unknown tags become ``field_<tag>``."""
    return FIELD_NAMES.get(tag, f"field_{tag}")


# ═══════════════════════════════════════════════════════════════
# ERROR CLASSES
# ═══════════════════════════════════════════════════════════════

class QRISError(Exception):
    """Base error for all QRIS codec operations."""
    pass

class QRISEncodeError(QRISError):
    """A value cannot be represented in the payload (length, amount)."""
    pass

class QRISParseError(QRISError):
    """Malformed TLV stream: non-numeric header or truncated value."""
    pass

class QRISRenderError(QRISError):
    """Invalid options handed to the QR image renderer."""
    pass


# ═══════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ═══════════════════════════════════════════════════════════════

Amount = Union[int, float, Decimal]


@dataclass
class QRISConfig:
    """
    Merchant and transaction fields consumed by the encoder.

    Presence of a positive ``amount`` switches the payload from a static
    QR (customer types the amount) to a dynamic one.
    """
    merchant_name: str
    merchant_city: str
    merchant_pan: Optional[str] = None     # NMID / PAN for field 26
    amount: Optional[Amount] = None
    transaction_id: Optional[str] = None   # echoed as bill number in 62

    @property
    def is_dynamic(self) -> bool:
        return self.amount is not None and self.amount > 0

    @classmethod
    def from_account_details(cls, details: Optional[Dict[str, Any]],
                             amount: Optional[Amount] = None,
                             transaction_id: Optional[str] = None) -> 'QRISConfig':
        """
        Build a config from a payment method's ``account_details`` mapping
        (keys ``merchantName``, ``merchantCity``, ``merchantPAN``).
        """
        details = details or {}
        return cls(
            merchant_name=details.get("merchantName") or DEFAULT_MERCHANT_NAME,
            merchant_city=details.get("merchantCity") or DEFAULT_MERCHANT_CITY,
            merchant_pan=details.get("merchantPAN"),
            amount=amount,
            transaction_id=transaction_id,
        )


@dataclass
class QRISField:
    """
    A single TLV unit.

    Wire format (4 + n characters):
        tag    : 2 decimal digits
        length : 2 decimal digits, zero-padded (00-99)
        value  : n characters
    """
    tag: str
    value: str

    HEADER_SIZE = 4

    def pack(self) -> str:
        """Serialize to wire format."""
        if len(self.tag) != 2 or not _is_digits(self.tag):
            raise QRISEncodeError(f"Invalid tag {self.tag!r}: need 2 decimal digits")
        if len(self.value) > MAX_FIELD_LENGTH:
            raise QRISEncodeError(
                f"Field {self.tag} value is {len(self.value)} chars, "
                f"max {MAX_FIELD_LENGTH}"
            )
        return f"{self.tag}{len(self.value):02d}{self.value}"

    @classmethod
    def unpack(cls, data: str, pos: int = 0) -> tuple:
        """Deserialize one field at ``pos``. Returns (QRISField, chars_consumed)."""
        header = data[pos:pos + cls.HEADER_SIZE]
        if len(header) < cls.HEADER_SIZE:
            raise QRISParseError(
                f"Truncated field header at position {pos}: {header!r}"
            )

        tag, length_text = header[0:2], header[2:4]
        if not _is_digits(tag):
            raise QRISParseError(f"Non-numeric tag {tag!r} at position {pos}")
        if not _is_digits(length_text):
            raise QRISParseError(
                f"Non-numeric length {length_text!r} for field {tag} at position {pos}"
            )

        length = int(length_text)
        start = pos + cls.HEADER_SIZE
        value = data[start:start + length]
        if len(value) != length:
            raise QRISParseError(
                f"Field {tag} at position {pos} declares {length} chars, "
                f"only {len(value)} remain"
            )
        return cls(tag=tag, value=value), cls.HEADER_SIZE + length

    @property
    def name(self) -> str:
        return field_name(self.tag)


# ═══════════════════════════════════════════════════════════════
# UTILITY FUNCTIONS
# ═══════════════════════════════════════════════════════════════

def _is_digits(text: str) -> bool:
    return text.isascii() and text.isdigit()


def crc16(data: str) -> str:
    """
    CRC-16/CCITT-FALSE (poly 0x1021, init 0xFFFF, no final XOR).

    Each character's code point is fed as one unit, so ASCII input matches
    the byte-oriented reference vectors exactly. Returns 4 uppercase hex digits.
    """
    crc = CRC_INITIAL
    for ch in data:
        crc ^= (ord(ch) << 8)
        for _ in range(8):
            if crc & 0x8000:
                crc = (crc << 1) ^ CRC_POLYNOMIAL
            else:
                crc = crc << 1
        crc &= 0xFFFF
    return f"{crc:04X}"


def format_amount(amount: Amount) -> str:
    """Two decimals, '.' separator, ties rounded up (``0.125`` → ``"0.13"``)."""
    if isinstance(amount, bool):
        raise QRISEncodeError(f"Invalid amount {amount!r}")
    if isinstance(amount, Decimal):
        if not amount.is_finite():
            raise QRISEncodeError(f"Amount must be finite, got {amount}")
    elif not math.isfinite(amount):
        raise QRISEncodeError(f"Amount must be finite, got {amount}")
    if amount < 0:
        raise QRISEncodeError(f"Amount must not be negative, got {amount}")

    # Exact binary value of a float, ties rounded up like Number.toFixed
    try:
        cents = Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise QRISEncodeError(f"Amount too large to format, got {amount}")
    return f"{cents:f}"
