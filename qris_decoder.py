"""
QRIS Decoder — EMV QRCPS-MPM Payload Parser & Validator
========================================================

Parses QRIS payload strings back into named fields and checks their
structural framing and CRC-16 checksum.

  parse()          : TLV scan → {readable name: raw value}, fails loudly
  parse_fields()   : TLV scan → ordered list of QRISField
  parse_template() : one-level decode of a nested template (26, 62)
  validate()       : prefix + CRC trailer + checksum, never raises

Nested templates are NOT decoded by parse(); their value is returned as the
raw nested TLV string.
"""

import re
from typing import Dict, List

from qris_types import (
    PAYLOAD_PREFIX, MIN_PAYLOAD_LENGTH,
    QRISField,
    crc16,
)

# "6304" + four hex digits at the very end of the string
CRC_TRAILER = re.compile(r'6304[0-9A-Fa-f]{4}\Z')


# ═══════════════════════════════════════════════════════════════
# DECODER
# ═══════════════════════════════════════════════════════════════

class QRISDecoder:
    """
    QRIS payload decoder.

    Usage:
        decoder = QRISDecoder()
        if decoder.validate(payload):
            fields = decoder.parse(payload)
            amount = fields.get('transactionAmount')
    """

    def __init__(self, min_length: int = MIN_PAYLOAD_LENGTH):
        self.min_length = min_length

    # ─── Parsing ──────────────────────────────────────────────

    def parse(self, payload: str) -> Dict[str, str]:
        """
        Parse a payload into ``{readable name: value}``.

        Unknown tags are kept as ``field_<tag>``. A repeated tag keeps the
        last value seen.

        Raises:
            QRISParseError: non-numeric header or a value running past the end.
        """
        return {f.name: f.value for f in self.parse_fields(payload)}

    def parse_fields(self, payload: str) -> List[QRISField]:
        """Scan ``payload`` left to right into its TLV units, in order."""
        fields = []
        pos = 0
        while pos < len(payload):
            field, consumed = QRISField.unpack(payload, pos)
            fields.append(field)
            pos += consumed
        return fields

    def parse_template(self, value: str) -> Dict[str, str]:
        """Decode a nested template value (e.g. field 26 or 62) into ``{subtag: value}``."""
        return {f.tag: f.value for f in self.parse_fields(value)}

    # ─── Validation ───────────────────────────────────────────

    def validate(self, payload: str) -> bool:
        """
        Check framing and checksum, short-circuiting on the first failure:

          1. at least ``min_length`` characters
          2. starts with "000201"
          3. ends with "6304" + 4 hex digits
          4. CRC over everything but the last 4 characters matches them

        Never raises; any error counts as invalid.
        """
        try:
            if len(payload) < self.min_length:
                return False
            if not payload.startswith(PAYLOAD_PREFIX):
                return False
            if not CRC_TRAILER.search(payload):
                return False

            data_without_crc = payload[:-4]
            provided_crc = payload[-4:]
            return crc16(data_without_crc) == provided_crc
        except Exception:
            return False


# ═══════════════════════════════════════════════════════════════
# CONVENIENCE FUNCTIONS
# ═══════════════════════════════════════════════════════════════

def parse_payload(payload: str) -> Dict[str, str]:
    """Convenience: parse a payload in one call."""
    return QRISDecoder().parse(payload)

def parse_template(value: str) -> Dict[str, str]:
    """Convenience: decode a nested template value in one call."""
    return QRISDecoder().parse_template(value)

def validate(payload: str) -> bool:
    """Convenience: validate a payload in one call."""
    return QRISDecoder().validate(payload)
