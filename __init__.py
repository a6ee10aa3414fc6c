"""
QRIS Codec — EMV QRCPS Merchant Presented Mode
===============================================

Encoder/decoder for Indonesian QRIS payment payloads.
Builds TLV payload strings with a CRC-16/CCITT-FALSE checksum, parses them
back into named fields, validates them, and renders them as QR images.
"""

from qris_types import (
    QRISConfig, QRISField, crc16,
    QRISError, QRISEncodeError, QRISParseError, QRISRenderError,
)
from qris_encoder import QRISEncoder, build_payload, generate_image, generate_svg
from qris_decoder import QRISDecoder, parse_payload, parse_template, validate

__version__ = "1.0.0"
__all__ = [
    'QRISEncoder', 'QRISDecoder', 'QRISConfig', 'QRISField',
    'build_payload', 'parse_payload', 'parse_template', 'validate', 'crc16',
    'generate_image', 'generate_svg',
    'QRISError', 'QRISEncodeError', 'QRISParseError', 'QRISRenderError',
]
