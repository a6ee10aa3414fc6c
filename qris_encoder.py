"""
QRIS Encoder — EMV QRCPS-MPM Payload Builder
=============================================

Builds QRIS payload strings from merchant/transaction fields:
  fixed-order TLV fields + CRC field 63 computed over everything before it

Also renders a payload into a QR image (PNG data URL or SVG markup) through
the ``qrcode`` library. The payload builder itself is pure: no I/O, no
module-level state, safe to call from any number of threads.
"""

import io
import base64
import logging
from typing import List, Optional

import qrcode
import qrcode.constants
import qrcode.image.svg
from PIL import Image

from qris_types import (
    TAG_PAYLOAD_FORMAT, TAG_POINT_OF_INITIATION, TAG_MERCHANT_ACCOUNT,
    TAG_CATEGORY_CODE, TAG_CURRENCY, TAG_AMOUNT, TAG_COUNTRY_CODE,
    TAG_MERCHANT_NAME, TAG_MERCHANT_CITY, TAG_ADDITIONAL_DATA,
    SUBTAG_GLOBAL_ID, SUBTAG_MERCHANT_PAN, SUBTAG_BILL_NUMBER,
    PAYLOAD_FORMAT_INDICATOR, POI_STATIC, POI_DYNAMIC, QRIS_GLOBAL_ID,
    MERCHANT_CATEGORY_CODE, CURRENCY_IDR, COUNTRY_CODE, CRC_PREFIX,
    MAX_NAME_LENGTH, MAX_CITY_LENGTH,
    QRISConfig, QRISField, QRISEncodeError, QRISRenderError,
    crc16, format_amount,
)

logger = logging.getLogger(__name__)


ERROR_CORRECTION_LEVELS = {
    'L': qrcode.constants.ERROR_CORRECT_L,
    'M': qrcode.constants.ERROR_CORRECT_M,
    'Q': qrcode.constants.ERROR_CORRECT_Q,
    'H': qrcode.constants.ERROR_CORRECT_H,
}

DEFAULT_IMAGE_WIDTH = 300
DEFAULT_ERROR_CORRECTION = 'M'
DEFAULT_MARGIN = 2


# ═══════════════════════════════════════════════════════════════
# ENCODER
# ═══════════════════════════════════════════════════════════════

class QRISEncoder:
    """
    QRIS payload encoder.

    Usage:
        encoder = QRISEncoder()
        payload = encoder.build_payload(QRISConfig(
            merchant_name="Toko A", merchant_city="Jakarta", amount=50000
        ))
        image = encoder.render_png(payload)

    ``require_merchant_account`` makes a missing ``merchant_pan`` an error
    instead of silently omitting field 26. Static/demo QRs rely on the
    omission, so it stays off by default.
    """

    def __init__(self,
                 require_merchant_account: bool = False,
                 image_width: int = DEFAULT_IMAGE_WIDTH,
                 error_correction: str = DEFAULT_ERROR_CORRECTION,
                 margin: int = DEFAULT_MARGIN):
        self.require_merchant_account = require_merchant_account
        self.image_width = image_width
        self.error_correction = error_correction
        self.margin = margin

    def build_payload(self, config: QRISConfig) -> str:
        """
        Encode ``config`` into a QRIS payload string.

        Raises:
            QRISEncodeError: a value exceeds 99 characters, the amount is
                negative or non-finite, or account info is required but missing.
        """
        fields = self.build_fields(config)
        base = ''.join(f.pack() for f in fields)
        crc_input = base + CRC_PREFIX
        return crc_input + crc16(crc_input)

    def build_fields(self, config: QRISConfig) -> List[QRISField]:
        """Ordered data fields, everything except the trailing CRC field."""
        amount_text = None
        if config.amount is not None:
            amount_text = format_amount(config.amount)
        dynamic = config.is_dynamic

        fields = [
            QRISField(TAG_PAYLOAD_FORMAT, PAYLOAD_FORMAT_INDICATOR),
            QRISField(TAG_POINT_OF_INITIATION, POI_DYNAMIC if dynamic else POI_STATIC),
        ]

        if config.merchant_pan:
            fields.append(QRISField(TAG_MERCHANT_ACCOUNT, build_template([
                QRISField(SUBTAG_GLOBAL_ID, QRIS_GLOBAL_ID),
                QRISField(SUBTAG_MERCHANT_PAN, config.merchant_pan),
            ])))
        elif self.require_merchant_account:
            raise QRISEncodeError(
                "Merchant account info (field 26) required but merchant_pan is empty"
            )

        fields.append(QRISField(TAG_CATEGORY_CODE, MERCHANT_CATEGORY_CODE))
        fields.append(QRISField(TAG_CURRENCY, CURRENCY_IDR))

        if dynamic:
            fields.append(QRISField(TAG_AMOUNT, amount_text))

        fields.append(QRISField(TAG_COUNTRY_CODE, COUNTRY_CODE))
        fields.append(QRISField(TAG_MERCHANT_NAME, config.merchant_name[:MAX_NAME_LENGTH]))
        fields.append(QRISField(TAG_MERCHANT_CITY, config.merchant_city[:MAX_CITY_LENGTH]))

        # Bill number is never truncated; an over-long reference fails in pack()
        if config.transaction_id:
            fields.append(QRISField(TAG_ADDITIONAL_DATA, build_template([
                QRISField(SUBTAG_BILL_NUMBER, config.transaction_id),
            ])))

        return fields

    # ─── Image Rendering ──────────────────────────────────────

    def render_png(self, payload: str,
                   width: Optional[int] = None,
                   error_correction: Optional[str] = None,
                   margin: Optional[int] = None) -> str:
        """
        Render ``payload`` as a black-on-white PNG QR code.

        Returns:
            ``data:image/png;base64,...`` URL of a square image, ``width``
            pixels wide unless the symbol needs more (one pixel per module).
        """
        width = self.image_width if width is None else width
        margin = self.margin if margin is None else margin
        if width <= 0:
            raise QRISRenderError(f"Image width must be positive, got {width}")

        qr = self._make_qr(payload, error_correction, margin)
        modules = qr.modules_count + 2 * margin
        qr.box_size = max(1, width // modules)
        # Never shrink below one pixel per module; that drops rows and columns
        size = max(width, modules)

        img = qr.make_image(fill_color="black", back_color="white")
        buf = io.BytesIO()
        img.save(buf)
        buf.seek(0)

        # Nearest keeps module edges sharp
        with Image.open(buf) as raw:
            scaled = raw.convert('RGB').resize((size, size), Image.Resampling.NEAREST)
        out = io.BytesIO()
        scaled.save(out, format='PNG')

        logger.debug("Rendered QRIS PNG: %d modules, %dpx", qr.modules_count, size)
        return "data:image/png;base64," + base64.b64encode(out.getvalue()).decode('ascii')

    def render_svg(self, payload: str,
                   error_correction: Optional[str] = None,
                   margin: Optional[int] = None) -> str:
        """Render ``payload`` as SVG markup."""
        margin = self.margin if margin is None else margin
        qr = self._make_qr(payload, error_correction, margin)
        img = qr.make_image(image_factory=qrcode.image.svg.SvgPathImage)
        buf = io.BytesIO()
        img.save(buf)

        logger.debug("Rendered QRIS SVG: %d modules", qr.modules_count)
        return buf.getvalue().decode('utf-8')

    def _make_qr(self, payload: str, error_correction: Optional[str],
                 margin: int) -> qrcode.QRCode:
        level = error_correction or self.error_correction
        if not isinstance(level, str):
            raise QRISRenderError(
                f"Error correction level must be one of L, M, Q, H, got {level!r}"
            )
        level = level.upper()
        if level not in ERROR_CORRECTION_LEVELS:
            raise QRISRenderError(
                f"Unknown error correction level {level!r}; use one of L, M, Q, H"
            )
        if margin < 0:
            raise QRISRenderError(f"Margin must not be negative, got {margin}")

        qr = qrcode.QRCode(
            version=None,
            error_correction=ERROR_CORRECTION_LEVELS[level],
            box_size=10,
            border=margin,
        )
        qr.add_data(payload)
        qr.make(fit=True)
        return qr


# ═══════════════════════════════════════════════════════════════
# CONVENIENCE FUNCTIONS
# ═══════════════════════════════════════════════════════════════

def build_template(subfields: List[QRISField]) -> str:
    """Concatenate nested fields into a composite value (fields 26, 62)."""
    return ''.join(f.pack() for f in subfields)

def build_payload(config: QRISConfig) -> str:
    """Convenience: encode a config with default encoder settings."""
    return QRISEncoder().build_payload(config)

def generate_image(config: QRISConfig,
                   width: int = DEFAULT_IMAGE_WIDTH,
                   error_correction: str = DEFAULT_ERROR_CORRECTION,
                   margin: int = DEFAULT_MARGIN) -> str:
    """Convenience: build the payload and render it as a PNG data URL."""
    encoder = QRISEncoder()
    return encoder.render_png(encoder.build_payload(config), width=width,
                              error_correction=error_correction, margin=margin)

def generate_svg(config: QRISConfig) -> str:
    """Convenience: build the payload and render it as SVG markup."""
    encoder = QRISEncoder()
    return encoder.render_svg(encoder.build_payload(config))
