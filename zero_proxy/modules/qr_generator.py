"""
QR Code Generator Module - Zero Proxy Attendance System

Renders session codes as QR images for presenter displays that cannot
draw them client-side.
"""

import io
import logging

import qrcode


class QRGenerator:
    """
    QR image rendering for rotating session codes.
    """

    def __init__(self, box_size: int = 10, border: int = 4):
        self.logger = logging.getLogger(__name__)

        self.default_settings = {
            'version': 1,  # Grows automatically with fit=True
            'error_correction': qrcode.constants.ERROR_CORRECT_M,  # ~15% error correction
            'box_size': box_size,
            'border': border,
            'fill_color': 'black',
            'back_color': 'white'
        }

    def generate_code_image(self, code: str) -> bytes:
        """
        Render a code as a PNG image.

        Args:
            code (str): Session code, e.g. 'ZP-4821'

        Returns:
            bytes: PNG image data
        """
        settings = self.default_settings
        qr = qrcode.QRCode(
            version=settings['version'],
            error_correction=settings['error_correction'],
            box_size=settings['box_size'],
            border=settings['border']
        )
        qr.add_data(code)
        qr.make(fit=True)

        img = qr.make_image(fill_color=settings['fill_color'], back_color=settings['back_color'])
        buffer = io.BytesIO()
        img.save(buffer, format='PNG')
        return buffer.getvalue()
