"""
QR code generation service
"""

import io
import qrcode

from app.core.config import settings

class QRService:
    """Service for generating guest check-in QR codes"""

    @staticmethod
    def get_checkin_url(token: str) -> str:
        """Get the URL a guest's QR code points to"""
        return f"{settings.BASE_URL.rstrip('/')}/checkin/{token}"
    
    @staticmethod
    def generate_guest_qr(token: str, format: str = 'PNG') -> bytes:
        """Generate the QR code printed on a guest's ticket"""
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=10,
            border=4,
        )
        qr.add_data(QRService.get_checkin_url(token))
        qr.make(fit=True)
        
        img = qr.make_image(fill_color="black", back_color="white")
        
        buffer = io.BytesIO()
        img.save(buffer, format=format)
        
        return buffer.getvalue()
