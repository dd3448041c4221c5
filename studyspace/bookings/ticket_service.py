import base64
import binascii
import hashlib
import hmac
import json
import logging
from datetime import date, datetime
from io import BytesIO
from typing import Optional, Dict, Any

import qrcode
from qrcode import constants
from PIL import Image
from sqlalchemy.orm import Session

from studyspace.config import settings
from studyspace.models import Booking, StudyHall, User
from studyspace.auth.permissions import ADMIN, INCHARGE
from studyspace.admin.settings_service import BusinessSettingsService
from studyspace.merchants.incharge_service import InchargeService
from studyspace.notifications.change_feed import change_feed

logger = logging.getLogger(__name__)

TICKET_VERSION = 1
SIGNATURE_LENGTH = 16
TICKET_STATUSES = ("confirmed", "active")

def sign_fields(fields: Dict[str, Any]) -> str:
    """Truncated HMAC-SHA256 of the ticket fields keyed with the app secret"""
    message = json.dumps(fields, separators=(",", ":"), sort_keys=True)
    digest = hmac.new(settings.SECRET_KEY.encode(), message.encode(), hashlib.sha256).hexdigest()
    return digest[:SIGNATURE_LENGTH]

def encode_payload(fields: Dict[str, Any]) -> str:
    data = dict(fields, sig=sign_fields(fields))
    json_data = json.dumps(data, separators=(",", ":"))
    return base64.b64encode(json_data.encode()).decode()

def decode_payload(payload: str) -> Optional[Dict[str, Any]]:
    """Decode a ticket payload; None when malformed or the signature does not match"""
    try:
        data = json.loads(base64.b64decode(payload.encode(), validate=True).decode())
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    if not isinstance(data, dict) or "sig" not in data:
        return None
    signature = data.pop("sig")
    if not hmac.compare_digest(str(signature), sign_fields(data)):
        return None
    return data

class TicketService:
    """QR tickets for confirmed seat bookings"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def ticket_for(self, booking: Booking) -> Dict[str, Any]:
        """Ticket details and signed QR payload for a paid booking"""
        if booking.status not in TICKET_STATUSES or booking.payment_status != "paid":
            raise ValueError("Tickets are only available for confirmed, paid bookings")
        
        fields = {
            "v": TICKET_VERSION,
            "bid": booking.id,
            "ref": booking.booking_number,
            "hall": booking.study_hall_id,
            "seat": booking.seat.seat_label,
            "from": booking.start_date.isoformat(),
            "to": booking.end_date.isoformat(),
            "code": booking.ticket_code,
        }
        return {
            "booking_id": booking.id,
            "booking_number": booking.booking_number,
            "hall_name": booking.study_hall.name,
            "seat_label": booking.seat.seat_label,
            "start_date": booking.start_date,
            "end_date": booking.end_date,
            "payload": encode_payload(fields),
        }
    
    def qr_png(self, booking: Booking, size: int = 300) -> bytes:
        """Ticket QR code as PNG bytes"""
        ticket = self.ticket_for(booking)
        qr = qrcode.QRCode(
            version=1,
            error_correction=constants.ERROR_CORRECT_M,
            box_size=10,
            border=4,
        )
        qr.add_data(ticket["payload"])
        qr.make(fit=True)
        
        qr_image = qr.make_image(fill_color="black", back_color="white")
        qr_image = qr_image.resize((size, size), Image.LANCZOS)
        
        buffer = BytesIO()
        qr_image.save(buffer, format="PNG")
        return buffer.getvalue()
    
    def pdf_ticket(self, booking: Booking) -> bytes:
        """Printable PDF ticket with booking details and the QR code"""
        
        from reportlab.lib.pagesizes import A4
        from reportlab.lib import colors
        from reportlab.lib.styles import getSampleStyleSheet
        from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
        from reportlab.platypus import Image as PDFImage
        
        ticket = self.ticket_for(booking)
        brand_name = BusinessSettingsService.get(self.db).brand_name or settings.PROJECT_NAME
        
        buffer = BytesIO()
        doc = SimpleDocTemplate(buffer, pagesize=A4, title=f"Ticket {booking.booking_number}")
        styles = getSampleStyleSheet()
        story = []
        
        story.append(Paragraph(brand_name, styles['Title']))
        story.append(Spacer(1, 10))
        story.append(Paragraph(f"Booking Ticket #{booking.booking_number}", styles['Heading2']))
        story.append(Spacer(1, 10))
        
        details = [
            ["Student:", booking.user.full_name],
            ["Study Hall:", ticket["hall_name"]],
            ["Location:", booking.study_hall.location or "-"],
            ["Seat:", ticket["seat_label"]],
            ["From:", booking.start_date.strftime("%d %b %Y")],
            ["To:", booking.end_date.strftime("%d %b %Y")],
            ["Amount Paid:", f"Rs. {booking.total_amount}"],
            ["Status:", booking.status.title()],
        ]
        details_table = Table(details, colWidths=[110, 300])
        details_table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, -1), colors.lightgrey),
            ('TEXTCOLOR', (0, 0), (-1, -1), colors.black),
            ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
            ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
            ('FONTNAME', (1, 0), (1, -1), 'Helvetica'),
            ('FONTSIZE', (0, 0), (-1, -1), 10),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
        ]))
        story.append(details_table)
        story.append(Spacer(1, 20))
        
        story.append(PDFImage(BytesIO(self.qr_png(booking, size=300)), width=180, height=180))
        story.append(Spacer(1, 10))
        story.append(Paragraph("Show this QR code at the study hall entrance.", styles['Italic']))
        
        doc.build(story)
        return buffer.getvalue()
    
    def verify_ticket(
        self,
        staff: User,
        payload: str,
        study_hall_id: int,
        today: Optional[date] = None,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Check a scanned ticket at a hall and record the check-in"""
        now = now or datetime.now()
        today = today or now.date()
        
        def invalid(message: str) -> Dict[str, Any]:
            logger.warning(f"Ticket rejected at hall {study_hall_id}: {message}")
            return {"valid": False, "message": message}
        
        hall = self.db.query(StudyHall).filter(StudyHall.id == study_hall_id).first()
        if not hall:
            return invalid("Study hall not found")
        if staff.role == INCHARGE:
            allowed = InchargeService(self.db).is_assigned(staff.id, study_hall_id)
        else:
            allowed = staff.role == ADMIN or staff.id == hall.merchant_id
        if not allowed:
            raise PermissionError("You cannot verify tickets for this study hall")
        
        data = decode_payload(payload)
        if data is None:
            return invalid("Invalid or tampered ticket")
        
        booking = self.db.query(Booking).filter(Booking.id == data.get("bid")).first()
        if not booking or booking.booking_number != data.get("ref") or booking.ticket_code != data.get("code"):
            return invalid("Booking not found")
        if booking.study_hall_id != study_hall_id:
            return invalid("Ticket is for a different study hall")
        if booking.status not in TICKET_STATUSES:
            return invalid(f"Booking is {booking.status}")
        if not (booking.start_date <= today <= booking.end_date):
            return invalid("Ticket is not valid today")
        
        booking.checked_in_at = now
        self.db.commit()
        self.db.refresh(booking)
        
        change_feed.publish_many(
            [f"user:{booking.user_id}", f"merchant:{hall.merchant_id}"], "updated", "booking", booking.id,
            {"checked_in_at": booking.checked_in_at.isoformat()}
        )
        logger.info(f"Ticket {booking.booking_number} checked in at hall {study_hall_id} by user {staff.id}")
        return {
            "valid": True,
            "message": "Ticket verified",
            "booking_id": booking.id,
            "booking_number": booking.booking_number,
            "seat_label": booking.seat.seat_label,
            "student_name": booking.user.full_name,
            "checked_in_at": booking.checked_in_at,
        }
