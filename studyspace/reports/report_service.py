import io
import json
import logging
from datetime import date, datetime, time
from typing import Optional, List, Dict, Any, Tuple

import pandas as pd
from sqlalchemy.orm import Session

from studyspace.models import Transaction, Booking, CabinBooking, StudyHall, PrivateHall, User
from studyspace.admin.settings_service import BusinessSettingsService
from studyspace.finances.settlement_service import EARNING_TYPES
from studyspace.halls.service import OCCUPYING_STATUSES

logger = logging.getLogger(__name__)

EXPORT_FORMATS = {
    "csv": ("text/csv", "csv"),
    "xlsx": ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", "xlsx"),
}

def _frame(rows: List[Dict[str, Any]], columns: List[str]) -> pd.DataFrame:
    return pd.DataFrame(rows, columns=columns)

def to_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """JSON-safe rows of a report"""
    return json.loads(df.to_json(orient="records", date_format="iso"))

def export(df: pd.DataFrame, report_name: str, format: str) -> Tuple[bytes, str, str]:
    """Serialize a report: (content, media_type, filename)"""
    if format not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {format}")
    media_type, extension = EXPORT_FORMATS[format]
    filename = f"{report_name}_{date.today().isoformat()}.{extension}"
    
    if format == "csv":
        output = io.StringIO()
        df.to_csv(output, index=False)
        return output.getvalue().encode(), media_type, filename
    
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine='openpyxl') as writer:
        df.to_excel(writer, sheet_name=report_name[:31], index=False)
    return output.getvalue(), media_type, filename

class ReportService:
    """Tabular reports for admins, merchants and students"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def _earnings_query(self, date_from: Optional[date], date_to: Optional[date]):
        query = self.db.query(Transaction).filter(
            Transaction.status == "completed",
            Transaction.transaction_type.in_(EARNING_TYPES)
        )
        if date_from:
            query = query.filter(Transaction.created_at >= datetime.combine(date_from, time.min))
        if date_to:
            query = query.filter(Transaction.created_at <= datetime.combine(date_to, time.max))
        return query
    
    def revenue_by_merchant(self, date_from: Optional[date] = None, date_to: Optional[date] = None) -> pd.DataFrame:
        """Bookings, gross, platform fee and net per merchant"""
        columns = ["merchant_id", "merchant_name", "bookings", "gross_amount", "platform_fee", "net_amount"]
        rows = [
            {"merchant_id": t.merchant_id, "amount": float(t.amount)}
            for t in self._earnings_query(date_from, date_to).all()
        ]
        if not rows:
            return _frame([], columns)
        
        df = pd.DataFrame(rows).groupby("merchant_id", as_index=False).agg(
            bookings=("amount", "count"), gross_amount=("amount", "sum")
        )
        names = {
            user.id: user.full_name
            for user in self.db.query(User).filter(User.id.in_(df["merchant_id"].tolist())).all()
        }
        percentage = float(BusinessSettingsService.get(self.db).platform_fee_percentage or 0)
        df["merchant_name"] = df["merchant_id"].map(names)
        df["platform_fee"] = (df["gross_amount"] * percentage / 100).round(2)
        df["net_amount"] = (df["gross_amount"] - df["platform_fee"]).round(2)
        df["gross_amount"] = df["gross_amount"].round(2)
        return df.sort_values("gross_amount", ascending=False)[columns].reset_index(drop=True)
    
    def booking_summary(self, date_from: Optional[date] = None, date_to: Optional[date] = None) -> pd.DataFrame:
        """Seat bookings and their value per status"""
        columns = ["status", "bookings", "total_amount"]
        query = self.db.query(Booking)
        if date_from:
            query = query.filter(Booking.start_date >= date_from)
        if date_to:
            query = query.filter(Booking.start_date <= date_to)
        rows = [{"status": b.status, "amount": float(b.total_amount)} for b in query.all()]
        if not rows:
            return _frame([], columns)
        
        df = pd.DataFrame(rows).groupby("status", as_index=False).agg(
            bookings=("amount", "count"), total_amount=("amount", "sum")
        )
        df["total_amount"] = df["total_amount"].round(2)
        return df.sort_values("bookings", ascending=False)[columns].reset_index(drop=True)
    
    def merchant_revenue_by_hall(
        self,
        merchant_id: int,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None
    ) -> pd.DataFrame:
        """Paid bookings and revenue per hall of one merchant"""
        columns = ["hall_type", "hall_id", "hall_name", "bookings", "revenue"]
        rows = []
        transactions = self._earnings_query(date_from, date_to).filter(Transaction.merchant_id == merchant_id).all()
        for transaction in transactions:
            if transaction.booking is not None:
                hall = transaction.booking.study_hall
                rows.append({"hall_type": "study_hall", "hall_id": hall.id, "hall_name": hall.name,
                             "amount": float(transaction.amount)})
            elif transaction.cabin_booking is not None:
                hall = transaction.cabin_booking.private_hall
                rows.append({"hall_type": "private_hall", "hall_id": hall.id, "hall_name": hall.name,
                             "amount": float(transaction.amount)})
        if not rows:
            return _frame([], columns)
        
        df = pd.DataFrame(rows).groupby(["hall_type", "hall_id", "hall_name"], as_index=False).agg(
            bookings=("amount", "count"), revenue=("amount", "sum")
        )
        df["revenue"] = df["revenue"].round(2)
        return df.sort_values("revenue", ascending=False)[columns].reset_index(drop=True)
    
    def occupancy(self, merchant_id: int, today: Optional[date] = None) -> pd.DataFrame:
        """Seats occupied today against total seats, per study hall"""
        today = today or date.today()
        columns = ["hall_id", "hall_name", "total_seats", "occupied_seats", "occupancy_rate"]
        halls = self.db.query(StudyHall).filter(StudyHall.merchant_id == merchant_id).order_by(StudyHall.id).all()
        rows = []
        for hall in halls:
            occupied = self.db.query(Booking.seat_id).filter(
                Booking.study_hall_id == hall.id,
                Booking.status.in_(OCCUPYING_STATUSES),
                Booking.start_date <= today,
                Booking.end_date >= today
            ).distinct().count()
            rows.append({
                "hall_id": hall.id,
                "hall_name": hall.name,
                "total_seats": hall.total_seats,
                "occupied_seats": occupied,
                "occupancy_rate": round(occupied / hall.total_seats * 100, 2) if hall.total_seats else 0.0,
            })
        return _frame(rows, columns)
    
    def student_history(self, user_id: int) -> pd.DataFrame:
        """A student's seat and cabin bookings with amounts and discounts"""
        columns = [
            "booking_number", "booking_type", "hall_name", "unit", "start_date", "end_date", "base_amount",
            "discount_amount", "rewards_discount", "platform_fee", "total_amount", "status", "payment_status",
        ]
        rows = []
        for booking in self.db.query(Booking).filter(Booking.user_id == user_id).all():
            rows.append({
                "booking_number": booking.booking_number,
                "booking_type": "study_hall",
                "hall_name": booking.study_hall.name,
                "unit": booking.seat.seat_label,
                "start_date": booking.start_date.isoformat(),
                "end_date": booking.end_date.isoformat(),
                "base_amount": float(booking.base_amount),
                "discount_amount": float(booking.discount_amount or 0),
                "rewards_discount": float(booking.rewards_discount or 0),
                "platform_fee": float(booking.platform_fee or 0),
                "total_amount": float(booking.total_amount),
                "status": booking.status,
                "payment_status": booking.payment_status,
            })
        for booking in self.db.query(CabinBooking).filter(CabinBooking.user_id == user_id).all():
            private_hall = self.db.query(PrivateHall).filter(PrivateHall.id == booking.private_hall_id).first()
            rows.append({
                "booking_number": booking.booking_number,
                "booking_type": "cabin",
                "hall_name": private_hall.name if private_hall else None,
                "unit": booking.cabin.cabin_name if booking.cabin else None,
                "start_date": booking.start_date.isoformat(),
                "end_date": booking.end_date.isoformat(),
                "base_amount": float(booking.booking_amount),
                "discount_amount": 0.0,
                "rewards_discount": 0.0,
                "platform_fee": 0.0,
                "total_amount": float(booking.total_amount),
                "status": booking.status,
                "payment_status": booking.payment_status,
            })
        df = _frame(rows, columns)
        return df.sort_values("start_date", ascending=False).reset_index(drop=True) if rows else df
