import logging
import time
from datetime import datetime
from decimal import Decimal
from typing import Dict, Any

import psutil
from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studyspace.models import User, StudyHall, PrivateHall, Booking, Transaction
from studyspace.bookings.booking_service import BookingService
from studyspace.bookings.cabin_booking_service import CabinBookingService

logger = logging.getLogger(__name__)

class AdminService:
    """Platform-wide dashboard figures and health checks"""

    def __init__(self, db: Session):
        self.db = db

    def _grouped_counts(self, column) -> Dict[str, int]:
        rows = self.db.query(column, func.count()).group_by(column).all()
        return {key or "unknown": count for key, count in rows}

    def dashboard_stats(self) -> Dict[str, Any]:
        users_by_role = self._grouped_counts(User.role)
        bookings_by_status = self._grouped_counts(Booking.status)
        cabin_counts = CabinBookingService(self.db).counts()

        gross_revenue = self.db.query(func.coalesce(func.sum(Transaction.amount), 0)).filter(
            Transaction.status == "completed"
        ).scalar()

        return {
            "total_users": sum(users_by_role.values()),
            "users_by_role": users_by_role,
            "study_halls": self.db.query(StudyHall).count(),
            "active_study_halls": self.db.query(StudyHall).filter(StudyHall.status == "active").count(),
            "private_halls": self.db.query(PrivateHall).count(),
            "total_bookings": sum(bookings_by_status.values()),
            "bookings_by_status": bookings_by_status,
            "cabin_bookings": cabin_counts["total"],
            "occupied_cabins": cabin_counts["blocking"],
            "gross_revenue": Decimal(str(gross_revenue or 0)),
            "generated_at": datetime.now(),
        }

    def check_database(self) -> Dict[str, Any]:
        started = time.time()
        try:
            self.db.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return {"status": "unhealthy", "message": f"Database error: {str(e)}", "response_time_ms": None}
        return {
            "status": "healthy",
            "message": "Database connection successful",
            "response_time_ms": round((time.time() - started) * 1000, 2),
        }

    @staticmethod
    def host_metrics() -> Dict[str, Any]:
        memory = psutil.virtual_memory()
        disk = psutil.disk_usage('/')
        return {
            "cpu_usage": psutil.cpu_percent(interval=0.1),
            "memory_usage": memory.percent,
            "disk_usage": disk.percent,
            "uptime_seconds": int(time.time() - psutil.boot_time()),
        }

    def system_health(self) -> Dict[str, Any]:
        """Booking lifecycle counters, host load and database reachability"""
        database = self.check_database()
        host = self.host_metrics()
        bookings = BookingService(self.db).health_metrics() if database["status"] == "healthy" else {}

        if database["status"] != "healthy":
            overall = "critical"
        elif host["cpu_usage"] > 90 or host["memory_usage"] > 95 or host["disk_usage"] > 95:
            overall = "warning"
        elif bookings.get("expired_but_active"):
            # Lifecycle job is behind
            overall = "warning"
        else:
            overall = "healthy"

        return {
            "overall_status": overall,
            "database": database,
            "host": host,
            "bookings": bookings,
            "last_updated": datetime.now(),
        }
