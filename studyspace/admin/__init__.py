"""
Admin Module

Tenant-wide administration:

- settings_service.py: business settings singleton (fees, payouts, rewards, SMS, trials)
- audit_service.py: audit log of significant staff actions
- admin_service.py: dashboard statistics and system health
- router.py: settings, user management, audit log, stats and health endpoints
"""

from .schemas import BusinessSettings, BusinessSettingsUpdate, AuditLog, DashboardStats, SystemHealth

__all__ = [
    "BusinessSettings",
    "BusinessSettingsUpdate",
    "AuditLog",
    "DashboardStats",
    "SystemHealth",
]
