"""
Reports Module

pandas-built reports, returned as JSON rows or exported as CSV/XLSX:

- report_service.py: revenue, booking, occupancy and history reports plus export
- router.py: admin, merchant and student report endpoints
"""
