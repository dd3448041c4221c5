"""Role names and role-based routing"""

STUDENT = "student"
MERCHANT = "merchant"
ADMIN = "admin"
INCHARGE = "incharge"
TELEMARKETING_EXECUTIVE = "telemarketing_executive"
PENDING_PAYMENTS_CALLER = "pending_payments_caller"
CUSTOMER_CARE_EXECUTIVE = "customer_care_executive"
SETTLEMENT_MANAGER = "settlement_manager"
GENERAL_ADMINISTRATOR = "general_administrator"
INSTITUTION = "institution"

ALL_ROLES = [
    STUDENT, MERCHANT, ADMIN, INCHARGE, TELEMARKETING_EXECUTIVE, PENDING_PAYMENTS_CALLER,
    CUSTOMER_CARE_EXECUTIVE, SETTLEMENT_MANAGER, GENERAL_ADMINISTRATOR, INSTITUTION,
]

SELF_REGISTER_ROLES = [STUDENT, MERCHANT]

# Incharges act for a single merchant and only see their assigned halls
OPERATIONAL_ROLES = [role for role in ALL_ROLES if role not in (STUDENT, MERCHANT, INCHARGE, INSTITUTION)]

DASHBOARD_PATHS = {
    ADMIN: "/admin",
    MERCHANT: "/merchant",
    STUDENT: "/student",
    INCHARGE: "/incharge",
    TELEMARKETING_EXECUTIVE: "/telemarketing",
    PENDING_PAYMENTS_CALLER: "/payments-caller",
    CUSTOMER_CARE_EXECUTIVE: "/customer-care",
    SETTLEMENT_MANAGER: "/settlement-manager",
    GENERAL_ADMINISTRATOR: "/general-admin",
    INSTITUTION: "/institution",
}

def dashboard_path(role: str) -> str:
    """Dashboard a user lands on after login"""
    return DASHBOARD_PATHS.get(role, "/student")

def is_operational(role: str) -> bool:
    return role in OPERATIONAL_ROLES
