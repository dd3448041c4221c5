"""
Authentication Module

Registration, login and identity for every role on the platform.

Key Components:
- utils.py: password hashing (passlib) and JWT tokens (PyJWT)
- permissions.py: role names and role-based dashboard routing
- service.py: user accounts, self-registration and phone OTP verification
- dependencies.py: FastAPI dependencies for the current user and role checks
- router.py: /auth endpoints
"""

from .schemas import UserCreate, StaffUserCreate, UserUpdate, User, LoginRequest, AuthResponse, Token

__all__ = [
    "UserCreate",
    "StaffUserCreate",
    "UserUpdate",
    "User",
    "LoginRequest",
    "AuthResponse",
    "Token",
]
