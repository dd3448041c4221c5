import logging
from datetime import datetime
from typing import Optional, List

import pyotp
from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from studyspace.models import User, MerchantProfile
from studyspace.auth.schemas import UserCreate, StaffUserCreate, UserUpdate
from studyspace.auth.utils import get_password_hash, verify_password
from studyspace.auth.permissions import MERCHANT

logger = logging.getLogger(__name__)

OTP_INTERVAL_SECONDS = 300

class UserService:
    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        """Get user by email"""
        return db.query(User).filter(func.lower(User.email) == email.lower()).first()
    
    @staticmethod
    def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
        """Get user by ID"""
        return db.query(User).filter(User.id == user_id).first()
    
    @staticmethod
    def _next_merchant_number(db: Session) -> int:
        current = db.query(func.max(User.merchant_number)).scalar()
        return (current or 1000) + 1
    
    @staticmethod
    def _create(db: Session, full_name: str, email: str, phone: Optional[str], password: str, role: str) -> User:
        if UserService.get_user_by_email(db, email):
            raise ValueError("Email already registered")
        
        db_user = User(
            full_name=full_name,
            email=email.lower(),
            phone=phone,
            password=get_password_hash(password),
            role=role
        )
        if role == MERCHANT:
            db_user.merchant_number = UserService._next_merchant_number(db)
        
        try:
            db.add(db_user)
            db.flush()
            if role == MERCHANT:
                db.add(MerchantProfile(merchant_id=db_user.id, phone=phone, onboarding_step=1))
            db.commit()
            db.refresh(db_user)
        except IntegrityError:
            db.rollback()
            raise ValueError("Email already registered")
        
        logger.info(f"Created {role} user {db_user.id} ({db_user.email})")
        return db_user
    
    @staticmethod
    def create_user(db: Session, user: UserCreate) -> User:
        """Self-register a student or merchant"""
        from studyspace.promotions.referral_service import ReferralService
        from studyspace.notifications.sms_service import SMSService
        
        referrals = ReferralService(db)
        if user.referral_code and not referrals.get_active_code(user.referral_code):
            raise ValueError("Invalid referral code")
        
        db_user = UserService._create(db, user.full_name, user.email, user.phone, user.password, user.role)
        
        if user.referral_code:
            # Referral stays pending until the first paid booking
            try:
                referrals.process_referral(db_user, user.referral_code)
            except ValueError as e:
                logger.warning(f"Referral code {user.referral_code} not applied for user {db_user.id}: {e}")
        
        purpose = "merchant_created" if db_user.role == MERCHANT else "user_created"
        SMSService(db).send(
            purpose, db_user.phone,
            {"name": db_user.full_name, "email": db_user.email},
            user_id=db_user.id
        )
        return db_user
    
    @staticmethod
    def create_staff_user(db: Session, user: StaffUserCreate) -> User:
        """Create a user of any role (admin only)"""
        return UserService._create(db, user.full_name, user.email, user.phone, user.password, user.role)
    
    @staticmethod
    def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
        """Authenticate user with email and password"""
        user = UserService.get_user_by_email(db, email)
        if not user:
            return None
        if not verify_password(password, user.password):
            return None
        return user
    
    @staticmethod
    def update_user(db: Session, user_id: int, user_update: UserUpdate) -> Optional[User]:
        """Update user information"""
        db_user = UserService.get_user_by_id(db, user_id)
        if not db_user:
            return None
        
        update_data = user_update.dict(exclude_unset=True)
        
        # Hash password if it's being updated
        if "password" in update_data:
            if not update_data["password"] or len(update_data["password"]) < 6:
                raise ValueError("Password must be at least 6 characters")
            update_data["password"] = get_password_hash(update_data["password"])
        
        # A changed phone number must be verified again
        if "phone" in update_data and update_data["phone"] != db_user.phone:
            db_user.phone_verified = False
        
        for field, value in update_data.items():
            setattr(db_user, field, value)
        
        db.commit()
        db.refresh(db_user)
        return db_user
    
    @staticmethod
    def list_users(
        db: Session,
        role: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[User]:
        """List users with optional role and name/email search"""
        query = db.query(User)
        if role:
            query = query.filter(User.role == role)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(
                (func.lower(User.full_name).like(pattern)) | (func.lower(User.email).like(pattern))
            )
        return query.order_by(User.id.desc()).offset(offset).limit(limit).all()
    
    @staticmethod
    def set_active(db: Session, user_id: int, is_active: bool) -> Optional[User]:
        """Activate or deactivate a user"""
        db_user = UserService.get_user_by_id(db, user_id)
        if not db_user:
            return None
        db_user.is_active = is_active
        db.commit()
        db.refresh(db_user)
        return db_user
    
    @staticmethod
    def request_phone_otp(db: Session, user: User) -> str:
        """Provision a TOTP secret and send the current code by SMS"""
        from studyspace.notifications.sms_service import SMSService
        
        if not user.phone:
            raise ValueError("Add a phone number before requesting verification")
        if not user.otp_secret:
            user.otp_secret = pyotp.random_base32()
            db.commit()
        
        code = pyotp.TOTP(user.otp_secret, interval=OTP_INTERVAL_SECONDS).now()
        SMSService(db).send("otp_verification", user.phone, {"otp": code, "name": user.full_name}, user_id=user.id)
        logger.info(f"Phone verification code issued for user {user.id}")
        return code
    
    @staticmethod
    def verify_phone_otp(db: Session, user: User, code: str) -> bool:
        """Check a phone verification code"""
        if not user.otp_secret:
            raise ValueError("Phone verification was not requested")
        totp = pyotp.TOTP(user.otp_secret, interval=OTP_INTERVAL_SECONDS)
        if not totp.verify(code, valid_window=1):
            return False
        user.phone_verified = True
        user.updated_at = datetime.now()
        db.commit()
        return True
