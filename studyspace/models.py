from sqlalchemy import (
    Column, Integer, BigInteger, String, Boolean, DateTime, Date, Text, ForeignKey,
    Numeric, JSON, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from studyspace.database import Base

# SQLite only autoincrements INTEGER primary keys
ID = BigInteger().with_variant(Integer, "sqlite")

# ================================
# Users & Merchants
# ================================
class User(Base):
    __tablename__ = "users"
    
    id = Column(ID, primary_key=True, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(20))
    password = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False, default="student", index=True)
    is_active = Column(Boolean, default=True)
    phone_verified = Column(Boolean, default=False)
    otp_secret = Column(String(64))
    merchant_number = Column(Integer, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    # Relationships
    merchant_profile = relationship("MerchantProfile", back_populates="merchant", uselist=False, foreign_keys="MerchantProfile.merchant_id")
    study_halls = relationship("StudyHall", back_populates="merchant")
    private_halls = relationship("PrivateHall", back_populates="merchant")
    bookings = relationship("Booking", back_populates="user")
    cabin_bookings = relationship("CabinBooking", back_populates="user", foreign_keys="CabinBooking.user_id")
    reward = relationship("Reward", back_populates="user", uselist=False)
    notifications = relationship("Notification", back_populates="user")

class MerchantProfile(Base):
    __tablename__ = "merchant_profiles"
    
    id = Column(ID, primary_key=True, index=True)
    merchant_id = Column(ID, ForeignKey("users.id"), unique=True, nullable=False)
    # Step 1: business information
    business_name = Column(String(255))
    business_address = Column(Text)
    business_email = Column(String(255))
    phone = Column(String(20))
    # Step 2: KYC documents
    trade_license_number = Column(String(100))
    trade_license_document_url = Column(String(500))
    identity_document_url = Column(String(500))
    gstin_pan = Column(String(20))
    # Step 3: bank details
    account_holder_name = Column(String(255))
    account_number = Column(String(30))
    bank_name = Column(String(255))
    ifsc_code = Column(String(11))
    # Progress & verification
    onboarding_step = Column(Integer, default=1)
    is_onboarding_complete = Column(Boolean, default=False)
    verification_status = Column(String(20), default="not_submitted")
    verification_notes = Column(Text)
    submitted_at = Column(DateTime(timezone=True))
    verified_by = Column(ID, ForeignKey("users.id"))
    verified_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    # Relationships
    merchant = relationship("User", back_populates="merchant_profile", foreign_keys=[merchant_id])

class Incharge(Base):
    __tablename__ = "incharges"
    
    id = Column(ID, primary_key=True, index=True)
    merchant_id = Column(ID, ForeignKey("users.id"), nullable=False, index=True)
    user_id = Column(ID, ForeignKey("users.id"), unique=True, nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    # Relationships
    merchant = relationship("User", foreign_keys=[merchant_id])
    user = relationship("User", foreign_keys=[user_id])
    assignments = relationship("InchargeStudyHall", back_populates="incharge", cascade="all, delete-orphan")

class InchargeStudyHall(Base):
    __tablename__ = "incharge_study_halls"
    __table_args__ = (UniqueConstraint("incharge_id", "study_hall_id", name="uq_incharge_hall"),)
    
    id = Column(ID, primary_key=True, index=True)
    incharge_id = Column(ID, ForeignKey("incharges.id"), nullable=False, index=True)
    study_hall_id = Column(ID, ForeignKey("study_halls.id"), nullable=False, index=True)
    
    # Relationships
    incharge = relationship("Incharge", back_populates="assignments")
    study_hall = relationship("StudyHall")

# ================================
# Study Halls & Seats
# ================================
class StudyHall(Base):
    __tablename__ = "study_halls"
    
    id = Column(ID, primary_key=True, index=True)
    merchant_id = Column(ID, ForeignKey("users.id"), nullable=False, index=True)
    hall_number = Column(Integer)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text)
    location = Column(String(255))
    formatted_address = Column(Text)
    latitude = Column(Numeric(10, 6))
    longitude = Column(Numeric(10, 6))
    rows = Column(Integer, nullable=False)
    seats_per_row = Column(Integer, nullable=False)
    custom_row_names = Column(JSON)
    total_seats = Column(Integer, nullable=False)
    daily_price = Column(Numeric(10, 2), default=0)
    weekly_price = Column(Numeric(10, 2), default=0)
    monthly_price = Column(Numeric(10, 2), default=0)
    amenities = Column(JSON)
    image_url = Column(String(500))
    status = Column(String(20), default="active")
    qr_booking_enabled = Column(Boolean, default=True)
    average_rating = Column(Numeric(3, 2))
    total_reviews = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    # Relationships
    merchant = relationship("User", back_populates="study_halls")
    seats = relationship("Seat", back_populates="study_hall", cascade="all, delete-orphan", order_by="Seat.id")
    bookings = relationship("Booking", back_populates="study_hall")
    pricing_plan = relationship("MonthlyPricingPlan", back_populates="study_hall", uselist=False)

class Seat(Base):
    __tablename__ = "seats"
    __table_args__ = (UniqueConstraint("study_hall_id", "seat_label", name="uq_seat_label"),)
    
    id = Column(ID, primary_key=True, index=True)
    study_hall_id = Column(ID, ForeignKey("study_halls.id"), nullable=False, index=True)
    seat_label = Column(String(20), nullable=False)
    row_name = Column(String(20), nullable=False)
    seat_number = Column(Integer, nullable=False)
    is_available = Column(Boolean, default=True)
    
    # Relationships
    study_hall = relationship("StudyHall", back_populates="seats")
    bookings = relationship("Booking", back_populates="seat")

class MonthlyPricingPlan(Base):
    __tablename__ = "monthly_pricing_plans"
    __table_args__ = (UniqueConstraint("merchant_id", "study_hall_id", name="uq_pricing_plan_hall"),)
    
    id = Column(ID, primary_key=True, index=True)
    merchant_id = Column(ID, ForeignKey("users.id"), nullable=False)
    study_hall_id = Column(ID, ForeignKey("study_halls.id"), nullable=False)
    months_1_enabled = Column(Boolean, default=False)
    months_1_price = Column(Numeric(10, 2))
    months_2_enabled = Column(Boolean, default=False)
    months_2_price = Column(Numeric(10, 2))
    months_3_enabled = Column(Boolean, default=False)
    months_3_price = Column(Numeric(10, 2))
    months_6_enabled = Column(Boolean, default=False)
    months_6_price = Column(Numeric(10, 2))
    months_12_enabled = Column(Boolean, default=False)
    months_12_price = Column(Numeric(10, 2))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    # Relationships
    study_hall = relationship("StudyHall", back_populates="pricing_plan")

# ================================
# Private Halls & Cabins
# ================================
class PrivateHall(Base):
    __tablename__ = "private_halls"
    
    id = Column(ID, primary_key=True, index=True)
    merchant_id = Column(ID, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    location = Column(String(255))
    cabin_count = Column(Integer, nullable=False)
    monthly_price = Column(Numeric(10, 2), nullable=False)
    deposit = Column(Numeric(10, 2), default=0)
    amenities = Column(JSON)
    status = Column(String(20), default="active")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    # Relationships
    merchant = relationship("User", back_populates="private_halls")
    cabins = relationship("Cabin", back_populates="private_hall", cascade="all, delete-orphan", order_by="Cabin.cabin_number")

class Cabin(Base):
    __tablename__ = "cabins"
    
    id = Column(ID, primary_key=True, index=True)
    private_hall_id = Column(ID, ForeignKey("private_halls.id"), nullable=False, index=True)
    cabin_number = Column(Integer, nullable=False)
    cabin_name = Column(String(100))
    monthly_price = Column(Numeric(10, 2))
    status = Column(String(20), default="available")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    
    # Relationships
    private_hall = relationship("PrivateHall", back_populates="cabins")
    bookings = relationship("CabinBooking", back_populates="cabin")

# ================================
# Bookings
# ================================
class Booking(Base):
    __tablename__ = "bookings"
    
    id = Column(ID, primary_key=True, index=True)
    booking_number = Column(String(30), unique=True, index=True)
    user_id = Column(ID, ForeignKey("users.id"), nullable=False, index=True)
    study_hall_id = Column(ID, ForeignKey("study_halls.id"), nullable=False, index=True)
    seat_id = Column(ID, ForeignKey("seats.id"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    period_type = Column(String(20))
    months = Column(Integer)
    base_amount = Column(Numeric(10, 2), nullable=False)
    coupon_id = Column(ID, ForeignKey("coupons.id"))
    coupon_code = Column(String(50))
    discount_amount = Column(Numeric(10, 2), default=0)
    reward_points_used = Column(Integer, default=0)
    rewards_discount = Column(Numeric(10, 2), default=0)
    platform_fee = Column(Numeric(10, 2), default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), default="pending", index=True)
    payment_status = Column(String(20), default="unpaid")
    payment_method = Column(String(50))
    expires_at = Column(DateTime(timezone=True))
    ticket_code = Column(String(32))
    checked_in_at = Column(DateTime(timezone=True))
    cancelled_at = Column(DateTime(timezone=True))
    cancellation_reason = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    # Relationships
    user = relationship("User", back_populates="bookings")
    study_hall = relationship("StudyHall", back_populates="bookings")
    seat = relationship("Seat", back_populates="bookings")
    coupon = relationship("Coupon")
    transactions = relationship("Transaction", back_populates="booking")

class CabinBooking(Base):
    __tablename__ = "cabin_bookings"
    
    id = Column(ID, primary_key=True, index=True)
    booking_number = Column(String(30), unique=True, index=True)
    user_id = Column(ID, ForeignKey("users.id"), nullable=False, index=True)
    private_hall_id = Column(ID, ForeignKey("private_halls.id"), nullable=False, index=True)
    cabin_id = Column(ID, ForeignKey("cabins.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    months = Column(Integer, nullable=False)
    monthly_amount = Column(Numeric(10, 2), nullable=False)
    booking_amount = Column(Numeric(10, 2), nullable=False)
    deposit_amount = Column(Numeric(10, 2), default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), default="pending")
    payment_status = Column(String(20), default="unpaid")
    payment_method = Column(String(50))
    is_vacated = Column(Boolean, default=False)
    vacated_at = Column(DateTime(timezone=True))
    vacated_by = Column(ID, ForeignKey("users.id"))
    vacate_reason = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    # Relationships
    user = relationship("User", back_populates="cabin_bookings", foreign_keys=[user_id])
    private_hall = relationship("PrivateHall")
    cabin = relationship("Cabin", back_populates="bookings")

# ================================
# Payments, Settlements & Withdrawals
# ================================
class Transaction(Base):
    __tablename__ = "transactions"
    
    id = Column(ID, primary_key=True, index=True)
    transaction_number = Column(String(30), unique=True, index=True)
    user_id = Column(ID, ForeignKey("users.id"), nullable=False, index=True)
    merchant_id = Column(ID, ForeignKey("users.id"), index=True)
    booking_id = Column(ID, ForeignKey("bookings.id"))
    cabin_booking_id = Column(ID, ForeignKey("cabin_bookings.id"))
    subscription_id = Column(ID, ForeignKey("merchant_subscriptions.id"))
    transaction_type = Column(String(30), default="booking")
    amount = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(50))
    payment_id = Column(String(100))
    status = Column(String(20), default="pending", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    
    # Relationships
    user = relationship("User", foreign_keys=[user_id])
    booking = relationship("Booking", back_populates="transactions")
    cabin_booking = relationship("CabinBooking")
    settlement_link = relationship("SettlementTransaction", back_populates="transaction", uselist=False)

class BusinessSettings(Base):
    __tablename__ = "business_settings"
    
    id = Column(ID, primary_key=True, index=True)
    # Booking platform fee charged to students
    platform_fee_enabled = Column(Boolean, default=False)
    platform_fee_type = Column(String(20), default="percentage")
    platform_fee_value = Column(Numeric(10, 2), default=0)
    # Settlement and payout rules
    platform_fee_percentage = Column(Numeric(5, 2), default=10)
    minimum_settlement_amount = Column(Numeric(10, 2), default=0)
    minimum_withdrawal_amount = Column(Numeric(10, 2), default=500)
    withdrawal_processing_days = Column(Integer, default=3)
    # Rewards
    rewards_enabled = Column(Boolean, default=True)
    points_conversion_rate = Column(Numeric(10, 4), default=0.10)
    min_redemption_points = Column(Integer, default=10)
    points_per_booking = Column(Integer, default=50)
    referrer_points = Column(Integer, default=1000)
    referee_points = Column(Integer, default=500)
    points_profile_completion = Column(Integer, default=100)
    monthly_referral_limit = Column(Integer, default=10)
    # SMS
    sms_enabled = Column(Boolean, default=False)
    sms_merchant_created = Column(Boolean, default=True)
    sms_user_created = Column(Boolean, default=True)
    sms_booking_confirmation = Column(Boolean, default=True)
    sms_otp_verification = Column(Boolean, default=True)
    sms_password_reset = Column(Boolean, default=True)
    sms_merchant_approved = Column(Boolean, default=True)
    sms_booking_alert_merchant = Column(Boolean, default=True)
    # Merchant trials
    trial_enabled = Column(Boolean, default=True)
    trial_days = Column(Integer, default=14)
    trial_max_study_halls = Column(Integer, default=1)
    # Bookings & branding
    booking_payment_window_minutes = Column(Integer, default=30)
    brand_name = Column(String(100), default="StudySpace")
    support_email = Column(String(255))
    support_phone = Column(String(20))
    updated_by = Column(ID, ForeignKey("users.id"))
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

class Settlement(Base):
    __tablename__ = "settlements"
    
    id = Column(ID, primary_key=True, index=True)
    settlement_number = Column(String(30), unique=True, index=True)
    merchant_id = Column(ID, ForeignKey("users.id"), nullable=False, index=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    platform_fee_percentage = Column(Numeric(5, 2), nullable=False)
    platform_fee_amount = Column(Numeric(12, 2), nullable=False)
    net_amount = Column(Numeric(12, 2), nullable=False)
    transaction_count = Column(Integer, default=0)
    period_start = Column(Date)
    period_end = Column(Date)
    status = Column(String(20), default="pending", index=True)
    payment_reference = Column(String(100))
    payment_method = Column(String(50))
    payment_date = Column(DateTime(timezone=True))
    notes = Column(Text)
    created_by = Column(ID, ForeignKey("users.id"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    # Relationships
    merchant = relationship("User", foreign_keys=[merchant_id])
    transactions = relationship("SettlementTransaction", back_populates="settlement", cascade="all, delete-orphan")

class SettlementTransaction(Base):
    __tablename__ = "settlement_transactions"
    
    id = Column(ID, primary_key=True, index=True)
    settlement_id = Column(ID, ForeignKey("settlements.id"), nullable=False)
    transaction_id = Column(ID, ForeignKey("transactions.id"), unique=True, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    
    # Relationships
    settlement = relationship("Settlement", back_populates="transactions")
    transaction = relationship("Transaction", back_populates="settlement_link")

class WithdrawalRequest(Base):
    __tablename__ = "withdrawal_requests"
    
    id = Column(ID, primary_key=True, index=True)
    merchant_id = Column(ID, ForeignKey("users.id"), nullable=False, index=True)
    requested_amount = Column(Numeric(12, 2), nullable=False)
    withdrawal_method = Column(String(50), default="bank_transfer")
    status = Column(String(20), default="pending", index=True)
    admin_notes = Column(Text)
    processed_by = Column(ID, ForeignKey("users.id"))
    processed_at = Column(DateTime(timezone=True))
    payment_reference = Column(String(100))
    payment_method = Column(String(50))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    # Relationships
    merchant = relationship("User", foreign_keys=[merchant_id])

# ================================
# Coupons, Rewards & Referrals
# ================================
class Coupon(Base):
    __tablename__ = "coupons"
    
    id = Column(ID, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    title = Column(String(255))
    description = Column(Text)
    type = Column(String(20), nullable=False)
    value = Column(Numeric(10, 2), nullable=False)
    max_discount = Column(Numeric(10, 2))
    min_booking_amount = Column(Numeric(10, 2))
    usage_limit = Column(Integer)
    used_count = Column(Integer, default=0)
    user_usage_limit = Column(Integer, default=1)
    start_date = Column(DateTime(timezone=True))
    end_date = Column(DateTime(timezone=True))
    merchant_id = Column(ID, ForeignKey("users.id"))
    target_audience = Column(String(30), default="all")
    status = Column(String(20), default="active")
    created_by = Column(ID, ForeignKey("users.id"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    
    # Relationships
    usages = relationship("CouponUsage", back_populates="coupon")

class CouponUsage(Base):
    __tablename__ = "coupon_usage"
    
    id = Column(ID, primary_key=True, index=True)
    coupon_id = Column(ID, ForeignKey("coupons.id"), nullable=False, index=True)
    user_id = Column(ID, ForeignKey("users.id"), nullable=False, index=True)
    booking_id = Column(ID, ForeignKey("bookings.id"))
    discount_amount = Column(Numeric(10, 2), nullable=False)
    used_at = Column(DateTime(timezone=True), server_default=func.now())
    
    # Relationships
    coupon = relationship("Coupon", back_populates="usages")

class Reward(Base):
    __tablename__ = "rewards"
    
    id = Column(ID, primary_key=True, index=True)
    user_id = Column(ID, ForeignKey("users.id"), unique=True, nullable=False)
    total_points = Column(Integer, default=0)
    available_points = Column(Integer, default=0)
    lifetime_earned = Column(Integer, default=0)
    lifetime_redeemed = Column(Integer, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    # Relationships
    user = relationship("User", back_populates="reward")

class RewardTransaction(Base):
    __tablename__ = "reward_transactions"
    
    id = Column(ID, primary_key=True, index=True)
    user_id = Column(ID, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    points = Column(Integer, nullable=False)
    reason = Column(String(255))
    booking_id = Column(ID, ForeignKey("bookings.id"))
    referral_id = Column(ID, ForeignKey("referral_rewards.id"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class ReferralCode(Base):
    __tablename__ = "referral_codes"
    
    id = Column(ID, primary_key=True, index=True)
    user_id = Column(ID, ForeignKey("users.id"), unique=True, nullable=False)
    code = Column(String(20), unique=True, nullable=False, index=True)
    status = Column(String(20), default="active")
    total_referrals = Column(Integer, default=0)
    successful_referrals = Column(Integer, default=0)
    total_earnings = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class ReferralReward(Base):
    __tablename__ = "referral_rewards"
    
    id = Column(ID, primary_key=True, index=True)
    referral_code_id = Column(ID, ForeignKey("referral_codes.id"), nullable=False)
    referrer_id = Column(ID, ForeignKey("users.id"), nullable=False, index=True)
    referee_id = Column(ID, ForeignKey("users.id"), nullable=False, index=True)
    booking_id = Column(ID, ForeignKey("bookings.id"))
    referrer_points = Column(Integer, nullable=False)
    referee_points = Column(Integer, nullable=False)
    status = Column(String(20), default="pending")
    completed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

# ================================
# Subscriptions
# ================================
class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"
    
    id = Column(ID, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text)
    price = Column(Numeric(10, 2), nullable=False)
    duration = Column(String(20), default="monthly")
    max_study_halls = Column(Integer)
    features = Column(JSON)
    status = Column(String(20), default="active")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class MerchantSubscription(Base):
    __tablename__ = "merchant_subscriptions"
    
    id = Column(ID, primary_key=True, index=True)
    merchant_id = Column(ID, ForeignKey("users.id"), nullable=False, index=True)
    plan_id = Column(ID, ForeignKey("subscription_plans.id"))
    status = Column(String(20), default="active", index=True)
    is_trial = Column(Boolean, default=False)
    max_study_halls = Column(Integer)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True))
    trial_expires_at = Column(DateTime(timezone=True))
    payment_amount = Column(Numeric(10, 2), default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    
    # Relationships
    plan = relationship("SubscriptionPlan")

# ================================
# Notifications, SMS & Audit
# ================================
class Notification(Base):
    __tablename__ = "notifications"
    
    id = Column(ID, primary_key=True, index=True)
    user_id = Column(ID, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(30), default="info")
    action_url = Column(String(500))
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    
    # Relationships
    user = relationship("User", back_populates="notifications")

class SMSTemplate(Base):
    __tablename__ = "sms_templates"
    
    id = Column(ID, primary_key=True, index=True)
    purpose = Column(String(50), unique=True, nullable=False)
    template = Column(Text, nullable=False)
    dlt_template_id = Column(String(50))
    is_active = Column(Boolean, default=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

class SMSLog(Base):
    __tablename__ = "sms_logs"
    
    id = Column(ID, primary_key=True, index=True)
    user_id = Column(ID, ForeignKey("users.id"))
    purpose = Column(String(50), nullable=False)
    phone = Column(String(20), nullable=False)
    message = Column(Text, nullable=False)
    request_url = Column(Text)
    response_text = Column(Text)
    status = Column(String(20), nullable=False)
    error_message = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class AuditLog(Base):
    __tablename__ = "audit_logs"
    
    id = Column(ID, primary_key=True, index=True)
    actor_id = Column(ID, ForeignKey("users.id"))
    action = Column(String(100), nullable=False)
    resource_type = Column(String(50))
    resource_id = Column(String(50))
    details = Column(JSON)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

# ================================
# Reviews & Staff Operations
# ================================
class StudyHallReview(Base):
    __tablename__ = "study_hall_reviews"
    
    id = Column(ID, primary_key=True, index=True)
    user_id = Column(ID, ForeignKey("users.id"), nullable=False, index=True)
    merchant_id = Column(ID, ForeignKey("users.id"), nullable=False, index=True)
    study_hall_id = Column(ID, ForeignKey("study_halls.id"), nullable=False, index=True)
    booking_id = Column(ID, ForeignKey("bookings.id"), unique=True, nullable=False)
    rating = Column(Integer, nullable=False)
    review_text = Column(Text)
    status = Column(String(20), default="approved", index=True)
    merchant_response = Column(Text)
    responded_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    # Relationships
    user = relationship("User", foreign_keys=[user_id])
    study_hall = relationship("StudyHall")

class CallLog(Base):
    __tablename__ = "call_logs"
    
    id = Column(ID, primary_key=True, index=True)
    caller_id = Column(ID, ForeignKey("users.id"), nullable=False, index=True)
    contact_type = Column(String(20), nullable=False)
    contact_id = Column(ID, ForeignKey("users.id"), nullable=False, index=True)
    booking_id = Column(ID, ForeignKey("bookings.id"))
    call_purpose = Column(String(30), nullable=False)
    call_status = Column(String(30), nullable=False)
    call_outcome = Column(String(30))
    notes = Column(Text)
    follow_up_date = Column(Date)
    call_duration = Column(Integer)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    # Relationships
    caller = relationship("User", foreign_keys=[caller_id])
    contact = relationship("User", foreign_keys=[contact_id])

class SupportTicket(Base):
    __tablename__ = "support_tickets"
    
    id = Column(ID, primary_key=True, index=True)
    ticket_number = Column(Integer, unique=True, nullable=False)
    user_id = Column(ID, ForeignKey("users.id"), index=True)
    merchant_id = Column(ID, ForeignKey("users.id"), index=True)
    assigned_to = Column(ID, ForeignKey("users.id"), index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(20), nullable=False)
    priority = Column(String(20), default="medium")
    status = Column(String(20), default="open", index=True)
    resolution = Column(Text)
    resolved_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    # Relationships
    user = relationship("User", foreign_keys=[user_id])
    merchant = relationship("User", foreign_keys=[merchant_id])
    assignee = relationship("User", foreign_keys=[assigned_to])
