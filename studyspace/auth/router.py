from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from datetime import timedelta

from studyspace.database import get_db
from studyspace.auth.schemas import UserCreate, User, Token, UserUpdate, LoginRequest, AuthResponse, OTPVerifyRequest
from studyspace.auth.service import UserService
from studyspace.auth.utils import create_access_token
from studyspace.auth.dependencies import get_current_user
from studyspace.auth.permissions import dashboard_path
from studyspace.config import settings

router = APIRouter()

def _issue_token(user) -> str:
    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return create_access_token(
        data={"sub": str(user.id), "role": user.role}, expires_delta=access_token_expires
    )

def _authenticate(db: Session, email: str, password: str):
    user = UserService.authenticate_user(db, email, password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated"
        )
    return user

@router.post("/register", response_model=User, status_code=status.HTTP_201_CREATED)
def register_user(user: UserCreate, db: Session = Depends(get_db)):
    """Register a new student or merchant"""
    try:
        db_user = UserService.create_user(db=db, user=user)
        return db_user
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

@router.post("/login", response_model=AuthResponse)
def login(login_data: LoginRequest, db: Session = Depends(get_db)):
    """Login and get the dashboard to redirect to"""
    user = _authenticate(db, login_data.email, login_data.password)
    return AuthResponse(
        access_token=_issue_token(user),
        token_type="bearer",
        user=user,
        redirect_to=dashboard_path(user.role)
    )

@router.post("/token", response_model=Token)
def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """OAuth2 password flow login"""
    user = _authenticate(db, form_data.username, form_data.password)
    return Token(access_token=_issue_token(user), token_type="bearer")

@router.get("/me", response_model=User)
def read_users_me(current_user: User = Depends(get_current_user)):
    """Get current user profile"""
    return current_user

@router.put("/me", response_model=User)
def update_user_profile(
    user_update: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update current user profile"""
    try:
        updated_user = UserService.update_user(db=db, user_id=current_user.id, user_update=user_update)
        if not updated_user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )
        return updated_user
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

@router.post("/phone/request-otp")
def request_phone_otp(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Send a phone verification code"""
    try:
        UserService.request_phone_otp(db, current_user)
        return {"message": "Verification code sent"}
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.post("/phone/verify", response_model=User)
def verify_phone_otp(
    request: OTPVerifyRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Verify the phone number with a code"""
    try:
        if not UserService.verify_phone_otp(db, current_user, request.code):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired code")
        return current_user
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
