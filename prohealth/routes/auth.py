import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth import create_access_token, get_current_user, hash_password, verify_password
from ..database import get_db
from ..models import User
from ..schemas import LoginRequest, NameUpdate, ProfileUpdateResponse, TokenResponse, UserCreate, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NAME_PATTERN = re.compile(r"^[a-zA-Z\s'-]+$")


def validate_password(password: str) -> Optional[str]:
    """Return the first unmet password rule, or None"""
    if len(password) < 8:
        return "Password must be at least 8 characters long"
    if not re.search(r"[A-Z]", password):
        return "Password must contain at least one uppercase letter"
    if not re.search(r"[a-z]", password):
        return "Password must contain at least one lowercase letter"
    if not re.search(r"[0-9]", password):
        return "Password must contain at least one number"
    if not re.search(r"[!@#$%^&*]", password):
        return "Password must contain at least one special character (!@#$%^&*)"
    return None


@router.post("/register", response_model=UserResponse, status_code=201)
async def register(data: UserCreate, db: Session = Depends(get_db)):
    """Create an account with email and password"""
    if not data.name or not data.email or not data.password:
        raise HTTPException(status_code=400, detail="All fields are required")

    email = data.email.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise HTTPException(status_code=400, detail="Invalid email format")

    password_error = validate_password(data.password)
    if password_error:
        raise HTTPException(status_code=400, detail=password_error)

    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=409, detail="An account with this email already exists")

    user = User(name=data.name.strip(), email=email, password=hash_password(data.password))
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="An account with this email already exists") from None
    db.refresh(user)

    logger.info(f"✅ User registered: {user.id}")
    return user


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest, db: Session = Depends(get_db)):
    """Exchange email and password for a bearer token"""
    user = db.query(User).filter(User.email == data.email.strip().lower()).first()
    if not user or not user.password or not verify_password(data.password, user.password):
        logger.warning("❌ Failed login attempt")
        raise HTTPException(status_code=401, detail="Invalid email or password")

    return TokenResponse(access_token=create_access_token(user.id), user=UserResponse.model_validate(user))


# ============================================================================
# PROFILE
# ============================================================================


def validate_name(name: str) -> Optional[str]:
    """Return the first unmet display-name rule, or None"""
    if len(name) < 2:
        return "Name must be at least 2 characters"
    if len(name) > 100:
        return "Name must be less than 100 characters"
    if not NAME_PATTERN.match(name):
        return "Name can only contain letters, spaces, hyphens, and apostrophes"
    return None


@router.get("/me", response_model=UserResponse)
async def get_profile(user: User = Depends(get_current_user)):
    """Return the signed-in user's profile"""
    return user


@router.patch("/me", response_model=ProfileUpdateResponse)
async def update_profile(
    data: NameUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Change the signed-in user's display name"""
    if not isinstance(data.name, str):
        raise HTTPException(status_code=400, detail="Invalid input data")

    name = data.name.strip()
    name_error = validate_name(name)
    if name_error:
        raise HTTPException(status_code=400, detail=name_error)

    if user.name == name:
        return ProfileUpdateResponse(message="No changes made", user=UserResponse.model_validate(user))

    user.name = name
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ Failed to update profile for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update name. Please try again.") from None
    db.refresh(user)

    logger.info(f"✅ Profile updated for user {user.id}")
    return ProfileUpdateResponse(message="Profile updated", user=UserResponse.model_validate(user))
