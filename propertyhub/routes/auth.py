import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import extract_token, get_current_user, security
from ..config import ENVIRONMENT, SETUP_ROLE_USER, TOKEN_COOKIE_NAME, TOKEN_EXPIRE_MINUTES
from ..database import get_db
from ..models import Role, User
from ..security_utils import create_jwt_token, hash_password_bcrypt, verify_jwt_token, verify_password_bcrypt
from ..services.messaging import MessagingGateway, get_messaging
from ..services.storage import MediaStorage, get_storage, read_validated_uploads
from ..services.verification_service import VerificationError, issue_verification_code, verify_code
from ..shared.validators import normalize_phone, validate_email

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])


class RegisterRequest(BaseModel):
    username: str = Field(min_length=5, max_length=100)
    email: str
    phone: str
    password: str = Field(min_length=6, max_length=128)

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        return v.strip()

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: str) -> str:
        return normalize_phone(v)


class LoginRequest(BaseModel):
    # Either the email address or the username
    email: str
    password: str = Field(min_length=6)


class VerifyCodeRequest(BaseModel):
    email: str
    code: str = Field(min_length=4, max_length=10)


class ResendCodeRequest(BaseModel):
    email: str


def serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "phone": user.phone,
        "role": user.role_name,
        "profileImage": user.profile_image_url,
        "emailVerified": user.email_verified,
        "phoneVerified": user.phone_verified,
        "createdAt": user.created_at,
    }


def set_session_cookie(response: Response, token: str) -> None:
    """Local development shares a site with the frontend; deployments are cross-site over https"""
    if ENVIRONMENT == "local":
        response.set_cookie(
            TOKEN_COOKIE_NAME, token, max_age=TOKEN_EXPIRE_MINUTES * 60, httponly=True, samesite="lax"
        )
    else:
        response.set_cookie(
            TOKEN_COOKIE_NAME,
            token,
            max_age=TOKEN_EXPIRE_MINUTES * 60,
            httponly=True,
            samesite="none",
            secure=True,
        )


def _find_by_email(db: Session, email: str) -> User:
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.post("/register", status_code=201)
async def register(
    data: RegisterRequest,
    response: Response,
    db: Session = Depends(get_db),
    messaging: MessagingGateway = Depends(get_messaging),
):
    if db.query(User).filter(User.email == data.email).first():
        raise HTTPException(status_code=400, detail="Email is already registered")
    if db.query(User).filter(User.username == data.username).first():
        raise HTTPException(status_code=400, detail="Username is already taken")

    role = db.query(Role).filter(Role.name == SETUP_ROLE_USER).first()
    if not role:
        logger.error(f"❌ Default role '{SETUP_ROLE_USER}' is missing, cannot register users")
        raise HTTPException(status_code=400, detail="The user role is not configured")

    user = User(
        username=data.username,
        email=data.email,
        phone=data.phone,
        password_hash=hash_password_bcrypt(data.password),
        role_id=role.id,
        email_verified=False,
        phone_verified=False,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Email or username is already registered")
    db.refresh(user)
    logger.info(f"👤 Registered user {user.id} ({user.email})")

    verification = await issue_verification_code(db, user, messaging)

    token = create_jwt_token({"id": user.id})
    set_session_cookie(response, token)
    return {
        **serialize_user(user),
        "token": token,
        "requiresVerification": True,
        "verification": {
            "message": verification["message"],
            "smsSent": verification["sms_sent"],
            "emailSent": verification["email_sent"],
            "expiresAt": verification["expires_at"],
        },
    }


@router.post("/login")
async def login(data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    identifier = data.email.strip()
    user = (
        db.query(User)
        .filter(or_(User.email == identifier.lower(), User.username == identifier))
        .first()
    )
    if not user:
        raise HTTPException(status_code=400, detail="User not found")
    if not verify_password_bcrypt(data.password, user.password_hash):
        raise HTTPException(status_code=400, detail="Incorrect password")
    if not user.role:
        raise HTTPException(status_code=400, detail="The user's role is not configured")

    if not user.is_staff and not user.is_verified:
        logger.info(f"🔒 Login blocked for unverified user {user.id}")
        return _verification_required(user)

    token = create_jwt_token({"id": user.id})
    set_session_cookie(response, token)
    logger.info(f"✅ User {user.id} logged in")
    return {**serialize_user(user), "token": token}


def _verification_required(user: User):
    return JSONResponse(
        status_code=403,
        content={
            "message": ["Verify your email and phone before logging in"],
            "requiresVerification": True,
            "email": user.email,
            "emailVerified": user.email_verified,
            "phoneVerified": user.phone_verified,
        },
    )


@router.post("/logout")
async def logout(response: Response):
    if ENVIRONMENT == "local":
        response.delete_cookie(TOKEN_COOKIE_NAME, httponly=True, samesite="lax")
    else:
        response.delete_cookie(TOKEN_COOKIE_NAME, httponly=True, samesite="none", secure=True)
    return {"message": "Logged out"}


@router.get("/verify")
async def verify_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
):
    """Check the session token and return the user it belongs to"""
    token = extract_token(request, credentials)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")
    payload = verify_jwt_token(token)
    if not payload or "id" not in payload:
        raise HTTPException(status_code=401, detail="Unauthorized")
    user = db.query(User).filter(User.id == payload["id"]).first()
    if not user:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return serialize_user(user)


@router.get("/profile")
async def profile(current_user: User = Depends(get_current_user)):
    return serialize_user(current_user)


@router.put("/profile/image")
async def update_profile_image(
    image: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: MediaStorage = Depends(get_storage),
):
    uploads = await read_validated_uploads([image], "image", max_files=1)
    if not uploads:
        raise HTTPException(status_code=400, detail="An image file is required")
    upload, content = uploads[0]
    stored = storage.save(content, "profiles", upload.filename, upload.content_type)

    previous_key = current_user.profile_image_key
    current_user.profile_image_url = stored.url
    current_user.profile_image_key = stored.key
    db.commit()
    if previous_key:
        storage.delete(previous_key)

    logger.info(f"🖼️ Updated profile image for user {current_user.id}")
    return serialize_user(current_user)


@router.post("/verify-code")
async def verify_account_code(data: VerifyCodeRequest, db: Session = Depends(get_db)):
    user = _find_by_email(db, data.email)
    try:
        verify_code(db, user, data.code.strip())
    except VerificationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"message": "Account verified", "user": serialize_user(user)}


@router.post("/resend-code")
async def resend_code(
    data: ResendCodeRequest,
    db: Session = Depends(get_db),
    messaging: MessagingGateway = Depends(get_messaging),
):
    user = _find_by_email(db, data.email)
    if user.is_verified:
        raise HTTPException(status_code=400, detail="This account is already verified")
    result = await issue_verification_code(db, user, messaging)
    return {
        "message": result["message"],
        "smsSent": result["sms_sent"],
        "emailSent": result["email_sent"],
        "expiresAt": result["expires_at"],
    }
