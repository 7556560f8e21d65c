"""
Authentication and authorization.

Tokens are HS256 JWTs carrying the user's id, email and userType. Route access
is decided by the POLICY table: each protected operation names the roles that
may perform it, and `require_capability` turns an entry into a FastAPI
dependency.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, FrozenSet, Optional, Tuple

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from pymongo.errors import DuplicateKeyError

import database
from config import get_settings
from errors import ForbiddenError, UnauthorizedError, ValidationError
from schemas import UserCreate

logger = logging.getLogger(__name__)

USERS = "users"

MEDICAL_STAFF = "medical_staff"
DISPOSAL_STAFF = "disposal_staff"

POLICY: Dict[str, FrozenSet[str]] = {
    "requests:create": frozenset({MEDICAL_STAFF}),
    "requests:list_mine": frozenset({MEDICAL_STAFF}),
    "requests:list_pending": frozenset({DISPOSAL_STAFF}),
    "requests:assign": frozenset({DISPOSAL_STAFF}),
    "requests:complete": frozenset({DISPOSAL_STAFF}),
    "classify": frozenset({MEDICAL_STAFF, DISPOSAL_STAFF}),
}

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode = {
        "id": str(user["id"]),
        "email": user["email"],
        "userType": user["user_type"],
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: Optional[str]) -> Dict[str, Any]:
    if not token:
        raise UnauthorizedError("Not authorized, no token")
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        raise UnauthorizedError("Token expired") from None
    except JWTError:
        raise UnauthorizedError("Not authorized, token failed") from None
    if not payload.get("id") or not payload.get("userType"):
        raise UnauthorizedError("Not authorized, token failed")
    return payload


def public_user(doc: Dict[str, Any]) -> Dict[str, Any]:
    user = database.serialize_doc(doc)
    user.pop("password_hash", None)
    return user


def get_current_user(token: Optional[str] = Depends(oauth2_scheme)) -> Dict[str, Any]:
    claims = decode_access_token(token)
    oid = database.to_object_id(claims["id"])
    user = database.get_collection(USERS).find_one({"_id": oid}) if oid else None
    if not user:
        raise UnauthorizedError("User no longer exists")
    return public_user(user)


def require_capability(operation: str):
    allowed = POLICY[operation]

    def capability_checker(current_user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        if current_user.get("user_type") not in allowed:
            logger.warning(
                "Capability denied",
                extra={"operation": operation, "user_id": current_user.get("id")},
            )
            raise ForbiddenError(
                f"User role {current_user.get('user_type')} is not authorized to access this route"
            )
        return current_user

    return capability_checker


def register_user(payload: UserCreate) -> Tuple[Dict[str, Any], str]:
    users = database.get_collection(USERS)
    email = payload.email.lower()
    if users.find_one({"email": email}):
        raise ValidationError("User already exists")
    user_doc = {
        "first_name": payload.first_name,
        "last_name": payload.last_name,
        "email": email,
        "password_hash": hash_password(payload.password),
        "user_type": payload.user_type,
        "department": payload.department,
    }
    try:
        stored = database.create_document(USERS, user_doc)
    except DuplicateKeyError:
        raise ValidationError("User already exists") from None
    user = public_user(stored)
    logger.info("User registered", extra={"user_id": user["id"], "user_type": user["user_type"]})
    return user, create_access_token(user)


def authenticate(email: str, password: str) -> Tuple[Dict[str, Any], str]:
    doc = database.get_collection(USERS).find_one({"email": email.lower()})
    if not doc or not verify_password(password, doc.get("password_hash", "")):
        raise UnauthorizedError("Invalid email or password")
    user = public_user(doc)
    logger.info("User logged in", extra={"user_id": user["id"]})
    return user, create_access_token(user)
