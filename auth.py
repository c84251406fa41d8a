import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, EmailStr
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db, now
from schemas import User

logger = logging.getLogger(__name__)

# Environment / Auth settings
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
REFRESH_SECRET_KEY = os.getenv("REFRESH_SECRET_KEY", "dev-refresh-secret-key-change-me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 15))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", 7))
REFRESH_COOKIE_NAME = "refreshToken"

BOOTSTRAP_SENTINEL = "admin_bootstrap"
# a claim older than this with still no admin user is considered abandoned
BOOTSTRAP_CLAIM_TIMEOUT = timedelta(seconds=int(os.getenv("BOOTSTRAP_CLAIM_TIMEOUT_SECONDS", 30)))

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

router = APIRouter()


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    id: str
    email: str
    role: str


class UserMessage(BaseModel):
    message: str
    user: UserOut


class Identity(BaseModel):
    """The authenticated caller, as decoded from an access token."""
    id: str
    role: str


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def _create_token(user: dict, token_type: str, secret: str, expires_delta: timedelta) -> str:
    to_encode = {
        "sub": str(user["_id"]),
        "role": user.get("role", "user"),
        "type": token_type,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(to_encode, secret, algorithm=ALGORITHM)


def create_access_token(user: dict, expires_delta: Optional[timedelta] = None) -> str:
    return _create_token(
        user, "access", SECRET_KEY,
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(user: dict, expires_delta: Optional[timedelta] = None) -> str:
    return _create_token(
        user, "refresh", REFRESH_SECRET_KEY,
        expires_delta or timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS),
    )


async def get_current_user(token: str = Depends(oauth2_scheme)) -> Identity:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning("Rejected access token: %s", e)
        raise credentials_exception

    user_id = payload.get("sub")
    role = payload.get("role")
    if user_id is None or role is None or payload.get("type") != "access":
        logger.warning("Rejected access token with incomplete payload")
        raise credentials_exception
    return Identity(id=user_id, role=role)


# Admin guard
def require_admin(user: Identity = Depends(get_current_user)) -> Identity:
    if user.role != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admins only")
    return user


def normalize_email(email: str) -> str:
    return email.strip().lower()


def claim_bootstrap_admin(db: Database, user_id: ObjectId) -> bool:
    """
    Elect the bootstrap admin exactly once.

    Returns True only for the single caller that inserts the sentinel document
    while no admin user exists; concurrent callers hit the ``_id`` uniqueness
    and lose the election. A sentinel left behind by a claim that never
    produced an admin (crash, reset user collection) is cleared once it is
    older than ``BOOTSTRAP_CLAIM_TIMEOUT``.
    """
    if db["user"].find_one({"role": "admin"}):
        return False

    stale = db["meta"].delete_one({
        "_id": BOOTSTRAP_SENTINEL,
        "$or": [
            {"claimed_at": {"$exists": False}},
            {"claimed_at": {"$lt": now() - BOOTSTRAP_CLAIM_TIMEOUT}},
        ],
    })
    if stale.deleted_count:
        logger.warning("Cleared abandoned bootstrap admin claim")

    try:
        db["meta"].insert_one(
            {"_id": BOOTSTRAP_SENTINEL, "user_id": str(user_id), "claimed_at": now()}
        )
    except DuplicateKeyError:
        return False
    return True


def release_bootstrap_admin(db: Database, user_id: ObjectId):
    db["meta"].delete_one({"_id": BOOTSTRAP_SENTINEL, "user_id": str(user_id)})


def user_summary(user: dict) -> UserOut:
    return UserOut(id=str(user["_id"]), email=user["email"], role=user["role"])


# Auth endpoints
@router.post("/register", response_model=UserMessage, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Database = Depends(get_db)):
    email = normalize_email(payload.email)
    if db["user"].find_one({"email": email}):
        raise HTTPException(status_code=400, detail="Email exists")

    password_hash = get_password_hash(payload.password)
    user_id = ObjectId()
    is_bootstrap = claim_bootstrap_admin(db, user_id)
    role = "admin" if is_bootstrap else "user"

    user = User(name=payload.name, email=email, password_hash=password_hash, role=role)
    try:
        create_document(db, "user", {**user.model_dump(), "_id": user_id})
    except DuplicateKeyError:
        if is_bootstrap:
            release_bootstrap_admin(db, user_id)
        raise HTTPException(status_code=400, detail="Email exists")
    except Exception:
        if is_bootstrap:
            release_bootstrap_admin(db, user_id)
        raise

    if is_bootstrap:
        logger.info("Bootstrap admin elected: %s", email)
    logger.info("Registered user %s with role %s", email, role)
    return UserMessage(
        message="First admin registered" if is_bootstrap else "Registered",
        user=UserOut(id=str(user_id), email=email, role=role),
    )


@router.post("/login", response_model=Token)
def login(payload: LoginRequest, response: Response, db: Database = Depends(get_db)):
    user = db["user"].find_one({"email": normalize_email(payload.email)})
    if not user or not verify_password(payload.password, user["password_hash"]):
        logger.warning("Failed login attempt for %s", payload.email)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    response.set_cookie(
        key=REFRESH_COOKIE_NAME,
        value=create_refresh_token(user),
        httponly=True,
        secure=True,
        max_age=REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )
    return Token(access_token=create_access_token(user))
