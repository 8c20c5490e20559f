import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from auth.models import AuthResponse, LoginRequest, RegisterRequest, UserResponse
from auth.utils import create_token, get_current_user, hash_password, normalize_email, verify_password
from config import settings
from db.database import get_db
from db.models import User
from services.rate_limit_service import RateLimitRule, enforce_rate_limit

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def _client_ip(request: Request) -> str:
    return (request.client.host if request.client else "") or "unknown"


def _cookie_name() -> str:
    return (settings.AUTH_COOKIE_NAME or "prayers_session").strip() or "prayers_session"


def _set_session_cookie(response: Response, token: str, *, max_age_seconds: int) -> None:
    samesite = (settings.AUTH_COOKIE_SAMESITE or "lax").strip().lower()
    if samesite not in {"strict", "lax", "none"}:
        samesite = "lax"
    response.set_cookie(
        key=_cookie_name(),
        value=token,
        httponly=bool(settings.AUTH_COOKIE_HTTPONLY),
        secure=bool(settings.AUTH_COOKIE_SECURE),
        samesite=samesite,  # type: ignore[arg-type]
        domain=settings.AUTH_COOKIE_DOMAIN,
        path=settings.AUTH_COOKIE_PATH or "/",
        max_age=max(int(max_age_seconds), 1),
    )


def _clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=_cookie_name(),
        domain=settings.AUTH_COOKIE_DOMAIN,
        path=settings.AUTH_COOKIE_PATH or "/",
    )


def _enforce_auth_rate_limit(request: Request, *, endpoint: str, limit: int, window_seconds: int, email: str) -> None:
    allowed, retry_after = enforce_rate_limit(
        rule=RateLimitRule(endpoint=endpoint, limit=limit, window_seconds=window_seconds),
        scope_key=f"{_client_ip(request)}:{email}",
        ip_address=_client_ip(request),
    )
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many attempts. Please try again later.",
            headers={"Retry-After": str(retry_after)},
        )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(req: RegisterRequest, request: Request, response: Response, db: Session = Depends(get_db)):
    email = normalize_email(req.email)
    _enforce_auth_rate_limit(
        request,
        endpoint="/api/auth/register",
        limit=settings.RATE_LIMIT_AUTH_REGISTER_ATTEMPTS,
        window_seconds=settings.RATE_LIMIT_AUTH_REGISTER_WINDOW_SECONDS,
        email=email,
    )
    logger.info("Registration attempt", extra={"has_name": bool(req.name)})

    if db.query(User).filter(User.email == email).first():
        logger.warning("Registration failed: user already exists")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User with this email already exists")

    name = " ".join((req.name or "").strip().split()) or None
    user = User(email=email, password_hash=hash_password(req.password), name=name)
    db.add(user)
    db.commit()
    db.refresh(user)

    token = create_token(user.id, user.email)
    _set_session_cookie(response, token, max_age_seconds=max(int(settings.JWT_EXPIRY_HOURS), 1) * 3600)
    logger.info("User registered", extra={"user_id": user.id})
    return AuthResponse(
        message="User registered successfully",
        user=UserResponse.model_validate(user),
        token=token,
    )


@router.post("/login", response_model=AuthResponse)
def login(req: LoginRequest, request: Request, response: Response, db: Session = Depends(get_db)):
    email = normalize_email(req.email)
    _enforce_auth_rate_limit(
        request,
        endpoint="/api/auth/login",
        limit=settings.RATE_LIMIT_AUTH_LOGIN_ATTEMPTS,
        window_seconds=settings.RATE_LIMIT_AUTH_LOGIN_WINDOW_SECONDS,
        email=email,
    )
    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(req.password, user.password_hash):
        logger.warning("Login failed", extra={"user_found": bool(user)})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    token = create_token(user.id, user.email)
    _set_session_cookie(response, token, max_age_seconds=max(int(settings.JWT_EXPIRY_HOURS), 1) * 3600)
    logger.info("Login successful", extra={"user_id": user.id})
    return AuthResponse(
        message="Login successful",
        user=UserResponse.model_validate(user),
        token=token,
    )


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user)):
    return user


@router.post("/logout")
def logout(response: Response):
    _clear_session_cookie(response)
    return {"status": "ok"}
