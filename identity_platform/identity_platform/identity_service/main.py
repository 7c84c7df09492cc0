"""
Identity Service - credential lifecycle and profile management over HTTP
"""
from contextlib import asynccontextmanager
from functools import lru_cache
import logging

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .auth import TokenCodec
from .config import get_settings
from .credentials import CredentialManager
from .db import check_db_connection, get_db, init_db
from .errors import IdentityError, InternalError, validation_message
from .listener import handle_message
from .routes import profiles
from .schemas import (
    CredentialRequest,
    ForgotPasswordRequest,
    LoginResponse,
    QueueEnvelope,
    ResetPasswordRequest,
    TokenRequest,
    VerifyEmailRequest,
)
from .utils.event_logger import configure_logging

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Configure logging and create tables on startup"""
    configure_logging(settings.LOG_LEVEL, settings.LOG_DIR)
    init_db()
    yield


app = FastAPI(
    title="Identity Service",
    description="Credential lifecycle, bearer tokens and user profiles",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(profiles.router)


@app.exception_handler(IdentityError)
async def identity_error_handler(_request: Request, exc: IdentityError):
    if isinstance(exc, InternalError):
        logger.error("Internal failure: %s (%s)", exc.message, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"success": False, "message": validation_message(exc), "error": "ValidationFailed"},
    )


@lru_cache
def get_token_codec() -> TokenCodec:
    return TokenCodec.from_settings(settings)


def get_credential_manager(
    db: Session = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
) -> CredentialManager:
    return CredentialManager(db, codec, settings=settings)


@app.get("/")
def root():
    """Service status"""
    return {
        "service": "Identity Service",
        "version": "1.0.0",
        "database": "ok" if check_db_connection() else "unavailable",
    }


# ---------------- Credential lifecycle ----------------

@app.post("/auth/register", status_code=201)
def register(payload: CredentialRequest, manager: CredentialManager = Depends(get_credential_manager)):
    return manager.register(payload.email, payload.password)


@app.post("/auth/login", response_model=LoginResponse)
def login(credentials: CredentialRequest, manager: CredentialManager = Depends(get_credential_manager)):
    return manager.login(credentials.email, credentials.password)


@app.post("/auth/verify-email")
def verify_email(payload: VerifyEmailRequest, manager: CredentialManager = Depends(get_credential_manager)):
    return manager.verify_email(payload.token)


@app.post("/auth/forgot-password")
def forgot_password(payload: ForgotPasswordRequest, manager: CredentialManager = Depends(get_credential_manager)):
    # Same shape whether or not the account exists
    return manager.forgot_password(payload.email)


@app.post("/auth/reset-password")
def reset_password(payload: ResetPasswordRequest, manager: CredentialManager = Depends(get_credential_manager)):
    return manager.reset_password(payload.token, payload.new_password)


@app.post("/auth/validate-user")
def validate_user(credentials: CredentialRequest, manager: CredentialManager = Depends(get_credential_manager)):
    user = manager.validate_user(credentials.email, credentials.password)
    return {
        "success": user is not None,
        "data": user,
        "message": "User validated successfully" if user else "Invalid credentials",
    }


@app.post("/auth/validate-token")
def validate_token(payload: TokenRequest, manager: CredentialManager = Depends(get_credential_manager)):
    return manager.validate_token(payload.token)


@app.post("/auth/refresh-token", response_model=LoginResponse)
def refresh_token(payload: TokenRequest, manager: CredentialManager = Depends(get_credential_manager)):
    return manager.refresh_token(payload.token)


# ---------------- Queue envelope ----------------

@app.post("/queue/messages")
def queue_message(envelope: QueueEnvelope, db: Session = Depends(get_db)):
    # Dropped messages answer with null, as a queue consumer would
    return handle_message(envelope.model_dump(), db)
