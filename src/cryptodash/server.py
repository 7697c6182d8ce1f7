"""
Auth backend.

Three routes: signup, login and an unauthenticated home page. Domain errors
are mapped to HTTP responses by the handlers registered in
``register_error_handlers``; every error body is ``{"message": ...}`` and never
carries internal details.
"""

import logging
import sqlite3

import structlog
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from cryptodash.errors import AuthError, UserStoreError
from cryptodash.users import UserStore

logging.basicConfig(level=logging.INFO)
logger = structlog.get_logger()

HTTP_400 = 400
HTTP_500 = 500


class SignupRequest(BaseModel):
    username: str
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class MessageResponse(BaseModel):
    message: str


class UserOut(BaseModel):
    username: str


class LoginResponse(MessageResponse):
    user: UserOut


def get_user_store() -> UserStore:
    """FastAPI dependency: the configured user store."""
    return UserStore()


router = APIRouter()


@router.post("/signup", status_code=201, response_model=MessageResponse)
def signup(body: SignupRequest, store: UserStore = Depends(get_user_store)) -> MessageResponse:
    try:
        store.create(body.username, body.email, body.password)
    except (sqlite3.Error, ValueError) as e:
        logger.error("Signup failed", username=body.username, error=str(e))
        raise UserStoreError("Error signing up") from e
    return MessageResponse(message="Signup successful")


@router.post("/login", response_model=LoginResponse)
def login(body: LoginRequest, store: UserStore = Depends(get_user_store)) -> LoginResponse:
    try:
        user = store.authenticate(body.email, body.password)
    except (sqlite3.Error, ValueError) as e:
        logger.error("Login failed", error=str(e))
        raise UserStoreError("Error logging in") from e
    logger.info("User logged in", username=user.username)
    return LoginResponse(message="Login successful", user=UserOut(username=user.username))


@router.get("/home", response_model=MessageResponse)
def home() -> MessageResponse:
    return MessageResponse(message="Welcome to the Home Page!")


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


def register_error_handlers(app: FastAPI) -> None:
    """Register the domain error handlers on ``app``."""

    @app.exception_handler(AuthError)
    async def handle_auth_error(_request: Request, exc: AuthError) -> JSONResponse:
        logger.info("Rejected auth request", reason=exc.message)
        return _error_response(HTTP_400, exc.message)

    @app.exception_handler(UserStoreError)
    async def handle_store_error(_request: Request, exc: UserStoreError) -> JSONResponse:
        return _error_response(HTTP_500, exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected(_request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unexpected error", error_type=type(exc).__name__)
        return _error_response(HTTP_500, "Internal server error")


def create_app() -> FastAPI:
    app = FastAPI(title="cryptodash auth")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)
    app.include_router(router)
    return app


app = create_app()
