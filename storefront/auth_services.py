import os
import secrets
import time
from typing import Optional

from fastapi import Depends, Request, Response

from storefront.errors import AuthenticationError
from storefront.logger import logger
from storefront.models import User
from storefront.store import Store, get_store

TOKEN_COOKIE = "token"
TOKEN_MAX_AGE = 7 * 24 * 60 * 60
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"


def generate_token() -> str:
    return f"token_{int(time.time() * 1000)}_{secrets.token_hex(8)}"


def verify_password(input_password: str, stored_password: str) -> bool:
    # plain equality; passwords are not hashed
    return input_password == stored_password


def extract_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]
    return request.cookies.get(TOKEN_COOKIE)


def set_token_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=TOKEN_COOKIE,
        value=token,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="strict",
        path="/",
        max_age=TOKEN_MAX_AGE
    )


def clear_token_cookie(response: Response) -> None:
    response.delete_cookie(
        key=TOKEN_COOKIE,
        path="/",
        secure=COOKIE_SECURE,
        httponly=True,
        samesite="strict"
    )


async def get_token(request: Request) -> str:
    token = extract_token(request)
    if not token:
        logger.warning("Request without token", extra={"path": request.url.path})
        raise AuthenticationError("Authentication required")
    return token


async def find_user_by_token(store: Store, token: str) -> Optional[User]:
    return await store.select_one(User, User.token == token)


async def get_current_user(
    request: Request,
    token: str = Depends(get_token),
    store: Store = Depends(get_store)
) -> User:
    user = await find_user_by_token(store, token)
    if user is None:
        logger.warning("Unknown token presented", extra={"path": request.url.path})
        raise AuthenticationError("Invalid or expired token")
    return user
