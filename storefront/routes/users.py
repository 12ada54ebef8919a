from datetime import datetime

from fastapi import APIRouter, Depends, Response

from storefront import schemas
from storefront.auth_services import (clear_token_cookie, generate_token, get_current_user,
                                      get_token, set_token_cookie, verify_password)
from storefront.errors import AuthenticationError, DataAccessError, NotFoundError, ValidationError, require_fields
from storefront.logger import logger
from storefront.models import User
from storefront.store import Store, get_store

router = APIRouter(prefix="/user", tags=["Users"])


@router.get("")
async def get_users(store: Store = Depends(get_store)):
    try:
        users = await store.select(User)
    except DataAccessError as e:
        logger.error("Error fetching users", extra={"error": e.error})
        raise DataAccessError(e.error) from e

    if not users:
        raise NotFoundError("No users found")
    return [schemas.User.model_validate(u) for u in users]


@router.post("/signup", status_code=201)
async def signup(user: schemas.UserSignup, store: Store = Depends(get_store)):
    require_fields(user, "name", "email", "password", message="Name, email, and password are required")

    try:
        existing = await store.select_one(User, User.email == user.email)
        if existing:
            raise ValidationError("Email already exists")

        created = await store.insert(User, [{
            "name": user.name,
            "email": user.email,
            "password": user.password,
            "token": generate_token(),
        }])
    except DataAccessError as e:
        logger.error("Error creating user", extra={"email": user.email, "error": e.error})
        raise DataAccessError(e.error) from e

    logger.info("User created", extra={"user_id": created[0].id, "email": user.email})
    return {"message": "User created", "user": schemas.User.model_validate(created[0])}


@router.post("/login")
async def login(creds: schemas.UserLogin, response: Response, store: Store = Depends(get_store)):
    require_fields(creds, "email", "password", message="Email and password are required")

    try:
        db_user = await store.select_one(User, User.email == creds.email)
    except DataAccessError as e:
        logger.error("Login lookup failed", extra={"email": creds.email, "error": e.error})
        raise AuthenticationError("Invalid email or password") from e

    if db_user is None or not verify_password(creds.password, db_user.password):
        logger.warning("Failed authorization attempt", extra={"email": creds.email})
        raise AuthenticationError("Invalid email or password")

    user_id, name = db_user.id, db_user.name
    token = generate_token()
    try:
        await store.update(User, {"token": token, "updated_at": datetime.utcnow()}, User.id == user_id)
    except DataAccessError as e:
        logger.error("Token update error", extra={"user_id": user_id, "error": e.error})
        raise DataAccessError("Error updating token") from e

    set_token_cookie(response, token)
    logger.info("User logged in", extra={"user_id": user_id, "email": creds.email})
    return {
        "message": "Login successful",
        "token": token,
        "name": name,
        "userId": user_id,
    }


@router.post("/logout")
async def logout(response: Response, token: str = Depends(get_token), store: Store = Depends(get_store)):
    try:
        await store.update(User, {"token": None}, User.token == token)
    except DataAccessError as e:
        logger.error("Logout error", extra={"error": e.error})
        raise DataAccessError(e.error) from e

    clear_token_cookie(response)
    return {"message": "Logout successful"}


@router.get("/profile/me")
async def get_profile(user: User = Depends(get_current_user)):
    return {"user": schemas.User.model_validate(user)}


@router.get("/{user_id}")
async def get_user(user_id: int, store: Store = Depends(get_store)):
    try:
        db_user = await store.select_one(User, User.id == user_id)
    except DataAccessError as e:
        logger.error("Error fetching user", extra={"user_id": user_id, "error": e.error})
        raise DataAccessError(e.error) from e

    if db_user is None:
        raise NotFoundError(f"User with ID {user_id} not found")
    return schemas.User.model_validate(db_user)
