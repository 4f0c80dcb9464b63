import logging
import sqlite3

from fastapi import APIRouter, Depends, HTTPException

from auth import create_token, current_user, hash_password, verify_password
from dependencies import get_users
from models import User
from repository import UserRepository
from schemas import LoginRequest, RegisterRequest

logger = logging.getLogger(__name__)
router = APIRouter()


def _public_user(user: User) -> dict:
    return {"id": user.id, "email": user.email, "createdAt": user.created_at}


@router.post("/v1/auth/register", status_code=201)
def register(body: RegisterRequest, users: UserRepository = Depends(get_users)):
    email = body.email.lower()
    if users.get_by_email(email):
        raise HTTPException(400, "Registration failed")

    try:
        user = users.create(email, hash_password(body.password))
    except sqlite3.IntegrityError:
        raise HTTPException(400, "Registration failed")

    logger.info(f"Registered user {user.id}")
    return {"token": create_token(user), "user": _public_user(user)}


@router.post("/v1/auth/login")
def login(body: LoginRequest, users: UserRepository = Depends(get_users)):
    user = users.get_by_email(body.email.lower())
    if not user or not verify_password(body.password, user.password_hash):
        raise HTTPException(401, "Invalid credentials")
    return {"token": create_token(user), "user": _public_user(user)}


@router.get("/v1/auth/me")
def me(user: User = Depends(current_user)):
    return _public_user(user)
