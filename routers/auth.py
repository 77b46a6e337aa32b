import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, EmailStr
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import config
from database import create_document, get_db
from schemas import ROLES, User as UserSchema
from security import (
    clear_token_cookie,
    decode_token,
    extract_token,
    hash_password,
    issue_token,
    security,
    set_token_cookie,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class RegisterBody(BaseModel):
    name: str
    email: EmailStr
    password: str
    role: Optional[str] = None


class LoginBody(BaseModel):
    email: EmailStr
    password: str


def public_user(user: dict) -> dict:
    return {
        "id": str(user["_id"]),
        "name": user["name"],
        "email": user["email"],
        "role": user.get("role", "user"),
    }


@router.post("/register", status_code=201)
def register(body: RegisterBody, response: Response, db: Database = Depends(get_db)):
    name = body.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Name is required")
    if len(body.password) < config.MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail="Password must be at least 6 characters")

    email = body.email.lower()
    if db["user"].find_one({"email": email}):
        raise HTTPException(status_code=409, detail="Email already registered")

    # The caller may pick the role; unknown values fall back to a plain user.
    role = body.role if body.role in ROLES else "user"
    user = UserSchema(name=name, email=email, password_hash=hash_password(body.password), role=role)
    try:
        user_id = create_document(db, "user", user)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Email already registered")
    doc = {"_id": user_id, "name": name, "email": email, "role": role}

    token = issue_token(doc)
    set_token_cookie(response, token)
    logger.info("Registered user %s (%s)", user_id, role)
    return {"message": "User registered successfully", "token": token, "user": public_user(doc)}


@router.post("/login")
def login(body: LoginBody, response: Response, db: Database = Depends(get_db)):
    user = db["user"].find_one({"email": body.email.lower()})
    if not user or not verify_password(body.password, user.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = issue_token(user)
    set_token_cookie(response, token)
    logger.info("User %s logged in", user["_id"])
    return {"message": "Login successful", "token": token, "user": public_user(user)}


@router.post("/logout")
def logout(response: Response):
    clear_token_cookie(response)
    return {"message": "Logout successful"}


@router.get("/verify")
def verify(request: Request, credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)):
    token = extract_token(request, credentials)
    if not token:
        raise HTTPException(status_code=401, detail="No token provided")
    payload = decode_token(token)
    return {"valid": True, "userId": payload.get("id"), "role": payload.get("role")}
