import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies.auth import (
    create_access_token,
    get_caller_identity,
    hash_password,
    verify_password,
)
from app.dependencies.store import get_store
from app.repositories.store import DocumentStore
from app.schemas.user import UserCreate, UserLogin

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(user: UserCreate, store: DocumentStore = Depends(get_store)):
    if await store.user_exists(user.email, user.userName):
        logger.info("Registration refused, email or userName in use: %s", user.email)
        raise HTTPException(status_code=400, detail="Email or userName already in use")

    fields = user.model_dump(exclude={"password"})
    fields["password"] = hash_password(user.password)
    fields["role"] = "user"
    created = await store.create_user(fields)
    logger.info("User %s registered", created.id)
    return {"message": "User registered successfully", "user": created.to_response()}


@router.post("/login")
async def login(credentials: UserLogin, store: DocumentStore = Depends(get_store)):
    user = await store.find_user_by_email(credentials.email)
    if user is None or not verify_password(credentials.password, user.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return {"message": "Login successful", "token": create_access_token(user.id)}


@router.get("/me")
async def get_me(
    user_id: Optional[str] = Depends(get_caller_identity),
    store: DocumentStore = Depends(get_store),
):
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    user = await store.find_user_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return {"message": "User found", "user": user.to_response()}
