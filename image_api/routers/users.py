from typing import List

from fastapi import APIRouter, Depends, Response, status

from image_api.schemas.user import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    UserCreate,
    UserResponse,
    UserUpdate,
)
from image_api.services.credentials import CredentialStore, get_credential_store

router = APIRouter()


@router.get("", response_model=List[UserResponse])
async def get_users(store: CredentialStore = Depends(get_credential_store)):
    return await store.list()


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: int, store: CredentialStore = Depends(get_credential_store)):
    return await store.get(user_id)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(user: UserCreate, response: Response, store: CredentialStore = Depends(get_credential_store)):
    created = await store.create(user)
    response.headers["Location"] = f"/api/users/{created.user_id}"
    return created


@router.put("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_user(user_id: int, user: UserUpdate, store: CredentialStore = Depends(get_credential_store)):
    await store.update(user_id, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(user_id: int, store: CredentialStore = Depends(get_credential_store)):
    await store.delete(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register_user(body: RegisterRequest, response: Response, store: CredentialStore = Depends(get_credential_store)):
    user = await store.register(body.username, body.email, body.password)
    response.headers["Location"] = f"/api/users/{user.user_id}"
    return user


@router.post("/login", response_model=LoginResponse)
async def login_user(body: LoginRequest, store: CredentialStore = Depends(get_credential_store)):
    token, user_id = await store.login(body.email, body.password)
    return LoginResponse(token=token, user_id=user_id)
