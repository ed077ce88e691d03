# backend/soora/api/auth.py

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm # For login endpoint

from pydantic import BaseModel

from soora.core.security import verify_password, create_access_token
from soora.dependencies import get_current_user, get_user_repository
from soora.models.user import User
from soora.repositories.user_repository import UserRepository

router = APIRouter()

# Response model for token (standard for OAuth2)
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

@router.post("/token", response_model=Token)
def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    user_repo: UserRepository = Depends(get_user_repository),
):
    """Exchange email (sent as ``username``) and password for a bearer token."""
    user_data = user_repo.get_user_by_email(form_data.username)

    if not user_data or not verify_password(form_data.password, user_data["password_hash"]):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user_data.get("is_active", True):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")

    access_token = create_access_token(data={"sub": str(user_data["id"])})
    return {"access_token": access_token, "token_type": "bearer"}

@router.get("/users/me", response_model=User)
def read_users_me(current_user: User = Depends(get_current_user)):
    """Returns the details of the currently authenticated user."""
    return current_user
