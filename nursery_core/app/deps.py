from typing import Generator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from . import models
from .auth_provider import AuthProvider
from .db import SessionLocal
from .security import check_permissions
from .store import QueryClient

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_store(db: Session = Depends(get_db)) -> QueryClient:
    return QueryClient(db)


def get_auth(request: Request) -> AuthProvider:
    return request.app.state.auth


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
    auth: AuthProvider = Depends(get_auth),
) -> models.User:
    user = auth.get_current_user(db, token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_permission(*required_permissions: str):
    """Dependency that requires the current user's role to grant every permission"""
    def permission_checker(current_user: models.User = Depends(get_current_user)):
        check_permissions(current_user.role, required_permissions)
        return current_user

    return permission_checker


def ensure_exists(store: QueryClient, relation: str, row_id, label: str) -> None:
    """404 when an optional reference points at a row that is not there"""
    if row_id is None:
        return
    if store.select_one(relation, filters={"id": row_id}, columns=["id"]) is None:
        raise HTTPException(status_code=404, detail=f"{label} {row_id} not found")
