from fastapi import Depends, HTTPException, status, Request
from sqlalchemy.orm import Session
from passlib.context import CryptContext

from database import get_db
from models import User
from schemas import UserLogin
import config
import crud
import sessions

# ------------------------------------------------------------------
# PASSWORD HASHING CONFIGURATION
# ------------------------------------------------------------------

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """
    Hash a plain text password using bcrypt.
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain text password against a hashed password.
    """
    return pwd_context.verify(plain_password, hashed_password)


# ------------------------------------------------------------------
# AUTHENTICATION UTILITIES
# ------------------------------------------------------------------

def authenticate_user(db: Session, username: str, password: str):
    """
    Verify username and password. Returns the user or None.
    """
    user = crud.get_user_by_username(db, username)

    if not user:
        return None

    if not verify_password(password, user.password):
        return None

    return user


def login_user(user_login: UserLogin, db: Session):
    """
    Login logic.
    Returns session token and user info on success.
    """
    user = authenticate_user(db, user_login.username, user_login.password)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password"
        )

    role = (user.role or config.ROLE_INTERN).upper()
    session_token = sessions.create_session(user.id, user.username, role)

    return {
        "message": "Login successful",
        "session_token": session_token,
        "user_id": user.id,
        "username": user.username,
        "role": role,
    }


def logout_user(session_token: str):
    """
    Logout user by deleting session.
    """
    if sessions.delete_session(session_token):
        return {"message": "Logout successful"}
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Session not found"
    )


# ------------------------------------------------------------------
# SESSION-BASED AUTH GUARD
# ------------------------------------------------------------------

def get_current_user(request: Request, db: Session = Depends(get_db)):
    """
    Dependency to get current authenticated user from session.
    Use this to protect routes that require authentication.
    """
    session_data = sessions.verify_session(request)

    # Re-read the user so deleted accounts and role changes take effect
    user = crud.get_user_by_id(db, session_data["user_id"])

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    return user


# ------------------------------------------------------------------
# ROLE GUARD
# ------------------------------------------------------------------

def has_role(user: User, *roles: str) -> bool:
    return (user.role or "").upper() in roles


def require_roles(*roles: str):
    """
    Build a dependency that resolves the current user and rejects anyone
    whose role is not one of `roles`.

        @app.get("/admin/...")
        def handler(current_user: User = Depends(auth.require_roles(*config.ADMIN_ROLES))):
    """
    allowed = tuple(r.upper() for r in roles)

    def guard(current_user: User = Depends(get_current_user)) -> User:
        if not has_role(current_user, *allowed):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{' or '.join(allowed)} role required"
            )
        return current_user

    return guard


require_admin = require_roles(*config.ADMIN_ROLES)
require_super_admin = require_roles(config.ROLE_SUPER_ADMIN)
