from datetime import datetime, timedelta, timezone
from typing import Optional

from bson.errors import InvalidId
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from passlib.context import CryptContext
from pymongo.database import Database

import config
from database import get_db, to_obj_id
from errors import Unauthorized
from permissions import Principal

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def get_current_user(token: str = Depends(oauth2_scheme), db: Database = Depends(get_db)) -> Principal:
    credentials_exception = Unauthorized("Not authorized to access this route")
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
        user_id: str = payload.get("sub")
        if user_id is None:
            raise credentials_exception
        user = db["user"].find_one({"_id": to_obj_id(user_id)})
    except (JWTError, InvalidId):
        raise credentials_exception
    if not user:
        raise credentials_exception
    return Principal(id=str(user["_id"]), name=user["name"], email=user["email"], role=user.get("role", "user"))


def require_role(*roles: str):
    def role_dep(current_user: Principal = Depends(get_current_user)) -> Principal:
        if current_user.role not in roles:
            raise Unauthorized(f"User role {current_user.role} is not authorized to access this route")
        return current_user
    return role_dep
