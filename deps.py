from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from tortoise.exceptions import DoesNotExist
import uuid

from models import User
from services import config

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="login/access-token")

async def get_current_user(token: str = Depends(oauth2_scheme)) -> User:
    cred_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
    )
    try:
        payload = jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
        user_id = uuid.UUID(payload.get("sub"))
    except (JWTError, ValueError, TypeError):
        raise cred_exc
    try:
        user = await User.get(id=user_id)
    except DoesNotExist:
        raise cred_exc
    return user

async def get_current_active_user(user: User = Depends(get_current_user)) -> User:
    if user.disabled:
        raise HTTPException(status_code=400, detail="Inactive user")
    return user

async def get_current_admin_user(user: User = Depends(get_current_active_user)) -> User:
    if (user.role or "").upper() not in config.ADMIN_ROLES:
        raise HTTPException(status_code=403, detail="Acesso negado: privilégios de administrador necessários")
    return user
