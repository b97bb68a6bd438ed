from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.orm import Session
from cardswap.config import settings
from cardswap.database import get_db
from cardswap.models.user import User, UserRole
from cardswap.services.mail import MailService
from cardswap.services.shipping import ShippingCarrierClient

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

# Older clients put the user id under different claims
USER_ID_CLAIMS = ("user_id", "sub", "id", "userId")

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(seconds=settings.jwt_expiration)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return encoded_jwt

def user_id_from_payload(payload: dict) -> Optional[int]:
    for claim in USER_ID_CLAIMS:
        value = payload.get(claim)
        if value is None:
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            return None
    return None

def _user_from_token(token: str, db: Session) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"verify_sub": False},
        )
    except JWTError:
        raise credentials_exception
    user_id = user_id_from_payload(payload)
    if user_id is None:
        raise credentials_exception
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise credentials_exception

    if user.user_status != "1":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Your account is inactive")
    return user

async def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)):
    return _user_from_token(token, db)

async def get_optional_user(token: Optional[str] = Depends(optional_oauth2_scheme), db: Session = Depends(get_db)):
    """The caller when a bearer token is sent, otherwise None."""
    if not token:
        return None
    return _user_from_token(token, db)

async def get_admin_user(current_user: User = Depends(get_current_user)):
    if current_user.user_role != UserRole.admin:
        raise HTTPException(status_code=403, detail="Not authorized as Admin")
    return current_user

def get_mail_service(db: Session = Depends(get_db)) -> MailService:
    return MailService(db)

def get_shipping_client() -> ShippingCarrierClient:
    return ShippingCarrierClient()
