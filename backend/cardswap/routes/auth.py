from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging
from cardswap.config import settings
from cardswap.database import get_db
from cardswap.models.user import User, UserRole
from cardswap.schemas.user import UserCreate, UserLogin, UserOut, Token
from cardswap.dependencies import create_access_token, get_mail_service
from cardswap.responses import api_response
from cardswap.services.mail import MailService
from passlib.context import CryptContext

logger = logging.getLogger(__name__)

router = APIRouter()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password):
    return pwd_context.hash(password)

@router.post("/register")
def register(
    user: UserCreate,
    db: Session = Depends(get_db),
    mail: MailService = Depends(get_mail_service),
):
    if db.query(User).filter(User.email == user.email).first():
        raise HTTPException(status_code=400, detail="Email already registered")
    if db.query(User).filter(User.username == user.username).first():
        raise HTTPException(status_code=400, detail="Username already taken")

    try:
        db_user = User(
            first_name=user.first_name,
            last_name=user.last_name,
            username=user.username,
            email=user.email,
            password=get_password_hash(user.password),
            phone_number=user.phone_number,
            country_code=user.country_code,
            user_role=UserRole.user,
            cxp_coins=settings.starting_cxp_coins,
        )
        db.add(db_user)
        db.commit()
        db.refresh(db_user)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Registration error for %s", user.email)
        raise HTTPException(status_code=500, detail="An error occurred during registration")

    mail.send("welcome-onboarding", {
        "to": db_user.email,
        "name": f"{db_user.first_name} {db_user.last_name}".strip(),
        "addProductLink": f"{settings.frontend_url}/profile/products/add",
    })
    return api_response(201, True, "Registration successful", UserOut.model_validate(db_user))

@router.post("/login")
async def login(credentials: UserLogin, db: Session = Depends(get_db)):
    user = (
        db.query(User)
        .filter(or_(User.email == credentials.identifier, User.username == credentials.identifier))
        .first()
    )
    if not user or not verify_password(credentials.password, user.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email/username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if user.user_status != "1":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Your account is inactive")

    access_token = create_access_token(data={"sub": str(user.id), "user_id": user.id, "role": user.user_role.value})
    return api_response(200, True, "Login successful", Token(token=access_token, user=UserOut.model_validate(user)))
