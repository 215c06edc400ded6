import datetime
import logging
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from formforge.config import config
from formforge.database import database, user_table
from formforge.models.user import User, UserInDB

logging.getLogger('passlib').setLevel(logging.ERROR)
logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/user/token")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/user/token", auto_error=False)
pwd_context = CryptContext(schemes=["bcrypt"])


def create_unauthorized_exception(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def access_token_expire_minutes() -> int:
    return config.ACCESS_TOKEN_EXPIRE_MINUTES


def create_access_token(email: str):
    logger.debug("Creating access token", extra={"email": email})
    expire = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(
        minutes=access_token_expire_minutes()
    )
    jwt_data = {"sub": email, "exp": expire, "type": "access"}
    encoded_jwt = jwt.encode(jwt_data, key=config.SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt


def get_subject_for_access_token(token: str) -> str:
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError as e:
        raise create_unauthorized_exception("Token has expired") from e
    except JWTError as e:
        raise create_unauthorized_exception("Invalid token") from e

    email = payload.get("sub")
    if email is None:
        raise create_unauthorized_exception("Token is missing 'sub' field")

    if payload.get("type") != "access":
        raise create_unauthorized_exception("Token has incorrect type, expected 'access'")

    return email


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


async def get_user(email: str) -> Optional[UserInDB]:
    query = user_table.select().where(user_table.c.email == email)
    result = await database.fetch_one(query)
    if result:
        return UserInDB(
            id=result.id,
            email=result.email,
            username=result.username,
            password_hash=result.password_hash,
        )

    return None


async def authenticate_user(email: str, password: str) -> UserInDB:
    logger.debug("Authenticating user", extra={"email": email})
    user = await get_user(email)
    if not user:
        raise create_unauthorized_exception("Invalid email or password")
    if not verify_password(password, user.password_hash):
        raise create_unauthorized_exception("Invalid email or password")
    return user


async def get_current_user(token: Annotated[str, Depends(oauth2_scheme)]) -> User:
    email = get_subject_for_access_token(token)
    user = await get_user(email=email)
    if user is None:
        raise create_unauthorized_exception("Could not find user for this token")
    return User(id=user.id, email=user.email, username=user.username)


async def get_optional_user(
    token: Annotated[Optional[str], Depends(optional_oauth2_scheme)],
) -> Optional[User]:
    """
    Resolve the caller when a valid token is sent. Anonymous callers and
    callers with an expired or unusable token get None.
    """
    if not token:
        return None
    try:
        return await get_current_user(token)
    except HTTPException as e:
        logger.debug(f"Ignoring optional token: {e.detail}")
        return None
