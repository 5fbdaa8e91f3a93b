from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from ..settings import settings

# Tokens are issued by the account service; this app only reads the subject
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


class User(BaseModel):
	username: str


def get_optional_user(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[User]:
	"""The signed-in user, or None for guest use. A bad token is a 401, not a guest."""
	if not token:
		return None
	credentials_exception = HTTPException(status_code=401, detail="Could not validate credentials")
	try:
		payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
	except JWTError:
		raise credentials_exception
	username = payload.get("sub")
	if not username:
		raise credentials_exception
	return User(username=str(username))


def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
	if user is None:
		raise HTTPException(status_code=401, detail="Not authenticated", headers={"WWW-Authenticate": "Bearer"})
	return user


def user_id_of(user: Optional[User]) -> Optional[str]:
	return user.username if user is not None else None
