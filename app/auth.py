"""
Bearer-token identity resolution.

Access tokens are HS256 JWTs issued by the identity backend; the subject
claim is the user id and the email claim is passed through to the
processor as ppmpf_1.
"""
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.config import AuthSettings, get_auth_settings
from app.errors import AuthenticationError

bearer_scheme = HTTPBearer(auto_error=False)


class Identity:
    def __init__(self, user_id: str, email: Optional[str] = None):
        self.user_id = user_id
        self.email = email

    def __repr__(self):
        return f"<Identity {self.user_id}>"


def decode_access_token(token: str, settings: AuthSettings) -> Identity:
    """
    Validate a bearer token and return the identity it carries.

    Raises:
        AuthenticationError: bad signature, expired, wrong audience or no subject
    """
    options = {"verify_aud": settings.jwt_audience is not None}
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except JWTError as e:
        raise AuthenticationError("Invalid or expired token") from e

    user_id = claims.get("sub")
    if not user_id:
        raise AuthenticationError("Token has no subject")
    return Identity(user_id=str(user_id), email=claims.get("email"))


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: AuthSettings = Depends(get_auth_settings),
) -> Identity:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Missing bearer token")
    return decode_access_token(credentials.credentials, settings)
