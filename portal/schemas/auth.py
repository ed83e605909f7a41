"""Authentication schemas."""

from typing import Optional

from pydantic import EmailStr, Field

from portal.schemas.common import CamelModel


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(CamelModel):
    refresh_token: str


class UserDepartmentSummary(CamelModel):
    department_id: int
    department_code: str
    department_name: str


class UserResponse(CamelModel):
    user_id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: Optional[str] = None
    company: Optional[str] = None
    roles: list[str] = []
    is_admin: bool = False


class CurrentUserResponse(UserResponse):
    departments: list[UserDepartmentSummary] = []


class TokenResponse(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    # Seconds until the access token expires
    expires_in: int
    user: UserResponse
