from typing import Annotated, Literal

from pydantic import BaseModel, Field, StringConstraints

UserRole = Literal["freelancer", "job_provider"]


class SignupRequest(BaseModel):
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=2)]
    email: Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")]
    password: str = Field(..., min_length=6)
    role: UserRole


class LoginRequest(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    role: str
    bio: str
    skills: list[str]
    hourly_rate: float | None
    profile_pic: str


class AuthResponse(BaseModel):
    token: str
    expires_in_seconds: int
    user: UserResponse


class ProfileUpdate(BaseModel):
    name: str | None = Field(None, min_length=2)
    bio: str | None = None
    skills: list[str] | None = None
    hourly_rate: float | None = Field(None, ge=0, allow_inf_nan=False)
    profile_pic: str | None = None

    model_config = {"str_strip_whitespace": True}


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str
    password: str = Field(..., min_length=6)
