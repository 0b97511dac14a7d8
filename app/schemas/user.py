from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    firstName: str
    lastName: str
    userName: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)


class UserLogin(BaseModel):
    email: EmailStr
    password: str
