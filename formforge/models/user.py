from pydantic import BaseModel


class User(BaseModel):
    id: int | None = None
    email: str
    username: str | None = None


class UserIn(User):
    password: str


class UserInDB(User):
    password_hash: str
