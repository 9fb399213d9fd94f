from pydantic import BaseModel, EmailStr, Field


class ContactUpdate(BaseModel):
    email: EmailStr | None = None
    push_tokens: list[str] | None = Field(default=None, max_length=20)


class ContactResponse(BaseModel):
    user_id: str
    email: str | None
    push_tokens: list[str]

    model_config = {"from_attributes": True}
