from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Literal, Optional

class EmailTemplateSave(BaseModel):
    alias: str = Field(min_length=1, max_length=255)
    email_subject: str = Field(min_length=1, max_length=255)
    email_description: str = Field(min_length=1)
    email_from: Optional[str] = Field(default=None, max_length=255)
    email_from_name: Optional[str] = Field(default=None, max_length=255)
    email_cc: Optional[str] = Field(default=None, max_length=500)
    email_bcc: Optional[str] = Field(default=None, max_length=500)
    email_status: Literal["0", "1"] = "1"

    @field_validator("alias")
    @classmethod
    def alias_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Alias cannot be blank")
        return value

class EmailTemplateOut(BaseModel):
    id: int
    alias: str
    email_subject: Optional[str] = None
    email_description: Optional[str] = None
    email_from: Optional[str] = None
    email_from_name: Optional[str] = None
    email_cc: Optional[str] = None
    email_bcc: Optional[str] = None
    email_status: str

    model_config = ConfigDict(from_attributes=True)
