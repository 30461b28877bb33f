"""Common models and base classes"""

from pydantic import BaseModel, BeforeValidator
from typing import Optional, Annotated


# MongoDB hands back ObjectId for _id; the API works with plain strings
ObjectIdStr = Annotated[str, BeforeValidator(lambda v: str(v) if v is not None else v)]


class Address(BaseModel):
    """Address model"""
    recipient: str
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    state: Optional[str] = None
    postal_code: str
    country: str = "KR"
    phone: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "recipient": "Kim Minji",
                "address_line1": "12 Teheran-ro",
                "address_line2": "Apt 301",
                "city": "Seoul",
                "state": "Gangnam-gu",
                "postal_code": "06234",
                "country": "KR",
                "phone": "+82-10-1234-5678"
            }
        }
