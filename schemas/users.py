from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr


class UserOut(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: EmailStr
    subscription_plan: Optional[str] = None
    subscription_status: str
    subscription_date: Optional[datetime] = None

    class Config:
        from_attributes = True
