from typing import Optional

from pydantic import BaseModel


class UserContext(BaseModel):
    user_id: str
    email: str
    role: Optional[str] = None
