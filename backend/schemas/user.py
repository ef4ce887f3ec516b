from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UserView(BaseModel):
    """Public user info returned with every token pair"""

    id: int
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_active: bool = True
    # Never includes password or refresh token hashes
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    """Access/refresh token pair plus the user they were issued for"""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    # When the access token stops verifying; clients refresh before this
    access_token_expires_at: datetime
    user: UserView
