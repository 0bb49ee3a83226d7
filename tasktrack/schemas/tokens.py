# tasktrack/schemas/tokens.py
from pydantic import BaseModel
from tasktrack.schemas.profile import ProfileOut


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: ProfileOut

    model_config = {
        "from_attributes": True
    }
