"""
Pydantic schemas for user identity.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator


class Identity(BaseModel):
    """
    Already-authenticated caller: validated once at the boundary, then passed
    explicitly into every access-control operation.
    """
    user_id: str = Field(..., min_length=1, max_length=26)
    org_id: str = Field(..., min_length=1, max_length=26)
    is_super_admin: bool = False

    model_config = ConfigDict(frozen=True)

    @field_validator("user_id", "org_id", mode="before")
    @classmethod
    def coerce_numeric_ids(cls, v):
        """Token issuers send ids as JSON numbers or strings; normalize to str."""
        if isinstance(v, bool):
            raise ValueError("identifier must be a string or integer")
        if isinstance(v, int):
            return str(v)
        return v
