from pydantic import BaseModel, ConfigDict, computed_field
from typing import Optional


class ProfileDto(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    profile_picture: Optional[str] = None
    role: Optional[str] = None

    @computed_field
    @property
    def initials(self) -> str:
        """Avatar fallback, e.g. "Ada Lovelace" -> "AL"."""
        return "".join(part[0] for part in self.name.split() if part).upper()
