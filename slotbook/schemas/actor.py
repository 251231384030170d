"""Identity passed explicitly into every scheduling operation."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ActorRole(str, Enum):
    """Roles issued by the auth provider."""

    USER = "user"
    ADMIN = "admin"
    SYSTEM = "system"


class Actor(BaseModel):
    """Who is performing an operation.

    Built from the bearer token by the API layer, or constructed directly
    by batch jobs. The scheduling core never reads identity from anywhere
    else.
    """

    model_config = ConfigDict(frozen=True)

    actor_id: str = Field(min_length=1, max_length=64)
    role: ActorRole = ActorRole.USER

    @classmethod
    def system(cls, actor_id: str = "system") -> "Actor":
        return cls(actor_id=actor_id, role=ActorRole.SYSTEM)
