from datetime import datetime, timezone
from typing import Optional
from beanie import Document
from pydantic import Field
from uuid import UUID, uuid4
from pydantic import BaseModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Mongo hands back naive datetimes unless the client is tz aware."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class BaseCollection(Document):
    id: UUID = Field(default_factory=uuid4, alias="_id")

    async def fetch(self):
        """Reload every field from the stored document, in place."""
        fresh = await type(self).get(self.id)
        if fresh is not None:
            for name in type(self).model_fields:
                setattr(self, name, getattr(fresh, name))
        return self


class BaseResponse(BaseModel):
    id: UUID
