from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DBSerializableModel(BaseModel):
    """
    Base Pydantic model for every document the service persists.

    Each subclass names its logical collection; DB adapters only ever go
    through `serialize_for_db` / `model_validate`, which keeps the services
    agnostic of the concrete store (in-memory, MongoDB, ...).
    """

    # Logical collection name; subclasses should override
    collection_name: ClassVar[str]

    primary_key: ClassVar[Optional[str]] = "id"

    def serialize_for_db(self) -> Dict[str, Any]:
        """
        Convert to a dict suitable for DB persistence.

        This is the single place to control how models are stored;
        DB adapters can still post-process this if needed.
        """
        return self.model_dump(exclude_none=True)


class ApiModel(BaseModel):
    """
    Wire model for the HTTP surface: snake_case attributes, camelCase on
    the wire, matching the payloads the web client already sends.
    """

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)
