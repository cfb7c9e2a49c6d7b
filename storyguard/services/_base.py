"""Shared plumbing for the entity services."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from storyguard.memory.entities import StoryDatabase
from storyguard.services.database_service import DatabaseService
from storyguard.utils.exceptions import EntityNotFoundError, ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Fields callers may never change through an update
_PROTECTED_FIELDS = frozenset({"id", "created_at"})


def build_model(model_cls: type[ModelT], data: dict[str, Any]) -> ModelT:
    """Validate *data* into *model_cls*, raising the StoryGuard ValidationError."""
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        messages = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or model_cls.__name__}: {err['msg']}"
            for err in e.errors()
        )
        raise ValidationError(f"Invalid {model_cls.__name__.lower()}: {messages}") from e


def apply_changes(entity: ModelT, changes: dict[str, Any]) -> ModelT:
    """Return a validated copy of *entity* with *changes* applied.

    Raises:
        ValidationError: If a change names an unknown or protected field, or
            the result fails validation.
    """
    model_cls = type(entity)
    unknown = sorted(set(changes) - set(model_cls.model_fields))
    if unknown:
        raise ValidationError(f"Unknown {model_cls.__name__} fields: {', '.join(unknown)}")
    protected = sorted(set(changes) & _PROTECTED_FIELDS)
    if protected:
        raise ValidationError(f"Fields cannot be changed: {', '.join(protected)}")

    data = entity.model_dump()
    data.update(changes)
    if "updated_at" in model_cls.model_fields:
        data["updated_at"] = datetime.now()
    return build_model(model_cls, data)


def find_index(items: list[Any], entity_id: str, kind: str) -> int:
    """Return the position of the entity with *entity_id* in *items*.

    Raises:
        EntityNotFoundError: If no entity has that id.
    """
    for index, item in enumerate(items):
        if item.id == entity_id:
            return index
    raise EntityNotFoundError(f"No {kind} with id '{entity_id}'", kind=kind, key=entity_id)


def matches_query(query: str, *values: Any) -> bool:
    """Case-insensitive substring match of *query* against any of *values*."""
    needle = query.strip().lower()
    if not needle:
        return True
    for value in values:
        if isinstance(value, list):
            if any(needle in str(item).lower() for item in value):
                return True
        elif value and needle in str(value).lower():
            return True
    return False


class EntityServiceBase:
    """Base for services that edit the records of the open database."""

    kind = "entity"

    def __init__(self, database: DatabaseService):
        """Initialize the service.

        Args:
            database: Service owning the open database.
        """
        self.database = database
        self.settings = database.settings
        logger.debug("%s initialized", type(self).__name__)

    @property
    def db(self) -> StoryDatabase:
        """The open database."""
        return self.database.current

    def _commit(self, action: str, description: str, entity_id: str = "") -> None:
        """Record an activity entry and save when auto-save is enabled."""
        self.database.record_activity(f"{self.kind}_{action}", description, entity_id)
        self.database.save_if_enabled()

    def _remember_lookups(self, entity: BaseModel, *field_names: str) -> None:
        for name in field_names:
            self.db.remember_lookup(name, getattr(entity, name, ""))
