"""Opaque identifiers, one type per entity kind"""

import uuid
from dataclasses import dataclass
from typing import ClassVar, Type, TypeVar, Union

from lease_engine.domain.exceptions import InvalidIdentifier

IdT = TypeVar("IdT", bound="EntityId")


@dataclass(frozen=True)
class EntityId:
    """UUID-backed identifier; the UUID is only unwrapped by repositories"""

    value: uuid.UUID
    kind: ClassVar[str] = "entity"

    @classmethod
    def new(cls: Type[IdT]) -> IdT:
        return cls(uuid.uuid4())

    @classmethod
    def parse(cls: Type[IdT], raw: Union[str, uuid.UUID, "EntityId"]) -> IdT:
        """Parse a UUID string/UUID into this id kind, or raise InvalidIdentifier"""
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, EntityId):
            # An id of another kind is never silently re-typed
            raise InvalidIdentifier(cls.kind, raw)
        if isinstance(raw, uuid.UUID):
            return cls(raw)
        try:
            return cls(uuid.UUID(str(raw).strip()))
        except (ValueError, AttributeError, TypeError) as e:
            raise InvalidIdentifier(cls.kind, raw) from e

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class ApplicationId(EntityId):
    kind: ClassVar[str] = "application"


@dataclass(frozen=True)
class LeaseId(EntityId):
    kind: ClassVar[str] = "lease"


@dataclass(frozen=True)
class ObligationId(EntityId):
    kind: ClassVar[str] = "obligation"


@dataclass(frozen=True)
class PaymentId(EntityId):
    kind: ClassVar[str] = "payment"
