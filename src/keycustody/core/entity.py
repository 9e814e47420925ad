"""Signed entities and their canonical byte form."""

from __future__ import annotations

import json
from typing import ClassVar

from pydantic import BaseModel, ConfigDict


class SignedEntity(BaseModel):
    """
    Base class for records that carry their own signature.

    Subclasses declare their data fields as usual. The field named by
    signature_field is never part of the signed bytes.
    """

    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    signature_field: ClassVar[str] = "signature"

    signature: bytes | None = None

    @property
    def is_signed(self) -> bool:
        return getattr(self, self.signature_field) is not None

    def with_signature(self, signature: bytes) -> "SignedEntity":
        """Return a copy of this entity carrying the given signature."""
        return self.model_copy(update={self.signature_field: signature})


class EntitySigner:
    """Serializes entities to the bytes that get signed and verified."""

    def canonicalize(self, entity: SignedEntity) -> bytes:
        """
        Get the canonical bytes of an entity, excluding its signature.

        Keys are sorted and separators compact so that the same field
        values always produce the same bytes. Signing and verification
        both go through this method.
        """
        fields = entity.model_dump(mode="json", exclude={entity.signature_field})
        return json.dumps(
            fields,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
        ).encode("utf-8")
