"""Cache entry bookkeeping and the field/picklist metadata models."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from autotask_tools.utils import isoformat_or_none, utcnow

K = TypeVar("K")
V = TypeVar("V")


@dataclass
class CacheEntry(Generic[K, V]):
    """A snapshot of one bulk load plus its load bookkeeping.

    ``is_valid`` flips to True once a load attempt has settled, whether it
    succeeded or failed. ``loaded_at`` is only set by a successful load.
    """

    items: dict[K, V] = field(default_factory=dict)
    loaded_at: Optional[datetime] = None
    is_valid: bool = False

    @property
    def count(self) -> int:
        return len(self.items)

    def get(self, key: K) -> Optional[V]:
        return self.items.get(key)

    def replace(self, items: dict[K, V]) -> None:
        """Install a fresh successful snapshot."""
        self.items = items
        self.loaded_at = utcnow()
        self.is_valid = True

    def mark_failed(self) -> None:
        """Record a settled-but-failed attempt; the current snapshot is kept."""
        self.loaded_at = None
        self.is_valid = True

    def clear(self) -> None:
        self.items = {}
        self.loaded_at = None
        self.is_valid = False

    def is_expired(self, ttl_seconds: Optional[float]) -> bool:
        # Failed or empty loads never expire: no automatic retries against them
        if not ttl_seconds or self.loaded_at is None or not self.items:
            return False
        return (utcnow() - self.loaded_at).total_seconds() > ttl_seconds

    def stats(self) -> dict:
        return {
            "count": self.count,
            "is_valid": self.is_valid,
            "loaded_at": isoformat_or_none(self.loaded_at),
        }


# ---------------------------------------------------------------------------
# Field metadata (entityInformation/fields)
# ---------------------------------------------------------------------------

class PicklistValue(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    value: str
    label: str
    is_default_value: bool = Field(default=False, alias="isDefaultValue")
    sort_order: Optional[int] = Field(default=None, alias="sortOrder")
    is_active: bool = Field(default=True, alias="isActive")
    is_system: bool = Field(default=False, alias="isSystem")
    parent_value: Optional[str] = Field(default=None, alias="parentValue")

    @classmethod
    def from_api(cls, raw: dict) -> "PicklistValue":
        value = str(raw.get("value"))
        parent = raw.get("parentValue")
        return cls(
            value=value,
            label=raw.get("label") or raw.get("name") or value,
            is_default_value=bool(raw.get("isDefaultValue")),
            sort_order=raw.get("sortOrder"),
            is_active=raw.get("isActive") is not False,
            is_system=bool(raw.get("isSystem")),
            parent_value=str(parent) if parent not in (None, "") else None,
        )


class FieldInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    data_type: str = Field(default="", alias="dataType")
    length: Optional[int] = None
    is_required: bool = Field(default=False, alias="isRequired")
    is_read_only: bool = Field(default=False, alias="isReadOnly")
    is_queryable: bool = Field(default=False, alias="isQueryable")
    is_reference: bool = Field(default=False, alias="isReference")
    reference_entity_type: Optional[str] = Field(default=None, alias="referenceEntityType")
    is_pick_list: bool = Field(default=False, alias="isPickList")
    picklist_values: Optional[list[PicklistValue]] = Field(default=None, alias="picklistValues")
    picklist_parent_value_field: Optional[str] = Field(
        default=None, alias="picklistParentValueField"
    )

    @field_validator(
        "is_required", "is_read_only", "is_queryable", "is_reference", "is_pick_list",
        mode="before",
    )
    @classmethod
    def _none_is_false(cls, v):
        return bool(v) if v is not None else False

    @classmethod
    def from_api(cls, raw: dict) -> "FieldInfo":
        """Build from one item of the REST ``fields`` array."""
        values = raw.get("picklistValues")
        return cls(
            name=raw["name"],
            data_type=raw.get("dataType") or "",
            length=raw.get("length"),
            is_required=raw.get("isRequired"),
            is_read_only=raw.get("isReadOnly"),
            is_queryable=raw.get("isQueryable"),
            is_reference=raw.get("isReference"),
            reference_entity_type=raw.get("referenceEntityType"),
            is_pick_list=raw.get("isPickList"),
            picklist_values=(
                [PicklistValue.from_api(pv) for pv in values] if values is not None else None
            ),
            picklist_parent_value_field=raw.get("picklistParentValueField"),
        )
