"""Pydantic schemas and canonical value sets for the home status board.

The enums double as SQLAlchemy column types (see models.py) and as the
vocabulary of the HTTP payloads, so a value only ever has one spelling.
"""

from datetime import datetime
from enum import Enum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


# =============================================================================
# ENUMS
# =============================================================================


class HomeItemKind(str, Enum):
    """Which upstream catalog a registry entry is backed by."""

    INVENTORY_ITEM = "INVENTORY_ITEM"
    """A cataloged possession (appliance, furniture, electronics, ...)."""

    HOME_ASSET = "HOME_ASSET"
    """A building-system asset (HVAC, roof, water heater, detectors, ...)."""


class HomeItemCondition(str, Enum):
    """Health signal shown on the board, most urgent first by severity."""

    GOOD = "GOOD"
    MONITOR = "MONITOR"
    ACTION_NEEDED = "ACTION_NEEDED"


class HomeItemRecommendation(str, Enum):
    OK = "OK"
    REPAIR = "REPAIR"
    REPLACE_SOON = "REPLACE_SOON"


class HomeItemEventType(str, Enum):
    """Audit event types. COMPUTED_UPDATE is system-authored, the rest are user actions."""

    COMPUTED_UPDATE = "COMPUTED_UPDATE"
    USER_OVERRIDE = "USER_OVERRIDE"
    PIN = "PIN"
    UNPIN = "UNPIN"
    HIDE = "HIDE"
    UNHIDE = "UNHIDE"


class WarrantyStatus(str, Enum):
    NONE = "none"
    ACTIVE = "active"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"


class ReasonCode(str, Enum):
    MISSING_INSTALL_DATE = "MISSING_INSTALL_DATE"
    OVERDUE_MAINTENANCE = "OVERDUE_MAINTENANCE"
    WARRANTY_EXPIRED_EOL = "WARRANTY_EXPIRED_EOL"
    PAST_EOL = "PAST_EOL"
    NEARING_EOL = "NEARING_EOL"
    WARRANTY_EXPIRING = "WARRANTY_EXPIRING"
    ALL_CLEAR = "ALL_CLEAR"


# Lower sorts first on the board
CONDITION_SEVERITY: dict[HomeItemCondition, int] = {
    HomeItemCondition.ACTION_NEEDED: 0,
    HomeItemCondition.MONITOR: 1,
    HomeItemCondition.GOOD: 2,
}


# =============================================================================
# REQUEST MODELS
# =============================================================================


class BoardQuery(BaseModel):
    """Query parameters accepted by the board listing."""

    q: str | None = Field(default=None, max_length=200, description="Free-text search")
    group_by: Literal["condition", "category", "room"] | None = None
    condition: HomeItemCondition | None = Field(
        default=None,
        description="Matched against the override condition when one is set, else the computed one",
    )
    category_key: str | None = Field(default=None, max_length=50)
    pinned_only: bool = False
    include_hidden: bool = False
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)

    @field_validator("q", "category_key")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


class StatusPatch(BaseModel):
    """Partial, user-authored override of one item's status.

    Only fields present in the request body are applied. An explicit null
    clears an override so the computed value is used again.
    """

    model_config = ConfigDict(extra="forbid")

    override_condition: HomeItemCondition | None = None
    override_recommendation: HomeItemRecommendation | None = None
    override_installed_at: datetime | None = None
    override_purchase_date: datetime | None = None
    override_notes: str | None = Field(default=None, max_length=2000)
    is_pinned: bool | None = None
    is_hidden: bool | None = None

    @field_validator("is_pinned", "is_hidden")
    @classmethod
    def flags_not_null(cls, v: bool | None) -> bool:
        if v is None:
            raise ValueError("flag cannot be null")
        return v

    def present_fields(self) -> dict:
        """Fields the caller actually sent, explicit nulls included."""
        return {name: getattr(self, name) for name in self.model_fields_set}


# =============================================================================
# RESPONSE MODELS
# =============================================================================


class Reason(BaseModel):
    code: ReasonCode
    detail: str


class WarrantyInfo(BaseModel):
    status: WarrantyStatus
    expiry_date: datetime | None = None


class RoomSummary(BaseModel):
    id: UUID
    name: str


class StatusRead(BaseModel):
    """A status row as stored, computed and override fields side by side."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    home_item_id: UUID
    computed_condition: HomeItemCondition
    computed_recommendation: HomeItemRecommendation
    computed_reasons: list[Reason] = Field(default_factory=list)
    computed_at: datetime | None = None
    override_condition: HomeItemCondition | None = None
    override_recommendation: HomeItemRecommendation | None = None
    override_installed_at: datetime | None = None
    override_purchase_date: datetime | None = None
    override_notes: str | None = None
    is_pinned: bool = False
    is_hidden: bool = False
    updated_at: datetime | None = None


class EventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    home_item_id: UUID
    actor_user_id: str | None = None
    event_type: HomeItemEventType
    payload: dict = Field(default_factory=dict)
    created_at: datetime


class BoardItem(BaseModel):
    """One row of the status board, with override-aware display fields."""

    id: UUID
    kind: HomeItemKind
    display_name: str
    category: str
    age_years: float | None = None
    install_date: datetime | None = None

    condition: HomeItemCondition
    recommendation: HomeItemRecommendation
    computed_condition: HomeItemCondition | None = None
    computed_recommendation: HomeItemRecommendation | None = None
    computed_reasons: list[Reason] = Field(default_factory=list)
    computed_at: datetime | None = None

    override_condition: HomeItemCondition | None = None
    override_recommendation: HomeItemRecommendation | None = None
    override_notes: str | None = None
    override_purchase_date: datetime | None = None
    override_installed_at: datetime | None = None
    is_pinned: bool = False
    is_hidden: bool = False

    warranty_status: WarrantyStatus
    warranty_expiry: datetime | None = None
    pending_maintenance: int = 0
    room: RoomSummary | None = None
    needs_install_date_for_prediction: bool = Field(
        default=False,
        description="No install date is known yet the item reads as all clear",
    )
    deep_links: dict[str, str] = Field(default_factory=dict)
    inventory_item_id: UUID | None = None
    home_asset_id: UUID | None = None


class BoardSummary(BaseModel):
    total: int
    good: int
    monitor: int
    action_needed: int


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class BoardResponse(BaseModel):
    items: list[BoardItem]
    summary: BoardSummary
    pagination: Pagination
    groups: dict[str, list[BoardItem]] | None = None


class RecomputeResponse(BaseModel):
    success: bool = True
    items_evaluated: int
    items_changed: int
