"""SQLAlchemy models for the home status board.

Data Architecture Overview:
- Upstream catalogs (owned elsewhere, read here): Property, Room,
  InventoryItem (possessions), HomeAsset (building systems), Warranty,
  MaintenanceTask, RiskAssessmentReport
- Registry (owned here): HomeItem is one row per tracked physical thing,
  backed by exactly one InventoryItem or one HomeAsset
- HomeItemStatus is the 1:1 mutable health record: computed fields are
  written by the inference engine, override fields only by users
- HomeItemStatusEvent is the append-only audit trail

Key Concepts:
- Effective status: override value if present, else computed value
- HomeAsset rows may be created here, but only when inferred from the
  latest risk-assessment report
"""

import uuid
from datetime import date, datetime
from typing import NamedTuple

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base
from .schemas import (
    HomeItemCondition,
    HomeItemEventType,
    HomeItemKind,
    HomeItemRecommendation,
)

JSONType = JSON().with_variant(JSONB(), "postgresql")


# =============================================================================
# UPSTREAM CATALOGS
# =============================================================================


class Property(Base):
    """A home owned by a user. Used here only for scoping."""

    __tablename__ = "properties"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str | None] = mapped_column(String(200))
    address: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    rooms: Mapped[list["Room"]] = relationship("Room", back_populates="property")
    risk_report: Mapped["RiskAssessmentReport"] = relationship(
        "RiskAssessmentReport", back_populates="property", uselist=False
    )

    def __repr__(self) -> str:
        return f"<Property {self.id}: {self.name}>"


class Room(Base):
    __tablename__ = "rooms"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("properties.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    property: Mapped["Property"] = relationship("Property", back_populates="rooms")

    def __repr__(self) -> str:
        return f"<Room {self.name}>"


inventory_item_warranties = Table(
    "inventory_item_warranties",
    Base.metadata,
    Column("inventory_item_id", Uuid, ForeignKey("inventory_items.id"), primary_key=True),
    Column("warranty_id", Uuid, ForeignKey("warranties.id"), primary_key=True),
)


class HomeAsset(Base):
    """A building-system asset: HVAC, water heater, roof, detectors, ..."""

    __tablename__ = "home_assets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("properties.id"), nullable=False, index=True
    )
    asset_type: Mapped[str] = mapped_column(
        String(50), nullable=False,
        doc="System type key, e.g. HVAC_FURNACE, ROOF_SHINGLE"
    )
    installation_year: Mapped[int | None] = mapped_column(Integer)
    inferred: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
        doc="Created from a risk-assessment report rather than cataloged by the owner"
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    warranties: Mapped[list["Warranty"]] = relationship("Warranty", back_populates="home_asset")
    maintenance_tasks: Mapped[list["MaintenanceTask"]] = relationship(
        "MaintenanceTask", back_populates="home_asset"
    )

    __table_args__ = (
        Index("ix_home_assets_property_type", "property_id", "asset_type"),
        # Owners may catalog several assets of one type, inference adds at most one
        Index(
            "uq_home_assets_inferred_type", "property_id", "asset_type",
            unique=True,
            postgresql_where=text("inferred"),
            sqlite_where=text("inferred"),
        ),
    )

    def __repr__(self) -> str:
        return f"<HomeAsset {self.asset_type} ({self.installation_year})>"


class Warranty(Base):
    __tablename__ = "warranties"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("properties.id"), nullable=False, index=True
    )
    home_asset_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("home_assets.id"), index=True
    )
    provider_name: Mapped[str | None] = mapped_column(String(200))
    expiry_date: Mapped[date | None] = mapped_column(Date)

    home_asset: Mapped["HomeAsset"] = relationship("HomeAsset", back_populates="warranties")

    def __repr__(self) -> str:
        return f"<Warranty {self.provider_name} exp={self.expiry_date}>"


class InventoryItem(Base):
    """A cataloged possession, optionally tied to a building-system asset."""

    __tablename__ = "inventory_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("properties.id"), nullable=False, index=True
    )
    room_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("rooms.id"))
    home_asset_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("home_assets.id"))
    warranty_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("warranties.id"))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str | None] = mapped_column(
        String(50),
        doc="Possession category: APPLIANCE, FURNITURE, ELECTRONICS, SAFETY, ROOF_EXTERIOR, ..."
    )
    installed_on: Mapped[date | None] = mapped_column(Date)
    purchased_on: Mapped[date | None] = mapped_column(Date)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    room: Mapped["Room"] = relationship("Room")
    home_asset: Mapped["HomeAsset"] = relationship("HomeAsset")
    warranty: Mapped["Warranty"] = relationship("Warranty", foreign_keys=[warranty_id])
    linked_warranties: Mapped[list["Warranty"]] = relationship(
        "Warranty", secondary=inventory_item_warranties
    )

    def __repr__(self) -> str:
        return f"<InventoryItem {self.name} [{self.category}]>"


class MaintenanceTask(Base):
    __tablename__ = "property_maintenance_tasks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("properties.id"), nullable=False, index=True
    )
    home_asset_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("home_assets.id"), index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    priority: Mapped[str | None] = mapped_column(String(20))  # LOW, MEDIUM, HIGH, URGENT
    status: Mapped[str] = mapped_column(String(20), default="PENDING")  # PENDING, IN_PROGRESS, COMPLETED
    next_due_date: Mapped[date | None] = mapped_column(Date)

    home_asset: Mapped["HomeAsset"] = relationship(
        "HomeAsset", back_populates="maintenance_tasks"
    )

    def __repr__(self) -> str:
        return f"<MaintenanceTask {self.title} {self.priority}/{self.status}>"


class RiskAssessmentReport(Base):
    """Latest risk-assessment report for a property.

    ``details`` is a list of loosely-structured dicts, each expected to carry a
    ``systemType`` string and an ``age`` (number or numeric string).
    """

    __tablename__ = "risk_assessment_reports"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("properties.id"), nullable=False, unique=True
    )
    details: Mapped[list | None] = mapped_column(JSONType)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    property: Mapped["Property"] = relationship("Property", back_populates="risk_report")


# =============================================================================
# STATUS BOARD REGISTRY
# =============================================================================


class SourceRef(NamedTuple):
    """The one upstream row a registry entry is backed by."""

    kind: HomeItemKind
    id: uuid.UUID


class HomeItem(Base):
    """Unified registry entry for a possession or a building-system asset.

    Exactly one of ``inventory_item_id`` / ``home_asset_id`` is set, matching
    ``kind``. At most one entry exists per (property, possession) and per
    (property, asset).
    """

    __tablename__ = "home_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("properties.id"), nullable=False, index=True
    )
    kind: Mapped[HomeItemKind] = mapped_column(SQLEnum(HomeItemKind), nullable=False)
    inventory_item_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("inventory_items.id")
    )
    home_asset_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("home_assets.id"))
    category_key: Mapped[str] = mapped_column(
        String(50), nullable=False, default="OTHER", index=True,
        doc="SYSTEMS, SAFETY, STRUCTURE, a possession category, or OTHER"
    )
    room_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("rooms.id"))
    display_name: Mapped[str | None] = mapped_column(String(200))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    inventory_item: Mapped["InventoryItem"] = relationship("InventoryItem")
    home_asset: Mapped["HomeAsset"] = relationship("HomeAsset")
    room: Mapped["Room"] = relationship("Room")
    status: Mapped["HomeItemStatus"] = relationship(
        "HomeItemStatus", back_populates="home_item", uselist=False,
        cascade="all, delete-orphan"
    )
    events: Mapped[list["HomeItemStatusEvent"]] = relationship(
        "HomeItemStatusEvent", back_populates="home_item",
        order_by="HomeItemStatusEvent.created_at"
    )

    __table_args__ = (
        UniqueConstraint("property_id", "inventory_item_id", name="uq_home_items_inventory"),
        UniqueConstraint("property_id", "home_asset_id", name="uq_home_items_asset"),
        CheckConstraint(
            "(kind = 'INVENTORY_ITEM' AND inventory_item_id IS NOT NULL AND home_asset_id IS NULL)"
            " OR (kind = 'HOME_ASSET' AND home_asset_id IS NOT NULL AND inventory_item_id IS NULL)",
            name="ck_home_items_single_source",
        ),
    )

    @property
    def source_ref(self) -> SourceRef:
        if self.kind == HomeItemKind.INVENTORY_ITEM:
            return SourceRef(HomeItemKind.INVENTORY_ITEM, self.inventory_item_id)
        return SourceRef(HomeItemKind.HOME_ASSET, self.home_asset_id)

    @classmethod
    def for_inventory_item(cls, property_id: uuid.UUID, item_id: uuid.UUID, **fields) -> "HomeItem":
        return cls(
            property_id=property_id,
            kind=HomeItemKind.INVENTORY_ITEM,
            inventory_item_id=item_id,
            status=HomeItemStatus(),
            **fields,
        )

    @classmethod
    def for_home_asset(cls, property_id: uuid.UUID, asset_id: uuid.UUID, **fields) -> "HomeItem":
        return cls(
            property_id=property_id,
            kind=HomeItemKind.HOME_ASSET,
            home_asset_id=asset_id,
            status=HomeItemStatus(),
            **fields,
        )

    def __repr__(self) -> str:
        kind, ref = self.source_ref
        return f"<HomeItem {kind.value}:{ref} [{self.category_key}]>"


class HomeItemStatus(Base):
    """Mutable health record for a HomeItem.

    computed_* fields belong to the inference engine. override_* fields and the
    pin/hide flags belong to the user; when an override is set it wins
    everywhere the status is surfaced.
    """

    __tablename__ = "home_item_statuses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    home_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("home_items.id"), nullable=False, unique=True
    )

    # Engine-owned
    computed_condition: Mapped[HomeItemCondition] = mapped_column(
        SQLEnum(HomeItemCondition), nullable=False, default=HomeItemCondition.GOOD
    )
    computed_recommendation: Mapped[HomeItemRecommendation] = mapped_column(
        SQLEnum(HomeItemRecommendation), nullable=False, default=HomeItemRecommendation.OK
    )
    computed_reasons: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    computed_at: Mapped[datetime | None] = mapped_column(DateTime, index=True)

    # User-owned
    override_condition: Mapped[HomeItemCondition | None] = mapped_column(SQLEnum(HomeItemCondition))
    override_recommendation: Mapped[HomeItemRecommendation | None] = mapped_column(
        SQLEnum(HomeItemRecommendation)
    )
    override_installed_at: Mapped[datetime | None] = mapped_column(DateTime)
    override_purchase_date: Mapped[datetime | None] = mapped_column(DateTime)
    override_notes: Mapped[str | None] = mapped_column(Text)
    is_pinned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    home_item: Mapped["HomeItem"] = relationship("HomeItem", back_populates="status")

    @property
    def effective_condition(self) -> HomeItemCondition:
        return effective(self.override_condition, self.computed_condition)

    @property
    def effective_recommendation(self) -> HomeItemRecommendation:
        return effective(self.override_recommendation, self.computed_recommendation)


class HomeItemStatusEvent(Base):
    """Append-only audit record for a HomeItem. Never updated or deleted."""

    __tablename__ = "home_item_status_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    home_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("home_items.id"), nullable=False, index=True
    )
    actor_user_id: Mapped[str | None] = mapped_column(
        String(100),
        doc="User who made the change; null for system events"
    )
    event_type: Mapped[HomeItemEventType] = mapped_column(SQLEnum(HomeItemEventType), nullable=False)
    payload: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    home_item: Mapped["HomeItem"] = relationship("HomeItem", back_populates="events")

    def __repr__(self) -> str:
        return f"<HomeItemStatusEvent {self.event_type.value} {self.home_item_id}>"


def effective(override, computed):
    """Override wins whenever one is set."""
    return override if override is not None else computed
