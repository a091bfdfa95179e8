"""Keep the status board registry in sync with the upstream catalogs.

Three stages, each producing plain data so they can be tested without a
database:

1. Risk-report asset inference: system types mentioned in the latest risk
   assessment that have no HomeAsset yet become new HomeAsset rows.
2. Registry backfill: every InventoryItem and HomeAsset of the property gets
   exactly one HomeItem (with its HomeItemStatus).
3. Drift correction: existing HomeItems whose derived category or room no
   longer match upstream are updated; unchanged rows are left alone.

``ensure_home_items`` runs all three inside one transaction and is safe to
call on every read: a second run with unchanged upstream data writes nothing.
"""

import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .classification import derive_category, is_inferable_system_type
from .database import atomic
from .models import HomeAsset, HomeItem, InventoryItem, RiskAssessmentReport

logger = logging.getLogger(__name__)

MIN_INSTALLATION_YEAR = 1900


# =============================================================================
# Snapshots
# =============================================================================


@dataclass(frozen=True)
class InventorySnapshot:
    id: uuid.UUID
    category: str | None
    room_id: uuid.UUID | None
    home_asset_id: uuid.UUID | None


@dataclass(frozen=True)
class AssetSnapshot:
    id: uuid.UUID
    asset_type: str


@dataclass(frozen=True)
class RegistrySnapshot:
    id: uuid.UUID
    inventory_item_id: uuid.UUID | None
    home_asset_id: uuid.UUID | None
    category_key: str | None
    room_id: uuid.UUID | None


@dataclass(frozen=True)
class InferredAsset:
    asset_type: str
    installation_year: int | None


@dataclass(frozen=True)
class RegistryUpdate:
    home_item_id: uuid.UUID
    category_key: str
    room_id: uuid.UUID | None
    update_room: bool


@dataclass
class RegistryPlan:
    inventory_creates: list[tuple[InventorySnapshot, str]] = field(default_factory=list)
    asset_creates: list[tuple[AssetSnapshot, str]] = field(default_factory=list)
    updates: list[RegistryUpdate] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.inventory_creates or self.asset_creates or self.updates)


@dataclass
class ReconcileStats:
    assets_inferred: int = 0
    items_created: int = 0
    items_updated: int = 0

    @property
    def writes(self) -> int:
        return self.assets_inferred + self.items_created + self.items_updated


# =============================================================================
# Stage 1: risk report → missing HomeAssets
# =============================================================================


def parse_numeric_age(value) -> float | None:
    """Accept non-negative numbers and numeric strings; anything else is unknown."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return number


def collect_risk_candidates(details) -> dict[str, float | None]:
    """Distinct inferable system types from a report, with their reported age.

    Malformed entries are skipped. When a type repeats, the first entry that
    carries a usable age wins.
    """
    candidates: dict[str, float | None] = {}
    if not isinstance(details, list):
        return candidates

    for entry in details:
        if not isinstance(entry, dict):
            logger.debug(f"Skipping malformed risk entry: {entry!r}")
            continue
        system_type = entry.get("systemType")
        system_type = system_type.strip() if isinstance(system_type, str) else ""
        if not is_inferable_system_type(system_type):
            continue

        age = parse_numeric_age(entry.get("age"))
        if system_type not in candidates or (candidates[system_type] is None and age is not None):
            candidates[system_type] = age

    return candidates


def infer_installation_year(age_years: float | None, current_year: int) -> int | None:
    if age_years is None:
        return None
    year = current_year - math.floor(age_years + 0.5)
    if MIN_INSTALLATION_YEAR <= year <= current_year:
        return year
    return None


def plan_inferred_assets(
    details, existing_types: set[str], current_year: int
) -> list[InferredAsset]:
    candidates = collect_risk_candidates(details)
    return [
        InferredAsset(asset_type, infer_installation_year(age, current_year))
        for asset_type, age in candidates.items()
        if asset_type not in existing_types
    ]


# =============================================================================
# Stages 2 & 3: registry backfill and drift correction
# =============================================================================


def plan_registry(
    inventory: list[InventorySnapshot],
    assets: list[AssetSnapshot],
    registry: list[RegistrySnapshot],
) -> RegistryPlan:
    plan = RegistryPlan()
    asset_by_id = {a.id: a for a in assets}
    inventory_by_id = {i.id: i for i in inventory}
    tracked_inventory = {r.inventory_item_id for r in registry if r.inventory_item_id}
    tracked_assets = {r.home_asset_id for r in registry if r.home_asset_id}

    def inventory_category(inv: InventorySnapshot) -> str:
        linked = asset_by_id.get(inv.home_asset_id) if inv.home_asset_id else None
        return derive_category(linked.asset_type if linked else None, inv.category)

    for inv in inventory:
        if inv.id not in tracked_inventory:
            plan.inventory_creates.append((inv, inventory_category(inv)))

    # Assets keep their own entry even when a possession links to them
    for asset in assets:
        if asset.id not in tracked_assets:
            plan.asset_creates.append((asset, derive_category(asset.asset_type, None)))

    for existing in registry:
        if existing.inventory_item_id:
            inv = inventory_by_id.get(existing.inventory_item_id)
            if inv is None:
                continue
            desired_category = inventory_category(inv)
            if existing.category_key != desired_category or existing.room_id != inv.room_id:
                plan.updates.append(
                    RegistryUpdate(existing.id, desired_category, inv.room_id, update_room=True)
                )
        elif existing.home_asset_id:
            asset = asset_by_id.get(existing.home_asset_id)
            if asset is None:
                continue
            desired_category = derive_category(asset.asset_type, None)
            if existing.category_key != desired_category:
                plan.updates.append(
                    RegistryUpdate(existing.id, desired_category, None, update_room=False)
                )

    return plan


# =============================================================================
# Store access
# =============================================================================


def _latest_risk_details(db: Session, property_id: uuid.UUID):
    return db.execute(
        select(RiskAssessmentReport.details)
        .where(RiskAssessmentReport.property_id == property_id)
        .order_by(RiskAssessmentReport.created_at.desc())
        .limit(1)
    ).scalar_one_or_none()


def _infer_assets_from_risk_report(
    db: Session, property_id: uuid.UUID, current_year: int
) -> int:
    details = _latest_risk_details(db, property_id)
    if not details:
        return 0

    existing_types = set(
        db.execute(
            select(HomeAsset.asset_type).where(HomeAsset.property_id == property_id)
        ).scalars()
    )
    inferred = plan_inferred_assets(details, existing_types, current_year)
    for asset in inferred:
        db.add(
            HomeAsset(
                property_id=property_id,
                asset_type=asset.asset_type,
                installation_year=asset.installation_year,
                inferred=True,
            )
        )
    if inferred:
        db.flush()
    return len(inferred)


def _snapshot(db: Session, property_id: uuid.UUID):
    inventory = [
        InventorySnapshot(r.id, r.category, r.room_id, r.home_asset_id)
        for r in db.execute(
            select(
                InventoryItem.id,
                InventoryItem.category,
                InventoryItem.room_id,
                InventoryItem.home_asset_id,
            ).where(InventoryItem.property_id == property_id)
        )
    ]
    assets = [
        AssetSnapshot(r.id, r.asset_type)
        for r in db.execute(
            select(HomeAsset.id, HomeAsset.asset_type).where(HomeAsset.property_id == property_id)
        )
    ]
    registry = [
        RegistrySnapshot(r.id, r.inventory_item_id, r.home_asset_id, r.category_key, r.room_id)
        for r in db.execute(
            select(
                HomeItem.id,
                HomeItem.inventory_item_id,
                HomeItem.home_asset_id,
                HomeItem.category_key,
                HomeItem.room_id,
            ).where(HomeItem.property_id == property_id)
        )
    ]
    return inventory, assets, registry


def _apply_plan(db: Session, property_id: uuid.UUID, plan: RegistryPlan) -> None:
    for inv, category in plan.inventory_creates:
        db.add(
            HomeItem.for_inventory_item(
                property_id, inv.id, category_key=category, room_id=inv.room_id
            )
        )
    for asset, category in plan.asset_creates:
        db.add(HomeItem.for_home_asset(property_id, asset.id, category_key=category))

    for update in plan.updates:
        item = db.get(HomeItem, update.home_item_id)
        item.category_key = update.category_key
        if update.update_room:
            item.room_id = update.room_id


def _reconcile(db: Session, property_id: uuid.UUID, current_year: int) -> ReconcileStats:
    stats = ReconcileStats()
    with atomic(db):
        stats.assets_inferred = _infer_assets_from_risk_report(db, property_id, current_year)
        plan = plan_registry(*_snapshot(db, property_id))
        _apply_plan(db, property_id, plan)
        stats.items_created = len(plan.inventory_creates) + len(plan.asset_creates)
        stats.items_updated = len(plan.updates)
    return stats


def ensure_home_items(
    db: Session, property_id: uuid.UUID, now: datetime | None = None
) -> ReconcileStats:
    """Reconcile the registry of one property with its upstream catalogs."""
    current_year = (now or datetime.utcnow()).year
    try:
        stats = _reconcile(db, property_id, current_year)
    except IntegrityError:
        # A concurrent request registered the same entries or inferred the same
        # asset types first; the next snapshot sees its rows and converges
        logger.info(f"Registry race for property {property_id}, reconciling again")
        stats = _reconcile(db, property_id, current_year)

    if stats.writes:
        logger.info(
            f"Reconciled property {property_id}: {stats.assets_inferred} assets inferred, "
            f"{stats.items_created} items created, {stats.items_updated} items updated"
        )
    return stats
