"""Rule-based condition inference for status board items.

Signal Precedence (later rules only escalate):
| Order | Rule | Condition | Reason |
|-------|------|-----------|--------|
| 1 | no install date known | (unchanged) | MISSING_INSTALL_DATE |
| 2 | overdue HIGH/URGENT task | ACTION_NEEDED | OVERDUE_MAINTENANCE |
| 3 | warranty expired and eol >= 0.8 | ACTION_NEEDED | WARRANTY_EXPIRED_EOL |
| 4a | eol >= 1.0 | ACTION_NEEDED | PAST_EOL |
| 4b | eol >= 0.8, still GOOD | MONITOR | NEARING_EOL |
| 5 | warranty expiring soon, still GOOD | MONITOR | WARRANTY_EXPIRING |
| 6 | still GOOD with install date | GOOD | ALL_CLEAR |

Results are persisted only when (condition, recommendation, reasons) changed;
``computed_at`` is refreshed on every pass so the board's staleness check
stays satisfied.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from .classification import get_expected_life
from .database import atomic
from .models import HomeAsset, HomeItem, HomeItemStatusEvent, InventoryItem
from .schemas import (
    HomeItemCondition,
    HomeItemEventType,
    HomeItemRecommendation,
    ReasonCode,
    WarrantyInfo,
    WarrantyStatus,
)
from .warranty import aggregate_warranties, as_datetime

logger = logging.getLogger(__name__)

SECONDS_PER_YEAR = 365.25 * 24 * 60 * 60
NEARING_EOL_RATIO = 0.8
PAST_EOL_RATIO = 1.0
URGENT_PRIORITIES = frozenset({"HIGH", "URGENT"})
COMPLETED = "COMPLETED"


@dataclass(frozen=True)
class OpenTask:
    priority: str | None
    next_due_date: date | None


@dataclass(frozen=True)
class ItemInputs:
    """Everything the rules need about one registry entry, resolved from upstream rows."""

    install_date: datetime | None = None
    asset_type: str | None = None
    inventory_category: str | None = None
    warranty_expiries: tuple = ()
    open_tasks: tuple[OpenTask, ...] = ()


@dataclass
class Evaluation:
    condition: HomeItemCondition
    recommendation: HomeItemRecommendation
    reasons: list[dict] = field(default_factory=list)
    age_years: float = 0.0
    eol_ratio: float = 0.0
    expected_life: int = 0
    warranty: WarrantyInfo | None = None


# =============================================================================
# Input resolution
# =============================================================================


def _asset_install_date(asset: HomeAsset | None) -> datetime | None:
    if asset is None or not asset.installation_year:
        return None
    return datetime(asset.installation_year, 1, 1)


def _open_tasks(asset: HomeAsset | None) -> tuple[OpenTask, ...]:
    if asset is None:
        return ()
    return tuple(
        OpenTask(priority=t.priority, next_due_date=t.next_due_date)
        for t in asset.maintenance_tasks
        if t.status != COMPLETED
    )


def _inventory_expiries(inv: InventoryItem) -> list:
    expiries = []
    if inv.warranty is not None:
        expiries.append(inv.warranty.expiry_date)
    expiries.extend(w.expiry_date for w in inv.linked_warranties)
    if inv.home_asset is not None:
        expiries.extend(w.expiry_date for w in inv.home_asset.warranties)
    return expiries


def resolve_inputs(item: HomeItem) -> ItemInputs:
    """Collect install date, classification, warranties and open tasks for an item.

    Install date precedence: status override, possession installed date,
    possession purchase date, then Jan 1 of the (linked) asset's installation
    year.
    """
    install_date = None
    asset_type = None
    inventory_category = None
    expiries: list = []
    tasks: tuple[OpenTask, ...] = ()

    inv = item.inventory_item
    if inv is not None:
        install_date = as_datetime(inv.installed_on or inv.purchased_on)
        inventory_category = inv.category
        expiries = _inventory_expiries(inv)
        if inv.home_asset is not None:
            asset_type = inv.home_asset.asset_type
            tasks = _open_tasks(inv.home_asset)
            install_date = install_date or _asset_install_date(inv.home_asset)
    elif item.home_asset is not None:
        asset_type = item.home_asset.asset_type
        expiries = [w.expiry_date for w in item.home_asset.warranties]
        tasks = _open_tasks(item.home_asset)
        install_date = _asset_install_date(item.home_asset)

    if item.status is not None and item.status.override_installed_at is not None:
        install_date = item.status.override_installed_at

    return ItemInputs(
        install_date=install_date,
        asset_type=asset_type,
        inventory_category=inventory_category,
        warranty_expiries=tuple(expiries),
        open_tasks=tasks,
    )


# =============================================================================
# Rules
# =============================================================================


def age_in_years(install_date: datetime | None, now: datetime) -> float:
    if install_date is None:
        return 0.0
    return (now - install_date).total_seconds() / SECONDS_PER_YEAR


def has_overdue_urgent(tasks, now: datetime) -> bool:
    return any(
        t.next_due_date is not None
        and as_datetime(t.next_due_date) < now
        and t.priority in URGENT_PRIORITIES
        for t in tasks
    )


def _reason(code: ReasonCode, detail: str) -> dict:
    return {"code": code.value, "detail": detail}


def infer_condition(
    *,
    has_install_date: bool,
    eol_ratio: float,
    expected_life: int,
    warranty_status: WarrantyStatus,
    overdue_urgent: bool,
) -> tuple[HomeItemCondition, HomeItemRecommendation, list[dict]]:
    """Apply the rule table. Pure; see module docstring for precedence."""
    reasons: list[dict] = []
    condition = HomeItemCondition.GOOD

    if not has_install_date:
        reasons.append(_reason(ReasonCode.MISSING_INSTALL_DATE, "Install date is empty"))

    if overdue_urgent:
        condition = HomeItemCondition.ACTION_NEEDED
        reasons.append(_reason(ReasonCode.OVERDUE_MAINTENANCE, "Overdue urgent maintenance task"))

    if has_install_date and warranty_status == WarrantyStatus.EXPIRED and eol_ratio >= NEARING_EOL_RATIO:
        condition = HomeItemCondition.ACTION_NEEDED
        reasons.append(
            _reason(ReasonCode.WARRANTY_EXPIRED_EOL, "Warranty expired and nearing end of life")
        )

    if has_install_date and eol_ratio >= PAST_EOL_RATIO and condition != HomeItemCondition.ACTION_NEEDED:
        condition = HomeItemCondition.ACTION_NEEDED
        reasons.append(_reason(ReasonCode.PAST_EOL, f"Past expected life ({expected_life}yr)"))
    elif has_install_date and eol_ratio >= NEARING_EOL_RATIO and condition == HomeItemCondition.GOOD:
        condition = HomeItemCondition.MONITOR
        reasons.append(
            _reason(ReasonCode.NEARING_EOL, f"{round_half_up(eol_ratio * 100)}% of expected life")
        )

    if warranty_status == WarrantyStatus.EXPIRING_SOON and condition == HomeItemCondition.GOOD:
        condition = HomeItemCondition.MONITOR
        reasons.append(_reason(ReasonCode.WARRANTY_EXPIRING, "Warranty expiring within 60 days"))

    if condition == HomeItemCondition.GOOD and has_install_date:
        reasons.append(_reason(ReasonCode.ALL_CLEAR, "No issues detected"))

    if condition == HomeItemCondition.ACTION_NEEDED and eol_ratio >= NEARING_EOL_RATIO:
        recommendation = HomeItemRecommendation.REPLACE_SOON
    elif condition == HomeItemCondition.ACTION_NEEDED:
        recommendation = HomeItemRecommendation.REPAIR
    elif condition == HomeItemCondition.MONITOR and eol_ratio >= NEARING_EOL_RATIO:
        recommendation = HomeItemRecommendation.REPLACE_SOON
    else:
        recommendation = HomeItemRecommendation.OK

    return condition, recommendation, reasons


def round_half_up(value: float, ndigits: int = 0) -> float:
    factor = 10 ** ndigits
    rounded = int(value * factor + 0.5) if value >= 0 else -int(-value * factor + 0.5)
    return rounded / factor if ndigits else rounded


def evaluate_inputs(inputs: ItemInputs, now: datetime) -> Evaluation:
    has_install_date = inputs.install_date is not None
    expected_life = get_expected_life(inputs.asset_type, inputs.inventory_category)
    age_years = age_in_years(inputs.install_date, now)
    eol_ratio = age_years / expected_life if has_install_date and expected_life > 0 else 0.0
    warranty = aggregate_warranties(inputs.warranty_expiries, now=now)

    condition, recommendation, reasons = infer_condition(
        has_install_date=has_install_date,
        eol_ratio=eol_ratio,
        expected_life=expected_life,
        warranty_status=warranty.status,
        overdue_urgent=has_overdue_urgent(inputs.open_tasks, now),
    )
    return Evaluation(
        condition=condition,
        recommendation=recommendation,
        reasons=reasons,
        age_years=age_years,
        eol_ratio=eol_ratio,
        expected_life=expected_life,
        warranty=warranty,
    )


# =============================================================================
# Persistence
# =============================================================================


def load_home_items(db: Session, property_id: uuid.UUID) -> list[HomeItem]:
    """All registry entries of a property with every upstream row the rules read."""
    stmt = (
        select(HomeItem)
        .where(HomeItem.property_id == property_id)
        .options(
            selectinload(HomeItem.status),
            selectinload(HomeItem.inventory_item).selectinload(InventoryItem.warranty),
            selectinload(HomeItem.inventory_item).selectinload(InventoryItem.linked_warranties),
            selectinload(HomeItem.inventory_item)
            .selectinload(InventoryItem.home_asset)
            .selectinload(HomeAsset.warranties),
            selectinload(HomeItem.inventory_item)
            .selectinload(InventoryItem.home_asset)
            .selectinload(HomeAsset.maintenance_tasks),
            selectinload(HomeItem.home_asset).selectinload(HomeAsset.warranties),
            selectinload(HomeItem.home_asset).selectinload(HomeAsset.maintenance_tasks),
        )
    )
    return list(db.execute(stmt).scalars().all())


def compute_statuses(
    db: Session, property_id: uuid.UUID, now: datetime | None = None
) -> tuple[int, int]:
    """Recompute every item's status for a property in one batch.

    Returns (items evaluated, items whose computed status changed).
    """
    now = now or datetime.utcnow()
    evaluated = changed = 0

    with atomic(db):
        for item in load_home_items(db, property_id):
            status = item.status
            if status is None:
                continue
            evaluated += 1
            result = evaluate_inputs(resolve_inputs(item), now)

            if (
                status.computed_condition != result.condition
                or status.computed_recommendation != result.recommendation
                or (status.computed_reasons or []) != result.reasons
            ):
                changed += 1
                status.computed_condition = result.condition
                status.computed_recommendation = result.recommendation
                status.computed_reasons = result.reasons
                db.add(
                    HomeItemStatusEvent(
                        home_item_id=item.id,
                        event_type=HomeItemEventType.COMPUTED_UPDATE,
                        payload={
                            "condition": result.condition.value,
                            "recommendation": result.recommendation.value,
                            "reasons": result.reasons,
                        },
                        created_at=now,
                    )
                )
            status.computed_at = now

    logger.info(
        f"Computed statuses for property {property_id}: "
        f"{evaluated} evaluated, {changed} changed"
    )
    return evaluated, changed
