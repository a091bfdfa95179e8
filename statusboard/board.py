"""Board projection: filter, sort, paginate and group registry entries for display."""

import logging
import math
import uuid
from datetime import datetime, timedelta
from urllib.parse import urlencode

from sqlalchemy import String, and_, case, func, or_, select
from sqlalchemy.orm import Session, selectinload

from .config import FRESHNESS_WINDOW_HOURS
from .inference import (
    age_in_years,
    compute_statuses,
    resolve_inputs,
    round_half_up,
)
from .models import (
    HomeAsset,
    HomeItem,
    HomeItemStatus,
    InventoryItem,
)
from .reconciler import ensure_home_items
from .schemas import (
    CONDITION_SEVERITY,
    BoardItem,
    BoardQuery,
    BoardResponse,
    BoardSummary,
    HomeItemCondition,
    HomeItemRecommendation,
    Pagination,
    RoomSummary,
)
from .warranty import aggregate_warranties

logger = logging.getLogger(__name__)

NO_ROOM_GROUP = "No Room"


def build_deep_links(item: HomeItem, property_id: uuid.UUID) -> dict[str, str]:
    """Links to related views, built from ids already on the row."""
    base = f"/dashboard/properties/{property_id}"
    links: dict[str, str] = {}

    if item.inventory_item_id:
        params = urlencode({
            "openItemId": item.inventory_item_id,
            "scrollToItemId": item.inventory_item_id,
            "from": "status-board",
        })
        links["view_item"] = f"{base}/inventory?{params}"
        links["replace_repair"] = f"{base}/inventory/items/{item.inventory_item_id}/replace-repair"
    if item.home_asset_id:
        links["view_asset"] = f"{base}/systems/{item.home_asset_id}"
    if item.room_id:
        links["view_room"] = f"{base}/rooms/{item.room_id}?from=status-board"
    links["risk_assessment"] = f"{base}/risk"
    links["maintenance"] = f"/dashboard/maintenance?propertyId={property_id}&from=status-board"
    links["warranty"] = f"/dashboard/warranties?propertyId={property_id}&from=status-board"
    return links


def display_name_for(item: HomeItem) -> str:
    if item.display_name:
        return item.display_name
    if item.inventory_item is not None and item.inventory_item.name:
        return item.inventory_item.name
    if item.home_asset is not None:
        return item.home_asset.asset_type.replace("_", " ")
    return ""


def is_fresh(db: Session, property_id: uuid.UUID, now: datetime) -> bool:
    """Whether any status of the property was computed inside the freshness window."""
    cutoff = now - timedelta(hours=FRESHNESS_WINDOW_HOURS)
    recent = db.execute(
        select(HomeItemStatus.id)
        .join(HomeItem, HomeItemStatus.home_item_id == HomeItem.id)
        .where(HomeItem.property_id == property_id, HomeItemStatus.computed_at >= cutoff)
        .limit(1)
    ).first()
    return recent is not None


def build_filters(property_id: uuid.UUID, query: BoardQuery) -> list:
    filters = [HomeItem.property_id == property_id]

    if query.category_key:
        filters.append(HomeItem.category_key == query.category_key)

    if query.q:
        filters.append(
            or_(
                HomeItem.display_name.icontains(query.q, autoescape=True),
                InventoryItem.name.icontains(query.q, autoescape=True),
                HomeAsset.asset_type.icontains(query.q, autoescape=True),
                func.replace(HomeAsset.asset_type, "_", " ", type_=String).icontains(query.q, autoescape=True),
                HomeItem.category_key.icontains(query.q, autoescape=True),
            )
        )

    # Match the override when one is set, never the computed value behind it
    if query.condition:
        filters.append(
            or_(
                HomeItemStatus.override_condition == query.condition,
                and_(
                    HomeItemStatus.override_condition.is_(None),
                    HomeItemStatus.computed_condition == query.condition,
                ),
            )
        )

    if query.pinned_only:
        filters.append(HomeItemStatus.is_pinned.is_(True))
    if not query.include_hidden:
        filters.append(HomeItemStatus.is_hidden.is_(False))

    return filters


def _joined(stmt):
    return (
        stmt.join(HomeItemStatus, HomeItemStatus.home_item_id == HomeItem.id)
        .outerjoin(InventoryItem, HomeItem.inventory_item_id == InventoryItem.id)
        .outerjoin(HomeAsset, HomeItem.home_asset_id == HomeAsset.id)
    )


_COMPUTED_SEVERITY = case(
    (HomeItemStatus.computed_condition == HomeItemCondition.ACTION_NEEDED, 0),
    (HomeItemStatus.computed_condition == HomeItemCondition.MONITOR, 1),
    else_=2,
)


def project_item(item: HomeItem, now: datetime) -> BoardItem:
    # Rows come from an inner join on the status table
    s = item.status
    condition = s.effective_condition
    recommendation = s.effective_recommendation

    inputs = resolve_inputs(item)
    install_date = inputs.install_date
    age_years = round_half_up(age_in_years(install_date, now), 1) if install_date else None
    warranty = aggregate_warranties(inputs.warranty_expiries, now=now)
    room = item.room

    return BoardItem(
        id=item.id,
        kind=item.kind,
        display_name=display_name_for(item),
        category=item.category_key or "OTHER",
        age_years=age_years,
        install_date=install_date,
        condition=condition,
        recommendation=recommendation,
        computed_condition=s.computed_condition,
        computed_recommendation=s.computed_recommendation,
        computed_reasons=s.computed_reasons or [],
        computed_at=s.computed_at,
        override_condition=s.override_condition,
        override_recommendation=s.override_recommendation,
        override_notes=s.override_notes,
        override_purchase_date=s.override_purchase_date,
        override_installed_at=s.override_installed_at,
        is_pinned=s.is_pinned,
        is_hidden=s.is_hidden,
        warranty_status=warranty.status,
        warranty_expiry=warranty.expiry_date,
        pending_maintenance=len(inputs.open_tasks),
        room=RoomSummary(id=room.id, name=room.name) if room else None,
        needs_install_date_for_prediction=(
            install_date is None
            and condition == HomeItemCondition.GOOD
            and recommendation == HomeItemRecommendation.OK
        ),
        deep_links=build_deep_links(item, item.property_id),
        inventory_item_id=item.inventory_item_id,
        home_asset_id=item.home_asset_id,
    )


def sort_key(row: BoardItem):
    return (not row.is_pinned, CONDITION_SEVERITY[row.condition], row.display_name.casefold())


def summarize(items: list[BoardItem], total: int) -> BoardSummary:
    """Condition buckets over the returned page; ``total`` is the filtered count across all pages.

    Items still waiting for an install date are left out of ``good``.
    """
    return BoardSummary(
        total=total,
        good=sum(
            1 for i in items
            if i.condition == HomeItemCondition.GOOD and not i.needs_install_date_for_prediction
        ),
        monitor=sum(1 for i in items if i.condition == HomeItemCondition.MONITOR),
        action_needed=sum(1 for i in items if i.condition == HomeItemCondition.ACTION_NEEDED),
    )


def group_items(items: list[BoardItem], group_by: str) -> dict[str, list[BoardItem]]:
    groups: dict[str, list[BoardItem]] = {}
    for item in items:
        if group_by == "condition":
            key = item.condition.value
        elif group_by == "category":
            key = item.category
        else:
            key = item.room.name if item.room else NO_ROOM_GROUP
        groups.setdefault(key, []).append(item)
    return groups


def list_board(
    db: Session,
    property_id: uuid.UUID,
    query: BoardQuery,
    now: datetime | None = None,
) -> BoardResponse:
    """Serve one page of the status board.

    Reconciles the registry first and recomputes statuses when none is fresh,
    so the page always reflects current upstream data.
    """
    now = now or datetime.utcnow()

    ensure_home_items(db, property_id, now=now)
    if not is_fresh(db, property_id, now):
        logger.info(f"Statuses stale for property {property_id}, recomputing")
        compute_statuses(db, property_id, now=now)

    filters = build_filters(property_id, query)

    total = db.execute(
        _joined(select(func.count(HomeItem.id)).select_from(HomeItem)).where(*filters)
    ).scalar_one()

    stmt = (
        _joined(select(HomeItem))
        .where(*filters)
        .order_by(
            HomeItemStatus.is_pinned.desc(),
            _COMPUTED_SEVERITY,
            HomeItem.created_at,
            HomeItem.id,
        )
        .offset((query.page - 1) * query.limit)
        .limit(query.limit)
        .options(
            selectinload(HomeItem.status),
            selectinload(HomeItem.room),
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
    rows = db.execute(stmt).scalars().all()

    # Store order only approximates the effective (override-aware) order
    items = sorted((project_item(row, now) for row in rows), key=sort_key)

    return BoardResponse(
        items=items,
        summary=summarize(items, total),
        pagination=Pagination(
            page=query.page,
            limit=query.limit,
            total=total,
            total_pages=math.ceil(total / query.limit),
        ),
        groups=group_items(items, query.group_by) if query.group_by else None,
    )
