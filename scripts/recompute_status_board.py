"""Reconcile and recompute the status board outside the request path.

Runs the registry reconciler and the inference engine for one property or for
every property, the same work a stale board read or the recompute endpoint
triggers.

Usage:
    uv run python scripts/recompute_status_board.py                      # All properties
    uv run python scripts/recompute_status_board.py --property-id <uuid> # One property
    uv run python scripts/recompute_status_board.py --stats              # Show statistics
"""

import argparse
import sys
import uuid
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from statusboard.database import Base, engine
from statusboard.inference import compute_statuses
from statusboard.models import HomeItem, HomeItemStatus, Property
from statusboard.reconciler import ensure_home_items


def recompute(session: Session, property_ids: list[uuid.UUID]) -> dict:
    stats = {
        "properties": 0,
        "assets_inferred": 0,
        "items_created": 0,
        "items_updated": 0,
        "items_evaluated": 0,
        "items_changed": 0,
    }
    for property_id in property_ids:
        reconciled = ensure_home_items(session, property_id)
        evaluated, changed = compute_statuses(session, property_id)

        stats["properties"] += 1
        stats["assets_inferred"] += reconciled.assets_inferred
        stats["items_created"] += reconciled.items_created
        stats["items_updated"] += reconciled.items_updated
        stats["items_evaluated"] += evaluated
        stats["items_changed"] += changed
    return stats


def print_stats(session: Session) -> None:
    """Show effective condition counts across all properties."""
    effective = func.coalesce(HomeItemStatus.override_condition, HomeItemStatus.computed_condition)
    rows = session.execute(
        select(effective.label("condition"), func.count(HomeItemStatus.id))
        .group_by(effective)
        .order_by(effective)
    ).all()
    overridden = session.scalar(
        select(func.count(HomeItemStatus.id)).where(HomeItemStatus.override_condition.isnot(None))
    )
    total_items = session.scalar(select(func.count(HomeItem.id)))

    print("=" * 60)
    print("STATUS BOARD STATISTICS")
    print("=" * 60)
    print(f"Registry entries:         {total_items:,}")
    for condition, count in rows:
        label = getattr(condition, "value", condition)
        print(f"  {label:<22}  {count:,}")
    print(f"With condition override:  {overridden:,}")


def main():
    parser = argparse.ArgumentParser(description="Reconcile and recompute the status board")
    parser.add_argument(
        "--property-id", type=uuid.UUID,
        help="Only process this property"
    )
    parser.add_argument(
        "--stats", action="store_true",
        help="Show statistics only"
    )
    args = parser.parse_args()

    Base.metadata.create_all(engine)

    with Session(engine) as session:
        if args.stats:
            print_stats(session)
            return

        if args.property_id:
            property_ids = [args.property_id]
        else:
            property_ids = list(session.execute(select(Property.id)).scalars())

        print(f"Processing {len(property_ids)} properties...")
        stats = recompute(session, property_ids)

        print("\n--- Results ---")
        print(f"Properties processed:     {stats['properties']:,}")
        print(f"Assets inferred:          {stats['assets_inferred']:,}")
        print(f"Items created:            {stats['items_created']:,}")
        print(f"Items updated:            {stats['items_updated']:,}")
        print(f"Items evaluated:          {stats['items_evaluated']:,}")
        print(f"Items changed:            {stats['items_changed']:,}")


if __name__ == "__main__":
    main()
