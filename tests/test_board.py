"""
tests/test_board.py - Board projection: overrides, filters, ordering, grouping, pagination.
"""
from datetime import timedelta

from conftest import NOW, years_ago
from sqlalchemy import select

from statusboard.board import build_deep_links, list_board
from statusboard.inference import compute_statuses
from statusboard.models import HomeItem, HomeItemStatus, HomeItemStatusEvent
from statusboard.overrides import patch_item_status
from statusboard.reconciler import ensure_home_items
from statusboard.schemas import (
    BoardQuery,
    HomeItemCondition,
    HomeItemEventType,
    HomeItemRecommendation,
    StatusPatch,
    WarrantyStatus,
)


def board(db, prop, **query):
    return list_board(db, prop.id, BoardQuery(**query), now=NOW)


def by_name(response):
    return {item.display_name: item for item in response.items}


def status_of(db, inventory_item):
    return db.execute(
        select(HomeItemStatus)
        .join(HomeItem, HomeItemStatus.home_item_id == HomeItem.id)
        .where(HomeItem.inventory_item_id == inventory_item.id)
    ).scalar_one()


def home_item_id(db, inventory_item):
    return db.execute(
        select(HomeItem.id).where(HomeItem.inventory_item_id == inventory_item.id)
    ).scalar_one()


# =============================================================================
# PROJECTION
# =============================================================================

class TestProjection:
    def test_override_wins_over_computed(self, db, prop, add_inventory):
        sofa = add_inventory("Old sofa", "FURNITURE", installed_on=years_ago(16))
        board(db, prop)

        status = status_of(db, sofa)
        status.override_condition = HomeItemCondition.GOOD
        status.override_recommendation = HomeItemRecommendation.OK
        db.commit()

        row = by_name(board(db, prop))["Old sofa"]
        assert row.condition == HomeItemCondition.GOOD
        assert row.recommendation == HomeItemRecommendation.OK
        assert row.computed_condition == HomeItemCondition.ACTION_NEEDED
        assert row.computed_recommendation == HomeItemRecommendation.REPLACE_SOON
        assert [r.code.value for r in row.computed_reasons] == ["PAST_EOL"]

    def test_row_fields(self, db, prop, kitchen, add_inventory, add_asset, add_task, add_warranty):
        asset = add_asset("HVAC_FURNACE", installation_year=2020)
        add_task(asset, next_due_date=(NOW + timedelta(days=30)).date())
        add_warranty((NOW + timedelta(days=20)).date(), home_asset=asset)
        add_inventory("Thermostat", "HVAC", room_id=kitchen.id, home_asset_id=asset.id)

        rows = by_name(board(db, prop))
        thermostat = rows["Thermostat"]
        assert thermostat.category == "HVAC"
        assert thermostat.room.name == "Kitchen"
        assert thermostat.pending_maintenance == 1
        assert thermostat.warranty_status == WarrantyStatus.EXPIRING_SOON
        assert thermostat.age_years == 6.5
        assert thermostat.condition == HomeItemCondition.MONITOR
        # Inventory-backed rows carry only their own source reference
        assert thermostat.inventory_item_id is not None
        assert thermostat.home_asset_id is None

        furnace = rows["HVAC FURNACE"]
        assert furnace.category == "SYSTEMS"
        assert furnace.room is None
        assert furnace.inventory_item_id is None

    def test_missing_install_date_flag_not_counted_as_good(self, db, prop, add_inventory):
        add_inventory("Mystery box", "OTHER")
        add_inventory("New TV", "ELECTRONICS", purchased_on=years_ago(1))

        response = board(db, prop)
        rows = by_name(response)
        assert rows["Mystery box"].needs_install_date_for_prediction
        assert rows["Mystery box"].age_years is None
        assert not rows["New TV"].needs_install_date_for_prediction
        assert response.summary.total == 2
        assert response.summary.good == 1

    def test_deep_links(self, db, prop, kitchen, add_inventory):
        inv = add_inventory("Blender", room_id=kitchen.id)
        ensure_home_items(db, prop.id, now=NOW)
        item = db.execute(select(HomeItem)).scalar_one()

        links = build_deep_links(item, prop.id)
        assert f"openItemId={inv.id}" in links["view_item"]
        assert links["replace_repair"].endswith(f"/inventory/items/{inv.id}/replace-repair")
        assert links["view_room"].startswith(f"/dashboard/properties/{prop.id}/rooms/{kitchen.id}")
        assert "view_asset" not in links
        assert links["maintenance"] == f"/dashboard/maintenance?propertyId={prop.id}&from=status-board"


# =============================================================================
# FILTERS AND ORDERING
# =============================================================================

class TestFiltersAndOrdering:
    def test_pinned_item_sorts_first_with_one_pin_event(self, db, prop, add_inventory):
        add_inventory("Old sofa", "FURNITURE", installed_on=years_ago(16))
        lamp = add_inventory("Lamp", "ELECTRONICS", installed_on=years_ago(1))
        board(db, prop)
        assert board(db, prop).items[0].display_name == "Old sofa"

        lamp_id = home_item_id(db, lamp)
        patch_item_status(db, lamp_id, prop.id, "user-1", StatusPatch(is_pinned=True))

        items = board(db, prop).items
        assert items[0].display_name == "Lamp"
        assert items[0].is_pinned

        events = db.execute(
            select(HomeItemStatusEvent).where(
                HomeItemStatusEvent.home_item_id == lamp_id,
                HomeItemStatusEvent.event_type == HomeItemEventType.PIN,
            )
        ).scalars().all()
        assert len(events) == 1
        assert events[0].actor_user_id == "user-1"

    def test_severity_then_name_order(self, db, prop, add_inventory):
        add_inventory("beta chair", "FURNITURE", installed_on=years_ago(1))
        add_inventory("Alpha chair", "FURNITURE", installed_on=years_ago(1))
        add_inventory("Worn rug", "FURNITURE", installed_on=years_ago(13))
        add_inventory("Ancient bed", "FURNITURE", installed_on=years_ago(20))

        names = [i.display_name for i in board(db, prop).items]
        assert names == ["Ancient bed", "Worn rug", "Alpha chair", "beta chair"]

    def test_condition_filter_uses_override(self, db, prop, add_inventory):
        rug = add_inventory("Worn rug", "FURNITURE", installed_on=years_ago(13))
        add_inventory("Frayed curtain", "FURNITURE", installed_on=years_ago(13))
        board(db, prop)

        status = status_of(db, rug)
        assert status.computed_condition == HomeItemCondition.MONITOR
        status.override_condition = HomeItemCondition.GOOD
        db.commit()

        monitor = board(db, prop, condition=HomeItemCondition.MONITOR)
        assert [i.display_name for i in monitor.items] == ["Frayed curtain"]

        good = board(db, prop, condition=HomeItemCondition.GOOD)
        assert [i.display_name for i in good.items] == ["Worn rug"]

    def test_hidden_items_excluded_by_default(self, db, prop, add_inventory):
        junk = add_inventory("Broken fan", "ELECTRONICS", installed_on=years_ago(2))
        add_inventory("Desk", "FURNITURE", installed_on=years_ago(2))
        board(db, prop)
        patch_item_status(db, home_item_id(db, junk), prop.id, "user-1", StatusPatch(is_hidden=True))

        assert set(by_name(board(db, prop))) == {"Desk"}
        assert set(by_name(board(db, prop, include_hidden=True))) == {"Desk", "Broken fan"}

    def test_pinned_only(self, db, prop, add_inventory):
        desk = add_inventory("Desk", "FURNITURE")
        add_inventory("Chair", "FURNITURE")
        board(db, prop)
        patch_item_status(db, home_item_id(db, desk), prop.id, "user-1", StatusPatch(is_pinned=True))

        assert [i.display_name for i in board(db, prop, pinned_only=True).items] == ["Desk"]

    def test_search_matches_names_and_asset_types(self, db, prop, add_inventory, add_asset):
        add_inventory("Leather Sofa", "FURNITURE")
        add_asset("WATER_HEATER_TANK", installation_year=2019)
        add_asset("ROOF_SHINGLE", installation_year=2019)

        assert set(by_name(board(db, prop, q="sofa"))) == {"Leather Sofa"}
        assert set(by_name(board(db, prop, q="water heater"))) == {"WATER HEATER TANK"}
        assert set(by_name(board(db, prop, q="structure"))) == {"ROOF SHINGLE"}
        assert board(db, prop, q="100%").items == []

    def test_category_filter(self, db, prop, add_inventory, add_asset):
        add_inventory("Couch", "FURNITURE")
        add_asset("SAFETY_SMOKE_CO_DETECTORS")

        response = board(db, prop, category_key="SAFETY")
        assert [i.display_name for i in response.items] == ["SAFETY SMOKE CO DETECTORS"]


# =============================================================================
# GROUPING AND PAGINATION
# =============================================================================

class TestGroupingAndPagination:
    def test_groups_partition_the_page(self, db, prop, kitchen, add_inventory, add_asset):
        add_inventory("Toaster", room_id=kitchen.id, installed_on=years_ago(1))
        add_inventory("Old sofa", "FURNITURE", installed_on=years_ago(16))
        add_asset("HVAC_FURNACE", installation_year=2021)

        by_room = board(db, prop, group_by="room")
        assert set(by_room.groups) == {"Kitchen", "No Room"}
        assert sum(len(g) for g in by_room.groups.values()) == len(by_room.items)

        by_condition = board(db, prop, group_by="condition")
        assert set(by_condition.groups) == {"GOOD", "ACTION_NEEDED"}
        assert [i.display_name for i in by_condition.groups["ACTION_NEEDED"]] == ["Old sofa"]

        by_category = board(db, prop, group_by="category")
        assert set(by_category.groups) == {"APPLIANCE", "FURNITURE", "SYSTEMS"}

        assert board(db, prop).groups is None

    def test_pages(self, db, prop, add_inventory):
        for name in ("Chair A", "Chair B", "Chair C"):
            add_inventory(name, "FURNITURE", installed_on=years_ago(1))

        first = board(db, prop, limit=2)
        assert len(first.items) == 2
        assert first.pagination.total == 3
        assert first.pagination.total_pages == 2
        assert first.summary.total == 3
        # Buckets count the page, total counts every match
        assert first.summary.good == 2

        second = board(db, prop, limit=2, page=2)
        assert len(second.items) == 1
        assert second.summary.good == 1
        names = {i.display_name for i in first.items + second.items}
        assert names == {"Chair A", "Chair B", "Chair C"}

        assert board(db, prop, limit=2, page=5).items == []

    def test_empty_board(self, db, prop):
        response = board(db, prop)
        assert response.items == []
        assert response.pagination.total_pages == 0
        assert response.summary.total == 0


# =============================================================================
# FRESHNESS
# =============================================================================

class TestFreshness:
    def test_fresh_statuses_are_not_recomputed(self, db, prop, add_inventory):
        add_inventory("Desk", "FURNITURE", installed_on=years_ago(2))
        earlier = NOW - timedelta(hours=2)
        ensure_home_items(db, prop.id, now=earlier)
        compute_statuses(db, prop.id, now=earlier)

        row = board(db, prop).items[0]
        assert row.computed_at == earlier

    def test_stale_statuses_are_recomputed(self, db, prop, add_inventory):
        add_inventory("Desk", "FURNITURE", installed_on=years_ago(2))
        earlier = NOW - timedelta(hours=30)
        ensure_home_items(db, prop.id, now=earlier)
        compute_statuses(db, prop.id, now=earlier)

        row = board(db, prop).items[0]
        assert row.computed_at == NOW

    def test_new_upstream_rows_appear_without_recompute(self, db, prop, add_inventory):
        add_inventory("Desk", "FURNITURE", installed_on=years_ago(2))
        board(db, prop)
        add_inventory("Shelf", "FURNITURE", installed_on=years_ago(2))

        rows = by_name(board(db, prop))
        assert set(rows) == {"Desk", "Shelf"}
        # Registered but not yet evaluated; still within the freshness window
        assert rows["Shelf"].computed_at is None
        assert rows["Shelf"].condition == HomeItemCondition.GOOD
