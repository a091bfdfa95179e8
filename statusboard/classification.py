"""Static lookup tables for asset types and status board categories.

Everything here is a pure function over module-level tables; nothing touches
the database.
"""

from dataclasses import dataclass

SYSTEMS = "SYSTEMS"
SAFETY = "SAFETY"
STRUCTURE = "STRUCTURE"
OTHER = "OTHER"

RISK_CATEGORIES = frozenset({SYSTEMS, SAFETY, STRUCTURE})

DEFAULT_EXPECTED_LIFE = 15

APPLIANCE_PREFIX = "MAJOR_APPLIANCE_"


@dataclass(frozen=True)
class AssetTypeConfig:
    system_type: str
    category: str
    expected_life: int  # years


# =============================================================================
# Asset type → category / expected service life
# =============================================================================

RISK_ASSET_CONFIG: tuple[AssetTypeConfig, ...] = (
    # SYSTEMS
    AssetTypeConfig("HVAC_FURNACE", SYSTEMS, 15),
    AssetTypeConfig("HVAC_HEAT_PUMP", SYSTEMS, 12),
    AssetTypeConfig("WATER_HEATER_TANK", SYSTEMS, 10),
    AssetTypeConfig("WATER_HEATER_TANKLESS", SYSTEMS, 20),
    AssetTypeConfig("ELECTRICAL_PANEL_MODERN", SYSTEMS, 40),
    AssetTypeConfig("ELECTRICAL_PANEL_OLD", SYSTEMS, 30),
    # STRUCTURE
    AssetTypeConfig("ROOF_SHINGLE", STRUCTURE, 20),
    AssetTypeConfig("ROOF_TILE_METAL", STRUCTURE, 50),
    AssetTypeConfig("FOUNDATION_CONCRETE_SLAB", STRUCTURE, 100),
    # Appliances and safety
    AssetTypeConfig("MAJOR_APPLIANCE_FRIDGE", SYSTEMS, 12),
    AssetTypeConfig("MAJOR_APPLIANCE_DISHWASHER", SYSTEMS, 10),
    AssetTypeConfig("SAFETY_SMOKE_CO_DETECTORS", SAFETY, 10),
)

_CONFIG_BY_TYPE = {cfg.system_type: cfg for cfg in RISK_ASSET_CONFIG}

# Prefix fallbacks for asset types missing from the table
_PREFIX_CATEGORIES = (
    ("SAFETY", SAFETY),
    ("FOUNDATION", STRUCTURE),
    ("ROOF", STRUCTURE),
    ("HVAC", SYSTEMS),
    ("WATER_HEATER", SYSTEMS),
    ("ELECTRICAL", SYSTEMS),
    ("PLUMBING", SYSTEMS),
    (APPLIANCE_PREFIX, SYSTEMS),
)

# Possession category → closest asset type, used for expected life only
INVENTORY_CATEGORY_ASSET_ALIASES = {
    "HVAC": "HVAC_FURNACE",
    "WATER_HEATER": "WATER_HEATER_TANK",
    "ELECTRICAL": "ELECTRICAL_PANEL_MODERN",
    "ROOF": "ROOF_SHINGLE",
    "APPLIANCE": "MAJOR_APPLIANCE_FRIDGE",
    "KITCHEN": "MAJOR_APPLIANCE_DISHWASHER",
    "SAFETY": "SAFETY_SMOKE_CO_DETECTORS",
}

# Possession categories that fold into a risk bucket; all others pass through
_INVENTORY_CATEGORY_BUCKETS = {
    "SAFETY": SAFETY,
    "ROOF_EXTERIOR": STRUCTURE,
}


def get_asset_config(asset_type: str | None) -> AssetTypeConfig | None:
    if not asset_type:
        return None
    return _CONFIG_BY_TYPE.get(asset_type)


def map_category_to_asset_type(inventory_category: str | None) -> str | None:
    if not inventory_category:
        return None
    return INVENTORY_CATEGORY_ASSET_ALIASES.get(inventory_category)


def get_expected_life(asset_type: str | None, inventory_category: str | None) -> int:
    """Expected service life in years.

    Direct asset-type lookup first, then the possession category alias, then
    DEFAULT_EXPECTED_LIFE.
    """
    cfg = get_asset_config(asset_type)
    if cfg:
        return cfg.expected_life
    cfg = get_asset_config(map_category_to_asset_type(inventory_category))
    if cfg:
        return cfg.expected_life
    return DEFAULT_EXPECTED_LIFE


def map_asset_type_to_category(asset_type: str | None) -> str:
    """Bucket an asset type into SYSTEMS / SAFETY / STRUCTURE, else OTHER."""
    if not asset_type:
        return OTHER
    cfg = get_asset_config(asset_type)
    if cfg and cfg.category in RISK_CATEGORIES:
        return cfg.category
    for prefix, category in _PREFIX_CATEGORIES:
        if asset_type.startswith(prefix):
            return category
    return OTHER


def map_inventory_category(inventory_category: str | None) -> str:
    if not inventory_category:
        return OTHER
    return _INVENTORY_CATEGORY_BUCKETS.get(inventory_category, inventory_category)


def derive_category(asset_type: str | None, inventory_category: str | None) -> str:
    """Category key stored on a registry entry.

    A possession keeps its own category even when it is tied to a building
    system, so an appliance wired to the electrical panel stays APPLIANCE.
    """
    if inventory_category:
        return map_inventory_category(inventory_category)
    if asset_type:
        return map_asset_type_to_category(asset_type)
    return OTHER


def is_inferable_system_type(system_type: str) -> bool:
    """Whether a risk-report system type may be materialized as a HomeAsset."""
    if not system_type or system_type.startswith(APPLIANCE_PREFIX):
        return False
    return map_asset_type_to_category(system_type) in RISK_CATEGORIES
