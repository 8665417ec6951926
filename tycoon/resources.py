"""Resource definitions for the medieval tycoon simulation."""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional


class Resource(str, Enum):
    """Enumeration of all resource keys used in the game."""

    GOLD = "gold"
    WHEAT = "wheat"
    STONE = "stone"
    WOOD = "wood"
    FLOUR = "flour"
    PLANKS = "planks"
    CUT_STONE = "cut_stone"
    CHARCOAL = "charcoal"
    BREAD = "bread"
    FURNITURE = "furniture"
    STONE_BLOCKS = "stone_blocks"
    TOOLS = "tools"


RAW = "raw"
INTERMEDIATE = "intermediate"
PRODUCT = "product"
CURRENCY = "currency"

CATEGORY_ORDER: List[str] = [RAW, INTERMEDIATE, PRODUCT, CURRENCY]


@dataclass(frozen=True)
class ResourceDefinition:
    """Display metadata plus the base storage used by the cap calculator."""

    id: Resource
    name: str
    emoji: str
    category: str
    sell_value: Optional[float]
    base_storage: float
    order: int

    @property
    def is_currency(self) -> bool:
        return self.category == CURRENCY

    @property
    def is_tradeable(self) -> bool:
        return self.sell_value is not None


def _definition(
    resource: Resource,
    name: str,
    emoji: str,
    category: str,
    sell_value: Optional[float],
    base_storage: float,
    order: int,
) -> ResourceDefinition:
    return ResourceDefinition(
        id=resource,
        name=name,
        emoji=emoji,
        category=category,
        sell_value=sell_value,
        base_storage=float(base_storage),
        order=order,
    )


RESOURCE_DEFINITIONS: Dict[Resource, ResourceDefinition] = {
    Resource.WHEAT: _definition(Resource.WHEAT, "Wheat", "🌾", RAW, 2, 100, 10),
    Resource.STONE: _definition(Resource.STONE, "Stone", "🪨", RAW, 3, 100, 11),
    Resource.WOOD: _definition(Resource.WOOD, "Wood", "🪵", RAW, 3, 100, 12),
    Resource.FLOUR: _definition(Resource.FLOUR, "Flour", "🥡", INTERMEDIATE, 5, 100, 20),
    Resource.PLANKS: _definition(Resource.PLANKS, "Planks", "🪜", INTERMEDIATE, 6, 100, 21),
    Resource.CUT_STONE: _definition(
        Resource.CUT_STONE, "Cut Stone", "🧱", INTERMEDIATE, 6, 100, 22
    ),
    Resource.CHARCOAL: _definition(
        Resource.CHARCOAL, "Charcoal", "⚫", INTERMEDIATE, 8, 50, 23
    ),
    Resource.BREAD: _definition(Resource.BREAD, "Bread", "🍞", PRODUCT, 10, 100, 30),
    Resource.FURNITURE: _definition(
        Resource.FURNITURE, "Furniture", "🪑", PRODUCT, 12, 50, 31
    ),
    Resource.STONE_BLOCKS: _definition(
        Resource.STONE_BLOCKS, "Stone Blocks", "🏛️", PRODUCT, 12, 50, 32
    ),
    Resource.TOOLS: _definition(Resource.TOOLS, "Tools", "🔧", PRODUCT, 18, 30, 33),
    Resource.GOLD: _definition(Resource.GOLD, "Gold", "💰", CURRENCY, None, math.inf, 100),
}

ALL_RESOURCES: List[Resource] = sorted(
    RESOURCE_DEFINITIONS, key=lambda resource: RESOURCE_DEFINITIONS[resource].order
)

STARTING_RESOURCES: Dict[Resource, float] = {Resource.GOLD: 50.0}


_RESOURCE_LOOKUP: Dict[str, Resource] = {}
for _resource in ALL_RESOURCES:
    _RESOURCE_LOOKUP[_resource.value] = _resource
    _RESOURCE_LOOKUP[_resource.name.lower()] = _resource
    _RESOURCE_LOOKUP[RESOURCE_DEFINITIONS[_resource].name.lower()] = _resource


def resource_from_id(identifier: str) -> Resource:
    """Return the resource associated with ``identifier``.

    The lookup accepts the canonical identifier, the enum name or the display
    name regardless of capitalisation. A :class:`KeyError` is raised if the
    identifier is unknown.
    """

    resource = _RESOURCE_LOOKUP.get(str(identifier).strip().lower())
    if resource is None:
        raise KeyError(f"Unknown resource: {identifier}")
    return resource


def normalise_resource(value: Resource | str) -> Resource:
    """Coerce ``value`` into a :class:`Resource` instance."""

    if isinstance(value, Resource):
        return value
    return resource_from_id(value)


def normalise_mapping(
    mapping: Optional[Mapping[Resource | str, float]],
) -> Dict[Resource, float]:
    """Return a new mapping with normalised resource keys."""

    if not mapping:
        return {}
    return {normalise_resource(key): float(amount) for key, amount in mapping.items()}


def ensure_resources(iterable: Iterable[Resource | str]) -> List[Resource]:
    return [normalise_resource(entry) for entry in iterable]


def get_definition(resource: Resource | str) -> ResourceDefinition:
    return RESOURCE_DEFINITIONS[normalise_resource(resource)]


def resource_name(resource: Resource | str) -> str:
    return get_definition(resource).name


def sorted_resources(category: Optional[str] = None) -> List[Resource]:
    """Resources in display order, optionally restricted to one category."""

    if category is None:
        return sorted(
            ALL_RESOURCES,
            key=lambda res: (
                CATEGORY_ORDER.index(RESOURCE_DEFINITIONS[res].category),
                RESOURCE_DEFINITIONS[res].order,
            ),
        )
    return [res for res in ALL_RESOURCES if RESOURCE_DEFINITIONS[res].category == category]


def tradeable_resources() -> List[Resource]:
    return [res for res in ALL_RESOURCES if RESOURCE_DEFINITIONS[res].is_tradeable]


def storable_resources() -> List[Resource]:
    """Resources with a finite base storage, i.e. everything but currency."""

    return [res for res in ALL_RESOURCES if math.isfinite(RESOURCE_DEFINITIONS[res].base_storage)]


def default_resources() -> Dict[Resource, float]:
    """Starting ledger: every resource present, gold seeded."""

    return {res: float(STARTING_RESOURCES.get(res, 0.0)) for res in ALL_RESOURCES}


def to_payload(mapping: Mapping[Resource, float]) -> Dict[str, float]:
    return {normalise_resource(key).value: float(amount) for key, amount in mapping.items()}


__all__ = [
    "ALL_RESOURCES",
    "CATEGORY_ORDER",
    "RESOURCE_DEFINITIONS",
    "Resource",
    "ResourceDefinition",
    "STARTING_RESOURCES",
    "default_resources",
    "ensure_resources",
    "get_definition",
    "normalise_mapping",
    "normalise_resource",
    "resource_from_id",
    "resource_name",
    "sorted_resources",
    "storable_resources",
    "to_payload",
    "tradeable_resources",
]
