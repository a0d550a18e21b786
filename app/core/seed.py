"""
Demo data for local runs (SEED_DEMO_DATA=true).

The coordinates below are sample city locations so the map has something
to show; they are not real base locations and nothing in the ledger
depends on them.
"""

import logging

from app.core.errors import Conflict
from app.modules.catalog.service import CatalogService

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = {"id": "system", "username": "system", "role": "admin", "base_code": None}

DEMO_BASES = [
    {"base_code": "ALPHA", "location": {"lat": 28.6139, "lng": 77.2090}},
    {"base_code": "BRAVO", "location": {"lat": 19.0760, "lng": 72.8777}},
    {"base_code": "CHARLIE", "location": {"lat": 12.9716, "lng": 77.5946}},
    {"base_code": "DELTA", "location": None},
]

DEMO_EQUIPMENT = [
    {"code": "RIFLE_556", "name": "Rifle 5.56mm", "category": "weapons", "unit": "unit"},
    {"code": "AMMO_556", "name": "Ammunition 5.56mm", "category": "ammunition", "unit": "round"},
    {"code": "VEHICLE_LTV", "name": "Light Tactical Vehicle", "category": "vehicles", "unit": "unit"},
    {"code": "RADIO_VHF", "name": "VHF Radio Set", "category": "communications", "unit": "unit"},
]


def seed_demo_data(store) -> None:
    catalog = CatalogService(store)

    for base in DEMO_BASES:
        try:
            catalog.create_base(base, SYSTEM_ACTOR)
        except Conflict:
            logger.debug("Base %s already present", base["base_code"])

    for equipment in DEMO_EQUIPMENT:
        try:
            catalog.create_equipment(equipment, SYSTEM_ACTOR)
        except Conflict:
            logger.debug("Equipment %s already present", equipment["code"])

    logger.info("Demo bases and equipment catalog seeded")
