"""
Texto buscable de un listing.

Plantilla determinística campo -> línea más anclas de sinónimos
multilingües (inglés, francés, alemán, español). Las anclas ayudan tanto al
full-text como al embedding: "ascenseur" encuentra un listing con ascensor.
"""

import re
from typing import Optional

from vitrina.models import Listing

SYNONYM_ANCHORS: tuple[tuple[str, ...], ...] = (
    ("balcony", "terrace", "loggia", "patio", "terrasse", "balkon", "balcón", "terraza"),
    ("cellar", "storage", "basement", "cave", "keller", "sótano", "baulera"),
    ("lift", "elevator", "ascenseur", "aufzug", "ascensor"),
    ("parking", "garage", "carport", "stellplatz", "cochera", "estacionamiento"),
    ("furnished", "meublé", "möbliert", "amueblado", "amoblado"),
    ("pet friendly", "animaux", "haustiere", "mascotas"),
    ("sale", "vente", "verkauf", "venta", "rent", "location", "miete", "alquiler"),
)


def normalize_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def _bool_line(label: str, value: Optional[bool]) -> Optional[str]:
    if value is True:
        return f"{label}: yes"
    if value is False:
        return f"{label}: no"
    return None


def build_search_text(listing: Listing) -> str:
    """
    Construye el texto buscable de un listing.

    La salida depende solo de los campos del listing (mismo input, mismo
    texto), condición necesaria para que re-indexar sea idempotente.
    """
    lines: list[Optional[str]] = []

    # Identidad
    lines.append(f"TITLE: {normalize_whitespace(listing.title)}")
    lines.append(f"COMMUNE: {listing.commune}")
    if listing.kind:
        lines.append(f"LISTING_TYPE: {listing.kind}")
    if listing.property_type:
        lines.append(f"PROPERTY_TYPE: {listing.property_type}")
    if listing.address_hint:
        lines.append(f"AREA: {normalize_whitespace(listing.address_hint)}")
    if listing.description:
        lines.append(f"DESCRIPTION: {normalize_whitespace(listing.description)}")

    # Specs
    specs = [
        ("PRICE_EUR", listing.price),
        ("SIZE_SQM", listing.size_sqm),
        ("BEDROOMS", listing.bedrooms),
        ("BATHROOMS", listing.bathrooms),
        ("YEAR_BUILT", listing.year_built),
        ("FLOOR", listing.floor),
        ("TOTAL_FLOORS", listing.total_floors),
        ("CONDITION", listing.condition),
        ("ENERGY_CLASS", listing.energy_class),
        ("HEATING_TYPE", listing.heating_type),
    ]
    lines.extend(f"{label}: {value}" for label, value in specs if value is not None)

    if listing.available_from:
        lines.append(f"AVAILABLE_FROM: {listing.available_from.isoformat()}")

    # Alquiler
    rent = [
        ("MONTHLY_CHARGES_EUR", listing.charges_monthly),
        ("DEPOSIT_EUR", listing.deposit),
        ("AGENCY_FEES_EUR", listing.fees_agency),
    ]
    lines.extend(f"{label}: {value}" for label, value in rent if value is not None)

    # Amenities
    lines.extend(
        [
            _bool_line("FURNISHED", listing.furnished),
            _bool_line("PETS_ALLOWED", listing.pets_allowed),
            _bool_line("ELEVATOR", listing.has_elevator),
            _bool_line("BALCONY", listing.has_balcony),
            _bool_line("TERRACE", listing.has_terrace),
            _bool_line("GARDEN", listing.has_garden),
            _bool_line("CELLAR", listing.has_cellar),
        ]
    )
    if listing.parking_spaces > 0:
        lines.append(f"PARKING_SPACES: {listing.parking_spaces}")

    if listing.agency_name:
        lines.append(f"AGENCY: {normalize_whitespace(listing.agency_name)}")

    lines.extend(f"SYNONYMS: {' '.join(group)}" for group in SYNONYM_ANCHORS)

    return "\n".join(line for line in lines if line)
