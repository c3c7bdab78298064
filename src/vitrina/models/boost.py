"""
Boost promocional (tabla ``listing_boosts``), a lo sumo uno por listing.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class BoostLevel(str, Enum):
    """Nivel pago del boost, de menor a mayor."""

    BASIC = "BASIC"
    PREMIUM = "PREMIUM"
    PLATINUM = "PLATINUM"


# Orden de desempate en el browse "recommended"
BOOST_LEVEL_RANK: dict[BoostLevel, int] = {
    BoostLevel.BASIC: 1,
    BoostLevel.PREMIUM: 2,
    BoostLevel.PLATINUM: 3,
}


class PromotionBoost(BaseModel):
    """Boost con ventana de vigencia cerrada en ambos extremos."""

    listing_id: str
    level: BoostLevel
    starts_at: datetime
    ends_at: datetime

    def is_active(self, now: datetime) -> bool:
        return self.starts_at <= now <= self.ends_at

    @property
    def level_rank(self) -> int:
        return BOOST_LEVEL_RANK[self.level]
