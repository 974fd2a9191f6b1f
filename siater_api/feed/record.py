from __future__ import annotations

from dataclasses import dataclass, field

from siater_api.type_defs import FieldValue


@dataclass
class FeedRecord:
    """One sanitized product line of the supplier feed plus its derived fields."""

    values: dict[str, FieldValue]
    stock: float = 0.0
    sale_price: float | None = None
    categories: list[str] = field(default_factory=list)
    gallery: list[str] = field(default_factory=list)
    variation_images: list[str] = field(default_factory=list)
    is_variation: bool = False
    has_variation_images: bool = False

    def text(self, name: str) -> str:
        value = self.values.get(name, "")
        return value if isinstance(value, str) else str(value)

    def number(self, name: str) -> float:
        value = self.values.get(name, 0.0)
        return float(value) if isinstance(value, (int, float)) else 0.0

    @property
    def code(self) -> str:
        return self.text("cod")

    @property
    def name(self) -> str:
        return self.text("descr")

    @property
    def description(self) -> str:
        return self.text("memo")

    @property
    def price(self) -> float:
        return self.number("prezzo")

    @property
    def weight(self) -> float:
        return self.number("peso")

    @property
    def brand(self) -> str:
        return self.text("marca")

    @property
    def image(self) -> str:
        return self.text("foto")

    @property
    def group_code(self) -> str:
        return self.text("gruppov")

    @property
    def stock_quantity(self) -> int:
        return int(self.stock)

    @property
    def in_stock(self) -> bool:
        return self.stock > 0
