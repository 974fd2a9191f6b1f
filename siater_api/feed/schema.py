from __future__ import annotations

from enum import Enum

RECORD_DELIMITER = "{||}"
FIELD_DELIMITER = "{|}"

# Header name of the code column in the SKU-only feed.
SKU_COLUMN = "Codice"

# Supplier URLs containing this marker point at a "no image available" picture.
PLACEHOLDER_IMAGE_MARKER = "img_non_disponibile"

# Lot count the supplier uses to flag a size/color variation row.
VARIATION_LOT_SENTINEL = -1


class FieldType(Enum):
    TEXT = "text"
    DECIMAL = "decimal"
    INTEGER = "integer"
    PLAIN_TEXT = "plain_text"
    RICH_TEXT = "rich_text"


_T = FieldType

_PRODUCT_IMAGES = (
    ("cod", _T.TEXT),
    ("foto", _T.TEXT),
    ("subfoto1", _T.TEXT),
    ("subfoto2", _T.TEXT),
    ("subfoto3", _T.TEXT),
    ("subfoto4", _T.TEXT),
)

_VARIATION_IMAGES = tuple((f"varimagefoto{index}", _T.TEXT) for index in range(1, 9))

_DESCRIPTIVE = (
    ("id", _T.INTEGER),
    ("descr", _T.PLAIN_TEXT),
    ("sku", _T.TEXT),
    ("class", _T.TEXT),
    ("fascia", _T.TEXT),
    ("marca", _T.TEXT),
    ("memo", _T.RICH_TEXT),
    ("prezzo", _T.DECIMAL),
    ("sconto", _T.DECIMAL),
    ("sconto2", _T.DECIMAL),
    ("peso", _T.DECIMAL),
    ("escludi", _T.INTEGER),
)

_STOCK = (
    ("esfisica", _T.DECIMAL),
    ("esreale", _T.DECIMAL),
    ("esteorica", _T.DECIMAL),
)

_LOTS = (
    ("lotti", _T.INTEGER),
    ("variante1", _T.TEXT),
    ("variante2", _T.TEXT),
    ("variante3", _T.TEXT),
)

_GROUPING = (
    ("gruppov", _T.TEXT),
    ("nsrif", _T.TEXT),
)


class FeedSchema(Enum):
    """Positional layouts of a feed record.

    Each member is an ordered tuple of ``(field_name, FieldType)`` pairs; the
    position in the tuple is the column index in the raw record.
    """

    SIMPLE = _PRODUCT_IMAGES + _DESCRIPTIVE + _STOCK
    VARIABLE = _PRODUCT_IMAGES + _DESCRIPTIVE + _LOTS + _STOCK + _GROUPING
    VARIABLE_WITH_IMAGES = (
        _PRODUCT_IMAGES + _VARIATION_IMAGES + _DESCRIPTIVE + _LOTS + _STOCK + _GROUPING
    )

    @classmethod
    def select(cls, *, variations: bool, variation_images: bool) -> FeedSchema:
        if not variations:
            return cls.SIMPLE
        if variation_images:
            return cls.VARIABLE_WITH_IMAGES
        return cls.VARIABLE

    @property
    def fields(self) -> tuple[tuple[str, FieldType], ...]:
        return self.value

    @property
    def width(self) -> int:
        return len(self.value)

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(name for name, _field_type in self.value)
