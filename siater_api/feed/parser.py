import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_CEILING
from enum import IntEnum
from typing import Iterator

from siater_api.config import settings
from siater_api.config.sections import Feed
from siater_api.exceptions import RecordParseError
from siater_api.feed.record import FeedRecord
from siater_api.feed.sanitize import clean_rich_text, strip_markup, to_decimal, to_integer
from siater_api.feed.schema import (
    FIELD_DELIMITER,
    PLACEHOLDER_IMAGE_MARKER,
    RECORD_DELIMITER,
    SKU_COLUMN,
    VARIATION_LOT_SENTINEL,
    FeedSchema,
    FieldType,
)
from siater_api.type_defs import FieldValue

logger = logging.getLogger(__name__)

VAT_MULTIPLIER = Decimal("1.22")
CATEGORY_SEPARATOR = "\\"
BRAND_SEPARATOR = "/"
GALLERY_FIELDS = ("subfoto1", "subfoto2", "subfoto3", "subfoto4")
VARIATION_IMAGE_FIELDS = tuple(f"varimagefoto{index}" for index in range(1, 9))
_CENT = Decimal("0.01")


class PriceRounding(IntEnum):
    NONE = 0
    CEIL_INTEGER = 1
    CEIL_CENTS = 2
    HALF_UNIT = 3


def _ceil_amount(amount: Decimal, mode: PriceRounding) -> Decimal:
    if mode is PriceRounding.CEIL_INTEGER:
        return amount.to_integral_value(rounding=ROUND_CEILING)
    if mode is PriceRounding.CEIL_CENTS:
        return amount.quantize(_CENT, rounding=ROUND_CEILING)
    if mode is PriceRounding.HALF_UNIT:
        return (amount * 2).to_integral_value(rounding=ROUND_CEILING) / 2
    return amount


def round_price(price: float, mode: PriceRounding | int) -> float:
    """Round a price upwards according to ``mode``.

    ``HALF_UNIT`` lifts the price to the next multiple of 0.50 (19.24 -> 19.50).
    """

    mode = PriceRounding(mode)
    if mode is PriceRounding.NONE:
        return price
    # str() keeps float noise (19.31 * 100 == 1930.9999...) out of the ceiling.
    return float(_ceil_amount(Decimal(str(price)), mode))


def is_placeholder_image(url: str) -> bool:
    return PLACEHOLDER_IMAGE_MARKER in url


def decode_body(raw: bytes | str) -> str:
    if isinstance(raw, str):
        return raw
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("cp1252", errors="replace")


def split_records(text: str) -> list[str]:
    return [record.strip() for record in text.split(RECORD_DELIMITER) if record.strip()]


@dataclass
class ParsedPage:
    records: list[FeedRecord] = field(default_factory=list)
    raw_count: int = 0

    @property
    def dropped(self) -> int:
        return self.raw_count - len(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[FeedRecord]:
        return iter(self.records)


@dataclass
class SkuBatch:
    codes: list[str] = field(default_factory=list)
    row_count: int = 0


def parse_sku_batch(raw: bytes | str) -> SkuBatch:
    """Extract supplier codes from one page of the SKU-only feed.

    The first record is a header naming the columns; the code column is located
    by name and falls back to the first column.
    """

    lines = split_records(decode_body(raw))
    if len(lines) < 2:
        return SkuBatch()

    header = [column.strip() for column in lines[0].split(FIELD_DELIMITER)]
    code_index = header.index(SKU_COLUMN) if SKU_COLUMN in header else 0

    batch = SkuBatch(row_count=len(lines) - 1)
    for line in lines[1:]:
        fields = line.split(FIELD_DELIMITER)
        if code_index < len(fields) and fields[code_index].strip():
            batch.codes.append(fields[code_index].strip())
    return batch


class FeedParser:
    def __init__(self, feed: Feed | None = None) -> None:
        self.feed = feed or settings.feed

    @property
    def schema(self) -> FeedSchema:
        return FeedSchema.select(
            variations=bool(self.feed.variations),
            variation_images=bool(self.feed.variation_images),
        )

    def parse(self, raw: bytes | str) -> ParsedPage:
        raw_records = split_records(decode_body(raw))
        page = ParsedPage(raw_count=len(raw_records))
        if not raw_records:
            logger.warning("No records found in feed")
            return page

        schema = self.schema
        logger.info("Found %s records in feed (schema=%s)", len(raw_records), schema.name)
        for raw_record in raw_records:
            try:
                record = self.parse_record(raw_record, schema)
            except RecordParseError as exc:
                logger.debug("Dropping feed record: %s", exc)
                continue
            if record is not None:
                page.records.append(record)

        if page.dropped:
            logger.info("Dropped %s of %s feed records", page.dropped, page.raw_count)
        return page

    def parse_record(self, raw_record: str, schema: FeedSchema) -> FeedRecord | None:
        fields = raw_record.split(FIELD_DELIMITER)
        if len(fields) < schema.width:
            raise RecordParseError(
                f"Field count mismatch: got {len(fields)}, expected {schema.width}"
            )

        values: dict[str, FieldValue] = {}
        for index, (field_name, field_type) in enumerate(schema.fields):
            values[field_name] = self.sanitize_field(field_type, fields[index].strip())

        if values.get("escludi"):
            logger.debug("Skipping excluded product %s", values.get("cod"))
            return None

        if not values.get("cod"):
            raise RecordParseError("Record without product code")

        return self.apply_computed_fields(values)

    @staticmethod
    def sanitize_field(field_type: FieldType, value: str) -> FieldValue:
        if field_type is FieldType.DECIMAL:
            return to_decimal(value)
        if field_type is FieldType.INTEGER:
            return to_integer(value)
        if field_type is FieldType.PLAIN_TEXT:
            return strip_markup(value)
        if field_type is FieldType.RICH_TEXT:
            return clean_rich_text(value)
        return value

    def apply_computed_fields(self, values: dict[str, FieldValue]) -> FeedRecord:
        record = FeedRecord(values=values)
        rounding = PriceRounding(self.feed.price_rounding or 0)

        stock = values.get(self.feed.stock_type, values.get("esfisica", 0.0))
        record.stock = float(stock) if isinstance(stock, (int, float)) else 0.0

        # Price arithmetic stays in Decimal so exact amounts are not ceiled up a cent.
        price = Decimal(str(record.price))
        if self.feed.add_vat and price > 0:
            price = price * VAT_MULTIPLIER
        if price > 0:
            price = _ceil_amount(price, rounding)
        values["prezzo"] = float(price)

        discount = Decimal(str(record.number("sconto")))
        if self.feed.apply_discount and discount > 0:
            sale_price = price * (1 - discount / 100)
            record.sale_price = float(_ceil_amount(sale_price, rounding))

        categories = record.text("class")
        if categories:
            record.categories = [
                part.strip() for part in categories.split(CATEGORY_SEPARATOR) if part.strip()
            ]

        if record.brand and self.feed.normalize_brand:
            values["marca"] = record.brand.split(BRAND_SEPARATOR, 1)[0].strip()

        record.gallery = self._image_list(values, GALLERY_FIELDS)
        record.variation_images = self._image_list(values, VARIATION_IMAGE_FIELDS)

        record.is_variation = values.get("lotti") == VARIATION_LOT_SENTINEL
        record.has_variation_images = bool(record.variation_images)
        return record

    @staticmethod
    def _image_list(values: dict[str, FieldValue], field_names: tuple[str, ...]) -> list[str]:
        urls = []
        for field_name in field_names:
            url = values.get(field_name)
            if isinstance(url, str) and url and not is_placeholder_image(url):
                urls.append(url)
        return urls
