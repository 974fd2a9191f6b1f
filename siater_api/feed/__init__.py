from .parser import FeedParser, ParsedPage, PriceRounding, SkuBatch, parse_sku_batch, round_price
from .record import FeedRecord
from .schema import FeedSchema, FieldType

__all__ = [
    "FeedParser",
    "FeedRecord",
    "FeedSchema",
    "FieldType",
    "ParsedPage",
    "PriceRounding",
    "SkuBatch",
    "parse_sku_batch",
    "round_price",
]
