import logging

from siater_api.config.serializable import Serializable

logger = logging.getLogger(__name__)

STOCK_TYPES = ("esfisica", "esreale", "esteorica")


class Feed(Serializable):
    """Supplier feed endpoint and the per-field transforms applied to it."""

    url: str = ""
    use_ssl: bool = True
    page_size: int = 300
    price_list: int = 1
    prices_include_vat: bool = False
    request_timeout: int = 120
    history_days: int = 5000

    variations: bool = False
    variation_images: bool = False
    only_with_variation_images: bool = False

    stock_type: str = "esfisica"
    add_vat: bool = False
    price_rounding: int = 0
    apply_discount: bool = False
    normalize_brand: bool = False

    sync_categories: bool = True
    update_images: bool = False

    def validate(self) -> None:
        super().validate()
        if self.stock_type not in STOCK_TYPES:
            logger.warning("Unknown stock_type %r, falling back to esfisica", self.stock_type)
            self.stock_type = "esfisica"
