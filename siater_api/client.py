import logging
import re
from datetime import date, timedelta
from http import HTTPStatus
from typing import Callable

import requests
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from siater_api.config import settings
from siater_api.config.sections import Feed
from siater_api.exceptions import ConfigurationError, FetchError
from siater_api.type_defs import QueryParams

logger = logging.getLogger(__name__)

FEED_PATH = "Rss.aspx"
FEED_DATE_FORMAT = "%d_%m_%Y"
_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_RETRYABLE_STATUSES = frozenset(
    {
        HTTPStatus.TOO_MANY_REQUESTS.value,
        HTTPStatus.BAD_GATEWAY.value,
        HTTPStatus.SERVICE_UNAVAILABLE.value,
        HTTPStatus.GATEWAY_TIMEOUT.value,
    }
)


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def _preview_response_body(text: str, limit: int = 200) -> str:
    compact = " ".join((text or "").split())
    return compact if len(compact) <= limit else f"{compact[:limit]}..."


class FeedClient(requests.Session):
    MAX_RETRIES = 3
    USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

    def __init__(self, feed: Feed | None = None, today: Callable[[], date] = date.today):
        super().__init__()

        self.feed = feed or settings.feed
        self._today = today
        self.headers.update(
            {
                "User-Agent": self.USER_AGENT,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "it-IT,it;q=0.9,en;q=0.8",
            }
        )

    @property
    def endpoint(self) -> str:
        host = _SCHEME_RE.sub("", (self.feed.url or "").strip()).rstrip("/")
        if not host:
            raise ConfigurationError("Feed URL is empty - check the [feed] url setting")
        if not host.lower().startswith("www."):
            host = f"www.{host}"
        scheme = "https" if self.feed.use_ssl else "http"
        return f"{scheme}://{host}/{FEED_PATH}"

    def page_params(self, offset: int) -> QueryParams:
        today = self._today()
        return {
            "Command": "GetArt",
            "FromData": (today - timedelta(days=self.feed.history_days)).strftime(FEED_DATE_FORMAT),
            "ToData": (today + timedelta(days=1)).strftime(FEED_DATE_FORMAT),
            "StartRecords": offset,
            "MaxRecords": self.feed.page_size,
            "WithMemo": "Yes",
            "PrezzoListinoX": self.feed.price_list,
            "WithEsistenze": "Yes",
            "WithSubImg": "Yes",
            "PrezzoListinoIvaCompresa": _yes_no(self.feed.prices_include_vat),
            "WithLotti": _yes_no(self.feed.variations),
            "WithFotoVar": _yes_no(self.feed.variation_images),
        }

    def sku_params(self, offset: int, batch_size: int) -> QueryParams:
        return {
            "Command": "GetArt",
            "StartRecords": offset,
            "MaxRecords": batch_size,
            "WithMemo": "Yes",
            "PrezzoListinoX": self.feed.price_list,
            "WithEsistenze": "Yes",
        }

    @retry(
        stop=stop_after_attempt(MAX_RETRIES),
        wait=wait_exponential(min=1, max=10),
        retry=retry_if_exception_type(requests.RequestException),
        reraise=True,
    )
    def request(self, method: str, url: str, *args, **kwargs) -> requests.Response:
        kwargs.setdefault("timeout", self.feed.request_timeout)
        response = super().request(method, url, *args, **kwargs)

        if response.status_code in _RETRYABLE_STATUSES:
            logger.info("Feed answered %s. Waiting and retrying...", response.status_code)
            raise requests.RequestException(f"Retryable status code: {response.status_code}")

        elif response.status_code != HTTPStatus.OK.value:
            logger.warning("Feed request failed with status code %s", response.status_code)
            raise FetchError(
                f"Received unexpected status code: {response.status_code}. "
                f"Response content: {_preview_response_body(response.text)}"
            )

        return response

    def _fetch(self, params: QueryParams) -> bytes:
        url = self.endpoint
        logger.info("Fetching feed: %s StartRecords=%s MaxRecords=%s", url, params["StartRecords"], params["MaxRecords"])
        try:
            response = self.get(url, params=params)
        except requests.RequestException as exc:
            raise FetchError(f"Feed request failed: {exc}") from exc

        body = response.content or b""
        if not body.strip():
            raise FetchError("Feed returned an empty body")
        return body

    def fetch_page(self, offset: int) -> bytes:
        return self._fetch(self.page_params(offset))

    def fetch_sku_page(self, offset: int, batch_size: int) -> bytes:
        return self._fetch(self.sku_params(offset, batch_size))
