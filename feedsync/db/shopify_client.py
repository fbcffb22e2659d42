"""
Shopify REST client for catalog reads.

This module provides the authenticated client used by the sync engine:
adaptive rate limiting driven by the X-Shopify-Shop-Api-Call-Limit header,
since_id and page-number pagination, and bounded backoff on HTTP 429.
"""

import asyncio
import logging
import re
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import aiohttp
from aiohttp import ClientTimeout

from feedsync.core.config import get_settings
from feedsync.core.logging_config import log_api_call
from feedsync.schemas.sync_schemas import ConnectionTestResult
from feedsync.utils.error_handler import (
    AppException,
    ConfigurationException,
    RateLimitException,
    RemoteAPIException,
)
from feedsync.utils.retry_handler import RetryPolicy

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = (
    "id,title,handle,body_html,vendor,product_type,created_at,updated_at,published_at,status,tags,variants,images"
)
CALL_LIMIT_HEADER = "X-Shopify-Shop-Api-Call-Limit"
MAX_PAGE_SIZE = 250

_IMAGE_SIZE_SUFFIX = re.compile(r"_\d+x\d*\.(jpg|jpeg|png|gif|webp)$", re.IGNORECASE)
_IMAGE_EXTENSION = re.compile(r"\.(jpg|jpeg|png|gif|webp)$", re.IGNORECASE)


def normalize_shop_domain(domain: Optional[str]) -> Optional[str]:
    """Strip the scheme and trailing slash from a shop URL."""
    if not domain:
        return domain
    return re.sub(r"^https?://", "", domain.strip()).rstrip("/")


class RemoteCatalogClient:
    """
    Client for the Shopify Admin REST API (products and shop endpoints).

    Requests are spaced by at least ``min_request_interval`` seconds; the
    interval is raised to ``throttled_request_interval`` while Shopify reports
    a call-budget usage above ``rate_limit_threshold`` and lowered back otherwise.
    """

    def __init__(
        self,
        shop_url: Optional[str] = None,
        access_token: Optional[str] = None,
        api_version: Optional[str] = None,
        page_size: Optional[int] = None,
        request_timeout: Optional[int] = None,
        min_request_interval: Optional[float] = None,
        throttled_request_interval: Optional[float] = None,
        rate_limit_threshold: Optional[float] = None,
        rate_limit_backoff: Optional[float] = None,
        max_rate_limit_retries: Optional[int] = None,
    ):
        """Initialize the client; every argument defaults to its setting."""
        settings = get_settings()
        self.shop_url = normalize_shop_domain(shop_url or settings.SHOPIFY_SHOP_URL)
        self.access_token = access_token or settings.SHOPIFY_ACCESS_TOKEN
        self.api_version = api_version or settings.SHOPIFY_API_VERSION
        self.page_size = page_size or settings.SHOPIFY_PAGE_SIZE
        self.request_timeout = request_timeout or settings.SHOPIFY_REQUEST_TIMEOUT

        self.min_request_interval = (
            settings.SHOPIFY_MIN_REQUEST_INTERVAL if min_request_interval is None else min_request_interval
        )
        self.throttled_request_interval = (
            settings.SHOPIFY_THROTTLED_REQUEST_INTERVAL
            if throttled_request_interval is None
            else throttled_request_interval
        )
        self.rate_limit_threshold = rate_limit_threshold or settings.SHOPIFY_RATE_LIMIT_THRESHOLD
        self.max_rate_limit_retries = (
            settings.SHOPIFY_MAX_RATE_LIMIT_RETRIES if max_rate_limit_retries is None else max_rate_limit_retries
        )
        self.rate_limit_policy = RetryPolicy(
            max_attempts=self.max_rate_limit_retries + 1,
            base_delay=settings.SHOPIFY_RATE_LIMIT_BACKOFF_SECONDS if rate_limit_backoff is None else rate_limit_backoff,
        )

        self.session: Optional[aiohttp.ClientSession] = None
        self.current_request_interval = self.min_request_interval
        self._last_request_time: Optional[float] = None
        self._rate_limit_lock = asyncio.Lock()

    # === LIFECYCLE ===

    async def __aenter__(self) -> "RemoteCatalogClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=ClientTimeout(total=self.request_timeout),
                headers={"Content-Type": "application/json", "User-Agent": f"feedsync/{self.api_version}"},
            )
        return self.session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self.session and not self.session.closed:
            await self.session.close()
            logger.info("Shopify client closed")
        self.session = None

    # === CREDENTIALS ===

    def configure(self, domain: Optional[str], token: Optional[str]) -> None:
        """Replace the credentials used for subsequent requests. No validation is done here."""
        self.shop_url = normalize_shop_domain(domain)
        self.access_token = token

    @property
    def is_configured(self) -> bool:
        return bool(self.shop_url and self.access_token)

    @property
    def base_url(self) -> str:
        return f"https://{self.shop_url}/admin/api/{self.api_version}"

    @asynccontextmanager
    async def _temporary_credentials(self, domain: str, token: str) -> AsyncIterator[None]:
        """Swap credentials for the duration of the block; always restores the previous ones."""
        previous = (self.shop_url, self.access_token)
        self.configure(domain, token)
        try:
            yield
        finally:
            self.shop_url, self.access_token = previous

    # === RATE LIMITING ===

    async def rate_limit(self) -> None:
        """Wait until the current inter-request interval has elapsed since the previous request."""
        async with self._rate_limit_lock:
            now = time.monotonic()
            if self._last_request_time is not None:
                elapsed = now - self._last_request_time
                if elapsed < self.current_request_interval:
                    await asyncio.sleep(self.current_request_interval - elapsed)
            self._last_request_time = time.monotonic()

    def _update_rate_limit(self, headers: Dict[str, str]) -> None:
        """Adapt the request interval to the call budget reported by Shopify ("used/limit")."""
        call_limit = headers.get(CALL_LIMIT_HEADER)
        if not call_limit:
            return

        try:
            used, limit = (int(part) for part in call_limit.split("/"))
        except ValueError:
            logger.debug(f"Unparseable {CALL_LIMIT_HEADER} header: {call_limit}")
            return

        if limit and used / limit > self.rate_limit_threshold:
            if self.current_request_interval != self.throttled_request_interval:
                logger.warning(f"⚠️ Shopify call budget at {used}/{limit}, slowing down requests")
            self.current_request_interval = self.throttled_request_interval
        else:
            self.current_request_interval = self.min_request_interval

    # === REQUESTS ===

    async def _http_get(self, url: str, params: Dict[str, Any]) -> Tuple[int, Dict[str, str], Any]:
        """
        Perform a single GET request.

        Returns:
            Tuple: (status, headers, body) where body is parsed JSON when possible
        """
        session = self._get_session()
        async with session.get(url, params=params, headers={"X-Shopify-Access-Token": self.access_token}) as response:
            if response.content_type == "application/json":
                body = await response.json()
            else:
                body = await response.text()
            return response.status, dict(response.headers), body

    async def request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Issue a rate-limited GET against the Admin REST API.

        Args:
            endpoint: Path relative to /admin/api/{version}/, e.g. "products.json"
            params: Query string parameters

        Returns:
            Dict: Parsed JSON response

        Raises:
            ConfigurationException: If the shop domain or access token is missing
            RateLimitException: If HTTP 429 persists after the retry ceiling
            RemoteAPIException: For any other non-2xx response or network error
        """
        if not self.is_configured:
            missing = [name for name, value in (("shop_url", self.shop_url), ("access_token", self.access_token)) if not value]
            raise ConfigurationException("Shopify credentials not configured", missing_fields=missing)

        url = f"{self.base_url}/{endpoint}"
        params = {key: value for key, value in (params or {}).items() if value is not None}
        attempt = 0

        while True:
            attempt += 1
            await self.rate_limit()
            start_time = time.time()

            try:
                status, headers, body = await self._http_get(url, params)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise RemoteAPIException(
                    f"Network error calling {endpoint}: {type(e).__name__}: {e}", endpoint=endpoint
                ) from e

            log_api_call("GET", url, status, time.time() - start_time, attempt=attempt)
            self._update_rate_limit(headers)

            if status == 429:
                rate_limited = RateLimitException(
                    f"Rate limit still exceeded after {attempt} attempts", endpoint=endpoint, attempts=attempt
                )
                if not self.rate_limit_policy.should_retry(rate_limited, attempt):
                    raise rate_limited
                delay = self.rate_limit_policy.calculate_delay(attempt, self._retry_after(headers))
                logger.warning(f"⏳ Rate limit hit on {endpoint}, retrying in {delay:.2f}s (attempt {attempt})")
                await asyncio.sleep(delay)
                continue

            if not 200 <= status < 300:
                raise RemoteAPIException(
                    f"Shopify API error {status} on {endpoint}",
                    api_response_code=status,
                    endpoint=endpoint,
                    response_body=body,
                )

            return body if isinstance(body, dict) else {}

    @staticmethod
    def _retry_after(headers: Dict[str, str]) -> Optional[float]:
        value = headers.get("Retry-After")
        if value is None:
            return None
        try:
            return float(value)
        except ValueError:
            return None

    # === CATALOG READS ===

    async def fetch_all_since(self, cursor: Optional[str] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Fetch every product using since_id cursor pagination.

        Args:
            cursor: Start after this product id (None = from the beginning)
            limit: Page size (default SHOPIFY_PAGE_SIZE)

        Returns:
            List[Dict]: All products, in API order
        """
        limit = limit or self.page_size
        all_products: List[Dict[str, Any]] = []
        since_id = cursor
        page_number = 0

        while True:
            page_number += 1
            data = await self.request("products.json", {"limit": limit, "fields": PRODUCT_FIELDS, "since_id": since_id})
            products = data.get("products", [])
            if not products:
                break

            all_products.extend(products)
            since_id = products[-1]["id"]
            logger.info(f"📥 Page {page_number}: {len(products)} products (total {len(all_products)})")

            if len(products) < limit:
                break

        return all_products

    async def fetch_updated_since(self, timestamp: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Fetch products updated since ``timestamp`` using page-number pagination.

        Args:
            timestamp: ISO-8601 lower bound for updated_at
            limit: Page size (default SHOPIFY_PAGE_SIZE)

        Returns:
            List[Dict]: Updated products
        """
        limit = limit or self.page_size
        all_products: List[Dict[str, Any]] = []
        page = 1

        while True:
            data = await self.request(
                "products.json",
                {"limit": limit, "fields": PRODUCT_FIELDS, "updated_at_min": timestamp, "page": page},
            )
            products = data.get("products", [])
            if not products:
                break

            all_products.extend(products)
            if len(products) < limit:
                break
            page += 1

        logger.info(f"📥 {len(all_products)} products updated since {timestamp}")
        return all_products

    async def get_products_count(self) -> int:
        """Remote product count (diagnostic only). Failures are logged and reported as 0."""
        try:
            data = await self.request("products/count.json")
            return int(data.get("count", 0))
        except AppException as e:
            logger.error(f"Error getting products count: {e}")
            return 0

    async def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        data = await self.request(f"products/{product_id}.json", {"fields": PRODUCT_FIELDS})
        return data.get("product")

    async def get_shop_info(self) -> Dict[str, Any]:
        data = await self.request("shop.json")
        return data.get("shop", {})

    async def test_connection(self, domain: str, token: str) -> ConnectionTestResult:
        """
        Probe the shop endpoint with the given credentials without keeping them.

        Returns:
            ConnectionTestResult: success with the shop profile, or the error message
        """
        try:
            async with self._temporary_credentials(domain, token):
                shop = await self.get_shop_info()
        except AppException as e:
            logger.warning(f"Shopify connection test failed: {e}")
            return ConnectionTestResult(success=False, error=e.message)

        return ConnectionTestResult(success=True, shop=shop, message=f"Successfully connected to {shop.get('name')}")

    # === URL HELPERS ===

    def format_product_url(self, handle: str) -> str:
        store = (self.shop_url or "").replace(".myshopify.com", "")
        return f"https://{store}.myshopify.com/products/{handle}"

    @staticmethod
    def get_image_url(src: Optional[str], size: str = "master") -> str:
        """Return the image URL at the requested Shopify size ("master" keeps the original)."""
        if not src:
            return ""

        clean_src = _IMAGE_SIZE_SUFFIX.sub(r".\1", src)
        if size != "master":
            clean_src = _IMAGE_EXTENSION.sub(rf"_{size}.\1", clean_src)
        return clean_src
