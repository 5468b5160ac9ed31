"""WooCommerce REST v3 client used as the product catalog.

Only two operations are needed by the sync passes: fetching every product,
page by page, and replacing a single product.  Paging is sequential and stops
at the first page holding fewer than ``per_page`` products.  There is no retry
logic; any failure is raised as :class:`~sheetsync.errors.TransportError` and
ends the pass.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import requests

from sheetsync.errors import TransportError

logger = logging.getLogger(__name__)

DEFAULT_PER_PAGE = 100
DEFAULT_TIMEOUT = 30
PRODUCTS_PATH = "/products"


class WooCommerceClient:
    """Thin wrapper around the WooCommerce ``/wp-json/wc/v3`` endpoints."""

    def __init__(
        self,
        base_url: str,
        consumer_key: str,
        consumer_secret: str,
        *,
        per_page: int = DEFAULT_PER_PAGE,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        if per_page <= 0:
            raise ValueError("per_page must be positive")
        self._base_url = base_url.rstrip("/")
        self._auth_params = {
            "consumer_key": consumer_key,
            "consumer_secret": consumer_secret,
        }
        self._per_page = per_page
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def per_page(self) -> int:
        return self._per_page

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        params = dict(self._auth_params)
        params.update(kwargs.pop("params", {}) or {})
        try:
            response = self._session.request(
                method,
                self._url(path),
                params=params,
                timeout=self._timeout,
                **kwargs,
            )
            response.raise_for_status()
            return response.json()
        except requests.RequestException as exc:
            raise TransportError(f"WooCommerce {method} {path} failed: {exc}") from exc
        except ValueError as exc:
            raise TransportError(f"WooCommerce {method} {path} returned invalid JSON") from exc

    def fetch_all_records(self, path: str = PRODUCTS_PATH) -> List[Dict[str, Any]]:
        """Return every record under ``path`` by walking the pages in order."""

        records: List[Dict[str, Any]] = []
        page = 1
        while True:
            payload = self._request(
                "GET",
                path,
                params={"page": page, "per_page": self._per_page},
            )
            if not isinstance(payload, list):
                raise TransportError(f"WooCommerce GET {path} page {page} did not return a list")
            records.extend(payload)
            logger.debug("Fetched page %d of %s (%d records)", page, path, len(payload))
            if len(payload) < self._per_page:
                break
            page += 1
        logger.info("Fetched %d records from %s", len(records), path)
        return records

    def update_record(self, record_id: int, record: Mapping[str, Any], path: str = PRODUCTS_PATH) -> Any:
        """Replace the record ``record_id`` with the full ``record`` payload."""

        result = self._request("PUT", f"{path.rstrip('/')}/{record_id}", json=dict(record))
        logger.debug("Updated record %s", record_id)
        return result


__all__ = ["DEFAULT_PER_PAGE", "PRODUCTS_PATH", "WooCommerceClient"]
