"""Address lookup (ViaCEP) and geocoding (Nominatim).

Lookups never raise into callers: failures are logged and reported as
``None`` / ``[]``. Bulk geocoding is strictly sequential with a fixed delay
between calls to stay under Nominatim's one-request-per-second policy.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import quote

import httpx
from sqlalchemy import select

from gabinete.core.config import settings
from gabinete.db.enums import EntityKind
from gabinete.db.models import Constituent, User
from gabinete.services.lifecycle_service import EntityLifecycle
from gabinete.utils.normalization import digits_only

logger = logging.getLogger(__name__)

ZIP_CODE_LENGTH = 8
MIN_STREET_LENGTH = 3


def build_client(transport: httpx.BaseTransport | None = None) -> httpx.Client:
    return httpx.Client(
        timeout=settings.GEO_HTTP_TIMEOUT,
        headers={"User-Agent": settings.GEO_USER_AGENT},
        transport=transport,
    )


def _viacep_address(data: dict[str, Any]) -> dict[str, str]:
    """Map a ViaCEP payload onto the constituent address shape."""
    return {
        "zip_code": digits_only(data.get("cep")),
        "street": data.get("logradouro") or "",
        "complement": data.get("complemento") or "",
        "neighborhood": data.get("bairro") or "",
        "city": data.get("localidade") or "",
        "state": data.get("uf") or "",
    }


class GeoClient:
    """
    Thin wrapper over the public address / geocoding services.

    Owns its connection pool: use it as a context manager or call ``close()``.
    """

    def __init__(self, client: httpx.Client | None = None):
        self.client = client or build_client()

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "GeoClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _get_json(self, url: str, params: dict[str, str] | None = None) -> Any:
        try:
            response = self.client.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError):
            logger.warning("Geo lookup failed", extra={"url": url}, exc_info=True)
            return None

    def get_address_by_zip(self, zip_code: str) -> dict[str, str] | None:
        clean = digits_only(zip_code)
        if len(clean) != ZIP_CODE_LENGTH:
            return None
        data = self._get_json(f"{settings.VIACEP_BASE_URL}/{clean}/json/")
        if not isinstance(data, dict) or data.get("erro"):
            return None
        return _viacep_address(data)

    def find_zip_codes(self, state: str, city: str, street: str) -> list[dict[str, str]]:
        """Candidate addresses (with zip codes) for a state/city/street triple."""
        if not state or not city or not street or len(street.strip()) < MIN_STREET_LENGTH:
            return []
        path = "/".join(quote(part.strip()) for part in (state, city, street))
        data = self._get_json(f"{settings.VIACEP_BASE_URL}/{path}/json/")
        if not isinstance(data, list):
            return []
        return [_viacep_address(item) for item in data if isinstance(item, dict)]

    def geocode_zip(self, zip_code: str) -> dict[str, float] | None:
        clean = digits_only(zip_code)
        if len(clean) != ZIP_CODE_LENGTH:
            return None
        data = self._get_json(
            f"{settings.NOMINATIM_BASE_URL}/search",
            params={
                "postalcode": f"{clean[:5]}-{clean[5:]}",
                "country": "Brazil",
                "format": "json",
                "limit": "1",
            },
        )
        if not isinstance(data, list) or not data:
            return None
        try:
            return {"lat": float(data[0]["lat"]), "lng": float(data[0]["lon"])}
        except (KeyError, TypeError, ValueError):
            logger.warning("Unexpected geocoding payload", exc_info=True)
            return None


@dataclass
class GeocodeResult:
    processed: int = 0
    updated: int = 0
    failed: int = 0


def bulk_geocode(
    lifecycle: EntityLifecycle,
    actor: User,
    client: GeoClient | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> GeocodeResult:
    """
    Fill ``geo`` for active constituents that have a zip code but no coordinates.

    Runs to completion; no cancellation. A client created here is closed
    on return; a caller-supplied one is left open.
    """
    if client is None:
        with GeoClient() as owned:
            return bulk_geocode(lifecycle, actor, client=owned, sleep=sleep)

    result = GeocodeResult()
    stmt = (
        select(Constituent)
        .where(Constituent.is_pending_deletion.is_(False))
        .order_by(Constituent.created_at)
    )
    pending = [
        c for c in lifecycle.db.scalars(stmt).all()
        if not c.geo
        and len(digits_only((c.address or {}).get("zip_code"))) == ZIP_CODE_LENGTH
    ]

    for index, constituent in enumerate(pending):
        if index > 0:
            sleep(settings.GEOCODE_THROTTLE_SECONDS)
        result.processed += 1
        coords = client.geocode_zip(constituent.address["zip_code"])
        if coords is None:
            result.failed += 1
            continue
        lifecycle.update(EntityKind.CONSTITUENT, constituent.id, {"geo": coords}, actor)
        result.updated += 1

    logger.info(
        "Bulk geocoding finished",
        extra={"processed": result.processed, "updated": result.updated, "failed": result.failed},
    )
    return result
