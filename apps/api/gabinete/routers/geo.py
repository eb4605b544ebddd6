"""Geo router - address lookup by zip code and bulk geocoding."""

from typing import Generator

from fastapi import APIRouter, Depends, HTTPException, Query

from gabinete.core.deps import get_current_user, get_lifecycle, require_csrf_header, require_roles
from gabinete.db.enums import ROLES_CAN_MANAGE_TEAM
from gabinete.db.models import User
from gabinete.schemas.geo import AddressLookup, GeocodeResultRead
from gabinete.services import geo_service
from gabinete.services.lifecycle_service import EntityLifecycle

router = APIRouter(prefix="/geo", tags=["Geo"])


def get_geo_client() -> Generator[geo_service.GeoClient, None, None]:
    """One client per request, closed after the response."""
    with geo_service.GeoClient() as client:
        yield client


@router.get("/zip/{zip_code}", response_model=AddressLookup)
def lookup_zip(
    zip_code: str,
    client: geo_service.GeoClient = Depends(get_geo_client),
    user: User = Depends(get_current_user),
):
    address = client.get_address_by_zip(zip_code)
    if address is None:
        raise HTTPException(status_code=404, detail="Zip code not found")
    return address


@router.get("/zip-search", response_model=list[AddressLookup])
def search_zip_codes(
    state: str = Query(..., min_length=2, max_length=2),
    city: str = Query(..., min_length=3),
    street: str = Query(..., min_length=3),
    client: geo_service.GeoClient = Depends(get_geo_client),
    user: User = Depends(get_current_user),
):
    return client.find_zip_codes(state, city, street)


@router.post(
    "/geocode-constituents",
    response_model=GeocodeResultRead,
    dependencies=[Depends(require_csrf_header)],
)
def geocode_constituents(
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    client: geo_service.GeoClient = Depends(get_geo_client),
    user: User = Depends(require_roles(list(ROLES_CAN_MANAGE_TEAM))),
):
    """Fill coordinates for constituents with a zip code (about one per second)."""
    result = geo_service.bulk_geocode(lifecycle, user, client=client)
    return GeocodeResultRead(
        processed=result.processed, updated=result.updated, failed=result.failed
    )
