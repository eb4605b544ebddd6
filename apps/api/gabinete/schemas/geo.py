"""Pydantic schemas for address and geocoding lookups."""

from pydantic import BaseModel


class AddressLookup(BaseModel):
    zip_code: str
    street: str
    complement: str
    neighborhood: str
    city: str
    state: str


class GeoPointRead(BaseModel):
    lat: float
    lng: float


class GeocodeResultRead(BaseModel):
    processed: int
    updated: int
    failed: int
