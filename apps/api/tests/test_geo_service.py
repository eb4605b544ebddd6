"""Tests for address lookup and bulk geocoding (HTTP mocked with httpx.MockTransport)."""

import httpx
import pytest

from gabinete.core.config import settings
from gabinete.db.enums import EntityKind
from gabinete.services import geo_service
from gabinete.main import app
from gabinete.routers.geo import get_geo_client
from gabinete.services.geo_service import GeoClient

from conftest import constituent_data

VIACEP_PAULISTA = {
    "cep": "01310-100",
    "logradouro": "Avenida Paulista",
    "complemento": "de 612 a 1510 - lado par",
    "bairro": "Bela Vista",
    "localidade": "São Paulo",
    "uf": "SP",
}


def make_client(handler) -> GeoClient:
    return GeoClient(geo_service.build_client(transport=httpx.MockTransport(handler)))


def test_get_address_by_zip():
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        return httpx.Response(200, json=VIACEP_PAULISTA)

    address = make_client(handler).get_address_by_zip("01310-100")

    assert requested == [f"{settings.VIACEP_BASE_URL}/01310100/json/"]
    assert address == {
        "zip_code": "01310100",
        "street": "Avenida Paulista",
        "complement": "de 612 a 1510 - lado par",
        "neighborhood": "Bela Vista",
        "city": "São Paulo",
        "state": "SP",
    }


def test_get_address_by_zip_not_found_and_invalid():
    client = make_client(lambda request: httpx.Response(200, json={"erro": True}))
    assert client.get_address_by_zip("99999999") is None
    # Short zip codes never hit the network
    assert client.get_address_by_zip("123") is None


def test_lookup_failures_are_swallowed():
    def handler(request):
        raise httpx.ConnectError("offline", request=request)

    client = make_client(handler)
    assert client.get_address_by_zip("01310100") is None
    assert client.find_zip_codes("SP", "São Paulo", "Paulista") == []
    assert client.geocode_zip("01310100") is None

    server_error = make_client(lambda request: httpx.Response(500))
    assert server_error.get_address_by_zip("01310100") is None


def test_find_zip_codes():
    def handler(request):
        assert str(request.url).endswith("/SP/S%C3%A3o%20Paulo/Paulista/json/")
        return httpx.Response(200, json=[VIACEP_PAULISTA, {"cep": "01311-000"}])

    results = make_client(handler).find_zip_codes("SP", "São Paulo", "Paulista")
    assert [r["zip_code"] for r in results] == ["01310100", "01311000"]


def test_find_zip_codes_requires_street():
    client = make_client(lambda request: httpx.Response(200, json=[]))
    assert client.find_zip_codes("SP", "São Paulo", "Av") == []


def test_geocode_zip():
    def handler(request):
        assert request.url.params["postalcode"] == "01310-100"
        assert request.headers["User-Agent"] == settings.GEO_USER_AGENT
        return httpx.Response(200, json=[{"lat": "-23.561", "lon": "-46.656"}])

    assert make_client(handler).geocode_zip("01310100") == {"lat": -23.561, "lng": -46.656}


def test_geocode_zip_empty_result():
    assert make_client(lambda request: httpx.Response(200, json=[])).geocode_zip("01310100") is None


def test_client_is_closed_on_exit():
    with make_client(lambda request: httpx.Response(200, json=VIACEP_PAULISTA)) as client:
        assert client.get_address_by_zip("01310100") is not None
        assert client.client.is_closed is False
    assert client.client.is_closed is True


def test_request_scoped_client_is_closed_after_use():
    dependency = get_geo_client()
    client = next(dependency)
    assert client.client.is_closed is False

    with pytest.raises(StopIteration):
        next(dependency)
    assert client.client.is_closed is True


# =============================================================================
# Bulk geocoding
# =============================================================================

class FakeGeocoder:
    def __init__(self, results):
        self.results = results
        self.calls = []

    def geocode_zip(self, zip_code):
        self.calls.append(zip_code)
        return self.results.get(zip_code)


def test_bulk_geocode_is_sequential_and_throttled(db, lifecycle, staff_user, admin_user):
    def create(name, zip_code, geo=None):
        data = constituent_data(name=name)
        data["address"] = {**data["address"], "zip_code": zip_code}
        if geo:
            data["geo"] = geo
        return lifecycle.create(EntityKind.CONSTITUENT, data, staff_user).entity

    first = create("Ana Lima", "01310100")
    second = create("Bia Reis", "20040002")
    create("Caio Melo", "123")  # invalid zip: skipped
    create("Davi Luz", "30130010", geo={"lat": -19.9, "lng": -43.9})  # already placed
    quarantined = create("Eva Nunes", "40010000")
    lifecycle.soft_delete(EntityKind.CONSTITUENT, quarantined.id, staff_user, "Duplicate")

    geocoder = FakeGeocoder({"01310100": {"lat": -23.56, "lng": -46.65}})
    sleeps = []

    result = geo_service.bulk_geocode(lifecycle, admin_user, client=geocoder, sleep=sleeps.append)

    assert (result.processed, result.updated, result.failed) == (2, 1, 1)
    assert geocoder.calls == ["01310100", "20040002"]
    assert sleeps == [settings.GEOCODE_THROTTLE_SECONDS]

    db.refresh(first)
    db.refresh(second)
    assert first.geo == {"lat": -23.56, "lng": -46.65}
    assert second.geo is None


def test_bulk_geocode_closes_the_client_it_creates(lifecycle, staff_user, admin_user, monkeypatch):
    data = constituent_data(name="Ana Lima")
    data["address"] = {**data["address"], "zip_code": "01310100"}
    lifecycle.create(EntityKind.CONSTITUENT, data, staff_user)

    created = []

    def build_mock_client(transport=None):
        http = httpx.Client(
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, json=[{"lat": "-23.5", "lon": "-46.6"}])
            )
        )
        created.append(http)
        return http

    monkeypatch.setattr(geo_service, "build_client", build_mock_client)

    result = geo_service.bulk_geocode(lifecycle, admin_user, sleep=lambda seconds: None)

    assert result.updated == 1
    assert len(created) == 1
    assert created[0].is_closed is True


@pytest.mark.asyncio
async def test_zip_lookup_endpoint(authed_client):
    app.dependency_overrides[get_geo_client] = lambda: make_client(
        lambda request: httpx.Response(200, json=VIACEP_PAULISTA)
    )
    response = await authed_client.get("/geo/zip/01310100")
    assert response.status_code == 200
    assert response.json()["street"] == "Avenida Paulista"

    app.dependency_overrides[get_geo_client] = lambda: make_client(
        lambda request: httpx.Response(200, json={"erro": True})
    )
    missing = await authed_client.get("/geo/zip/99999999")
    assert missing.status_code == 404
