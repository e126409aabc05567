import pytest
import requests

from catalog.client import CatalogClient, CatalogQueryError
from geo.distance import BoundingBox


class DummyResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload if payload is not None else []
        self.text = text

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class DummySession:
    def __init__(self, responses=None):
        self.calls = []
        self.responses = list(responses or [])

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append((url, params, headers, timeout))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def city_row(city, state="IL", kma="IL_CHI", lat=41.8, lon=-87.6):
    return {
        "city": city,
        "state_or_province": state,
        "zip": "60601",
        "latitude": lat,
        "longitude": lon,
        "kma_code": kma,
        "here_verified": True,
        "population": 1000,
    }


@pytest.fixture
def make_client():
    def build(*responses, page_size=1000):
        session = DummySession(responses)
        client = CatalogClient(
            base_url="https://catalog.example.com/",
            api_key="secret",
            session=session,
            page_size=page_size,
            timeout=5,
        )
        return client, session
    return build


def test_missing_base_url_raises(monkeypatch):
    monkeypatch.delenv("CATALOG_BASE_URL", raising=False)
    with pytest.raises(ValueError):
        CatalogClient(base_url=None, api_key="secret", session=DummySession())


def test_env_configuration(monkeypatch):
    monkeypatch.setenv("CATALOG_BASE_URL", "https://env.example.com")
    monkeypatch.setenv("CATALOG_API_KEY", "env-key")
    monkeypatch.setenv("CATALOG_TABLE", "cities_v2")
    monkeypatch.setenv("CATALOG_TIMEOUT", "3.5")

    client = CatalogClient(session=DummySession())
    assert client.base_url == "https://env.example.com"
    assert client.api_key == "env-key"
    assert client.table == "cities_v2"
    assert client.timeout == 3.5


def test_bounding_box_query_builds_filters(make_client):
    client, session = make_client(DummyResponse(payload=[city_row("Joliet"), city_row("Aurora")]))
    box = BoundingBox(min_lat=41.0, max_lat=42.0, min_lon=-88.5, max_lon=-87.0)

    locations = client.query_by_bounding_box(box)

    assert [location.name for location in locations] == ["Joliet", "Aurora"]
    url, params, headers, timeout = session.calls[0]
    assert url == "https://catalog.example.com/rest/v1/cities"
    assert ("latitude", "gte.41.0") in params
    assert ("longitude", "lte.-87.0") in params
    assert ("kma_code", "not.is.null") in params
    assert headers["apikey"] == "secret"
    assert timeout == 5


def test_pagination_walks_until_short_page(make_client):
    client, session = make_client(
        DummyResponse(payload=[city_row("A"), city_row("B")]),
        DummyResponse(payload=[city_row("C")]),
        page_size=2,
    )

    locations = client.query_by_market("IL_CHI")

    assert [location.name for location in locations] == ["A", "B", "C"]
    assert len(session.calls) == 2
    assert ("offset", "2") in session.calls[1][1]
    assert ("kma_code", "eq.IL_CHI") in session.calls[0][1]


def test_find_by_name_returns_first_or_none(make_client):
    client, session = make_client(DummyResponse(payload=[city_row("Chicago")]), DummyResponse(payload=[]))

    assert client.find_by_name("chicago", "il").name == "Chicago"
    assert ("city", "ilike.chicago") in session.calls[0][1]
    assert ("limit", "1") in session.calls[0][1]
    assert client.find_by_name("Nowhere", "IL") is None


@pytest.mark.parametrize("response", [
    DummyResponse(status_code=500, text="boom"),
    DummyResponse(payload={"message": "permission denied"}),
    DummyResponse(payload=ValueError("not json")),
    requests.ConnectionError("down"),
])
def test_failures_raise_catalog_query_error(make_client, response):
    client, _ = make_client(response)
    with pytest.raises(CatalogQueryError):
        client.query_by_market("IL_CHI")
