"""Fixtures compartidas para los tests de tasador_rural."""

from datetime import datetime, timedelta

import httpx
import pytest

from tasador_rural.models import Comparable
from tasador_rural.query import SearchQuery
from tasador_rural.sources import MercadoLibreClient


# =============================================================================
# HELPERS
# =============================================================================

class FakeClock:
    """Reloj inyectable para tests de expiración."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 3, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class SleepRecorder:
    """Reemplazo de asyncio.sleep que solo registra los delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def meli_item(
    item_id="MLA1001",
    title="Campo agrícola 150 hectareas",
    price=900000,
    city="Río Cuarto",
    state="Córdoba",
    thumbnail=None,
    latitude=None,
    longitude=None,
    attributes=None,
):
    """Item con la forma de /sites/MLA/search."""
    item = {
        "id": item_id,
        "title": title,
        "price": price,
        "currency_id": "USD",
        "permalink": f"https://campo.mercadolibre.com.ar/{item_id}",
        "thumbnail": thumbnail,
        "location": {
            "city": {"name": city},
            "state": {"name": state},
            "latitude": latitude,
            "longitude": longitude,
        },
    }
    if attributes is not None:
        item["attributes"] = attributes
    return item


def make_comparable(
    price=900000,
    area=150,
    title="Campo agrícola 150 ha",
    location="Río Cuarto, Córdoba",
    score=0.0,
    thumbnail=None,
    latitude=None,
    longitude=None,
    item_id="MLA1",
):
    return Comparable(
        id=item_id,
        title=title,
        price=price,
        area_hectares=area,
        price_per_hectare=price / area,
        permalink=f"https://campo.mercadolibre.com.ar/{item_id}",
        thumbnail=thumbnail,
        location=location,
        latitude=latitude,
        longitude=longitude,
        similarity_score=score,
    )


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def query():
    """Consulta del escenario Córdoba / Río Cuarto."""
    return SearchQuery(
        provincia="Córdoba",
        localidad="Río Cuarto",
        hectareas=200,
        tipo_campo="agrícola",
    )


@pytest.fixture
def scenario_items():
    """Tres publicaciones: dos con área en el título, una sin área."""
    return [
        meli_item("MLA1001", "Campo agrícola 150 hectareas Río Cuarto", 900000),
        meli_item("MLA1002", "Campo 210 hectareas con casa", 1200000),
        meli_item("MLA1003", "Campo no area info", 500000),
    ]


@pytest.fixture
def make_client(sleeper):
    """Construye un MercadoLibreClient con un transport simulado."""

    def _make(handler, **kwargs):
        kwargs.setdefault("sleep", sleeper)
        kwargs.setdefault("backoff", 2.0)
        kwargs.setdefault("max_attempts", 3)
        return MercadoLibreClient(
            access_token=kwargs.pop("access_token", None),
            transport=httpx.MockTransport(handler),
            **kwargs,
        )

    return _make
