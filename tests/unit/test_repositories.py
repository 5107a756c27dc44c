import pytest

from storefront.cart.repository import ApiCartReader
from storefront.errors import EmptyCartError
from storefront.infra.api_client import ApiError
from storefront.profile.repository import ApiProfileReader


class _Api:
    def __init__(self, responses=None, error=None):
        self.responses = responses or {}
        self.error = error
        self.calls = []

    async def get(self, path, **kwargs):
        self.calls.append(("GET", path))
        if self.error:
            raise self.error
        return self.responses.get(path)

    async def delete(self, path, **kwargs):
        self.calls.append(("DELETE", path))
        return {}


@pytest.mark.asyncio
async def test_cart_snapshot_reads_nested_items():
    api = _Api({"/cart": {"cart": {"items": [{"productId": "A", "name": "Lamp", "price": 10, "quantity": 2}]}}})
    snapshot = await ApiCartReader(api).snapshot()
    assert snapshot.item_count == 2


@pytest.mark.asyncio
async def test_cart_snapshot_empty_cart():
    with pytest.raises(EmptyCartError):
        await ApiCartReader(_Api({"/cart": {"items": []}})).snapshot()


@pytest.mark.asyncio
async def test_cart_clear():
    api = _Api()
    await ApiCartReader(api).clear()
    assert api.calls == [("DELETE", "/cart/clear")]


@pytest.mark.asyncio
async def test_profile_reader_unwraps_payloads():
    api = _Api({
        "/users/profile": {"user": {"firstName": "Jane"}},
        "/users/addresses": {"addresses": [{"city": "Bath"}, "junk"]},
    })
    profile, addresses = await ApiProfileReader(api).load()
    assert profile == {"firstName": "Jane"}
    assert addresses == [{"city": "Bath"}]


@pytest.mark.asyncio
async def test_profile_reader_degrades_on_api_error():
    api = _Api(error=ApiError("unauthorized", status_code=401))
    assert await ApiProfileReader(api).load() == ({}, [])
