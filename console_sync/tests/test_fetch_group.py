"""
Unit tests for fetch groups.
"""

import pytest

from console_sync.app.fetching.engine import FetchResource
from console_sync.app.fetching.group import FetchGroup
from shared.errors import ServerError
from shared.test_helpers import ScriptedResponse, TestDataFactory, error_envelope


def dashboard(api_client, cache_store, combine=None):
    return FetchGroup(
        {
            "products": FetchResource("/products", client=api_client, cache_store=cache_store, min_loading_duration=0),
            "customers": FetchResource("/customers", client=api_client, cache_store=cache_store, min_loading_duration=0),
        },
        combine=combine,
    )


class TestFetchGroup:
    """Test cases for FetchGroup."""

    @pytest.mark.asyncio
    async def test_mount_loads_every_member(self, fake_api, api_client, cache_store):
        fake_api.ok("/products", TestDataFactory.create_test_products())
        fake_api.ok("/customers", TestDataFactory.create_test_customers())
        group = dashboard(
            api_client,
            cache_store,
            combine=lambda data: {name: len(envelope.data) for name, envelope in data.items()},
        )

        await group.mount()
        assert group.loading is True
        assert group.value is None
        await group.settled()

        assert group.loading is False
        assert group.ready
        assert group.value == {"products": 3, "customers": 2}
        assert group["products"].data.data[0]["sku"] == "RICE-5"
        await group.unmount()

    @pytest.mark.asyncio
    async def test_errors_are_reported_per_member(self, fake_api, api_client, cache_store):
        fake_api.ok("/products", [])
        fake_api.add("GET", "/customers", ScriptedResponse(status_code=403, json=error_envelope("Forbidden")))
        group = dashboard(api_client, cache_store)

        await group.refetch()

        assert list(group.errors) == ["customers"]
        assert isinstance(group.errors["customers"], ServerError)
        assert not group.ready
        assert group.data["products"].data == []
