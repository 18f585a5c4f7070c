"""
Unit tests for the mutation executor.
"""

import asyncio
import time

import pytest

from console_sync.app.mutations.executor import MutationExecutor
from console_sync.app.models import CacheEntry, RequestDescriptor
from shared.errors import ServerError
from shared.test_helpers import ScriptedResponse, error_envelope, success_envelope


def make_executor(api_client, cache_store=None, url="/sales", **options):
    options.setdefault("min_loading_duration", 0)
    return MutationExecutor(url, client=api_client, cache_store=cache_store, **options)


class TestMutationExecutor:
    """Test cases for MutationExecutor."""

    @pytest.mark.asyncio
    async def test_successful_mutation(self, fake_api, api_client):
        fake_api.ok("/sales", {"id": 100}, method="POST")
        settled = []
        on_success = []
        executor = make_executor(api_client, on_success=on_success.append, on_settled=lambda: settled.append(True))

        result = await executor.mutate({"customer_id": 10, "total": 37.5})

        assert result.data == {"id": 100}
        assert executor.data is result
        assert executor.loading is False
        assert executor.is_success
        assert on_success == [result]
        assert settled == [True]
        assert b'"customer_id"' in fake_api.calls_to("/sales", "POST")[0].content

    @pytest.mark.asyncio
    async def test_failure_rolls_back_before_error_surfaces(self, fake_api, api_client):
        """Optimistic update first, rollback on failure, then the error."""
        fake_api.add(
            "PUT",
            "/customers/10",
            ScriptedResponse(status_code=422, json=error_envelope("Validation failed", errors={"phone": "Required"})),
        )
        events = []
        executor = make_executor(
            api_client,
            url="/customers/10",
            method="PUT",
            optimistic_update=lambda variables: events.append(("optimistic", variables)),
            rollback_optimistic_update=lambda variables: events.append(("rollback", variables)),
            on_error=lambda error: events.append(("error", error.message)),
            on_settled=lambda: events.append(("settled", None)),
        )

        result = await executor.mutate({"phone": ""})

        assert result is None
        assert events == [
            ("optimistic", {"phone": ""}),
            ("rollback", {"phone": ""}),
            ("error", "Validation failed"),
            ("settled", None),
        ]
        assert isinstance(executor.error, ServerError)
        assert executor.error.errors == {"phone": "Required"}
        assert executor.loading is False

    @pytest.mark.asyncio
    async def test_optimistic_update_runs_before_request(self, fake_api, api_client):
        fake_api.ok("/sales", {"id": 1}, method="POST")
        seen = []
        executor = make_executor(api_client, optimistic_update=lambda variables: seen.append(len(fake_api.calls)))

        await executor.mutate({"total": 1})

        assert seen == [0]

    @pytest.mark.asyncio
    async def test_no_variables_skips_optimistic_hooks(self, fake_api, api_client):
        fake_api.add("DELETE", "/sales/100", ScriptedResponse(status_code=500, json=error_envelope("Boom")))
        hooks = []
        executor = make_executor(
            api_client,
            url="/sales/100",
            method="DELETE",
            optimistic_update=hooks.append,
            rollback_optimistic_update=hooks.append,
        )

        await executor.mutate()

        assert hooks == []
        assert executor.is_error

    @pytest.mark.asyncio
    async def test_empty_variables_still_run_optimistic_hooks(self, fake_api, api_client):
        """Only None skips the hooks; an empty payload is still a payload."""
        fake_api.add("POST", "/sales", ScriptedResponse(status_code=500, json=error_envelope("Boom")))
        hooks = []
        executor = make_executor(
            api_client,
            optimistic_update=lambda variables: hooks.append(("optimistic", variables)),
            rollback_optimistic_update=lambda variables: hooks.append(("rollback", variables)),
        )

        await executor.mutate({})

        assert hooks == [("optimistic", {}), ("rollback", {})]

    @pytest.mark.asyncio
    async def test_loading_while_in_flight(self, fake_api, api_client):
        fake_api.ok("/sales", {"id": 1}, method="POST", delay=0.05)
        executor = make_executor(api_client)

        task = asyncio.create_task(executor.mutate({"total": 1}))
        await asyncio.sleep(0.01)
        assert executor.loading is True

        await task
        assert executor.loading is False

    @pytest.mark.asyncio
    async def test_smoothing_applies_to_mutations(self, fake_api, api_client):
        fake_api.add("POST", "/sales", ScriptedResponse(status_code=500, json=error_envelope("Boom"), delay=0.05))
        executor = make_executor(api_client, min_loading_duration=0.4)

        started = time.monotonic()
        await executor.mutate({"total": 1})

        assert time.monotonic() - started >= 0.39

    @pytest.mark.asyncio
    async def test_last_initiated_call_wins(self, fake_api, api_client):
        """Concurrent calls run independently; only the newest reaches state."""
        fake_api.add(
            "POST",
            "/sales",
            ScriptedResponse(json=success_envelope({"id": "first"}), delay=0.1),
            ScriptedResponse(json=success_envelope({"id": "second"})),
        )
        on_success = []
        settled = []
        executor = make_executor(api_client, on_success=on_success.append, on_settled=lambda: settled.append(True))

        first = asyncio.create_task(executor.mutate({"n": 1}))
        await asyncio.sleep(0.01)
        second = await executor.mutate({"n": 2})
        first_result = await first

        assert first_result.data == {"id": "first"}
        assert second.data == {"id": "second"}
        assert executor.data.data == {"id": "second"}
        assert [envelope.data for envelope in on_success] == [{"id": "second"}]
        assert len(settled) == 2
        assert executor.loading is False

    @pytest.mark.asyncio
    async def test_stale_failure_still_rolls_back(self, fake_api, api_client):
        fake_api.add(
            "POST",
            "/sales",
            ScriptedResponse(status_code=500, json=error_envelope("Boom"), delay=0.1),
            ScriptedResponse(json=success_envelope({"id": "second"})),
        )
        rolled_back = []
        executor = make_executor(api_client, rollback_optimistic_update=rolled_back.append)

        first = asyncio.create_task(executor.mutate({"n": 1}))
        await asyncio.sleep(0.01)
        await executor.mutate({"n": 2})
        await first

        assert rolled_back == [{"n": 1}]
        assert executor.error is None
        assert executor.data.data == {"id": "second"}

    @pytest.mark.asyncio
    async def test_reset_discards_in_flight_result(self, fake_api, api_client):
        fake_api.ok("/sales", {"id": 1}, method="POST", delay=0.05)
        executor = make_executor(api_client)

        task = asyncio.create_task(executor.mutate({"total": 1}))
        await asyncio.sleep(0.01)
        executor.reset()
        result = await task

        assert result.data == {"id": 1}
        assert executor.data is None
        assert executor.loading is False

    @pytest.mark.asyncio
    async def test_success_invalidates_cached_reads(self, fake_api, api_client, cache_store):
        key = cache_store.key_for(RequestDescriptor(url="/products"))
        await cache_store.put(key, CacheEntry(payload=success_envelope([]), stored_at=cache_store.clock(), ttl=300))
        fake_api.ok("/sales", {"id": 1}, method="POST")
        executor = make_executor(api_client, cache_store, invalidates=["/products"])

        await executor.mutate({"total": 1})

        assert await cache_store.get(key) is None

    @pytest.mark.asyncio
    async def test_failure_keeps_cached_reads(self, fake_api, api_client, cache_store):
        key = cache_store.key_for(RequestDescriptor(url="/products"))
        await cache_store.put(key, CacheEntry(payload=success_envelope([]), stored_at=cache_store.clock(), ttl=300))
        fake_api.add("POST", "/sales", ScriptedResponse(status_code=500, json=error_envelope("Boom")))
        executor = make_executor(api_client, cache_store, invalidates=["/products"])

        await executor.mutate({"total": 1})

        assert await cache_store.get(key) is not None

    @pytest.mark.asyncio
    async def test_state_transitions_are_published(self, fake_api, api_client):
        fake_api.ok("/sales", {"id": 1}, method="POST")
        executor = make_executor(api_client)
        transitions = []
        unsubscribe = executor.subscribe(transitions.append)

        await executor.mutate({"total": 1})
        unsubscribe()
        executor.reset()

        assert [state.loading for state in transitions] == [True, False]
        assert transitions[-1].data.data == {"id": 1}
