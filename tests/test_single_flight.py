import asyncio

import pytest

from live_translation.single_flight import SingleFlight

from conftest import settle


def test_concurrent_callers_share_one_future():
    async def scenario():
        flight = SingleFlight()
        loop = asyncio.get_running_loop()
        created = []

        def factory():
            future = loop.create_future()
            created.append(future)
            return future

        first = flight.run_once('es', factory)
        second = flight.run_once('es', factory)
        assert first is second
        assert len(created) == 1

        first.set_result('ok')
        await settle()
        assert 'es' not in flight
        return created

    assert len(asyncio.run(scenario())) == 1


def test_entry_removed_after_failure_so_retry_starts_fresh():
    async def scenario():
        flight = SingleFlight()
        loop = asyncio.get_running_loop()

        failed = flight.run_once('es', loop.create_future)
        failed.set_exception(RuntimeError('no network'))
        await settle()
        assert len(flight) == 0

        retry = flight.run_once('es', loop.create_future)
        assert retry is not failed
        with pytest.raises(RuntimeError):
            await failed

    asyncio.run(scenario())


def test_cleared_entry_is_not_removed_by_stale_callback():
    async def scenario():
        flight = SingleFlight()
        loop = asyncio.get_running_loop()

        old = flight.run_once('es', loop.create_future)
        flight.clear()
        new = flight.run_once('es', loop.create_future)

        old.cancel()
        await settle()
        assert flight.get('es') is new

    asyncio.run(scenario())


def test_already_settled_future_is_not_stored():
    async def scenario():
        flight = SingleFlight()
        loop = asyncio.get_running_loop()

        def factory():
            future = loop.create_future()
            future.set_exception(ValueError('failed at once'))
            return future

        future = flight.run_once('es', factory)
        assert future.done()
        assert 'es' not in flight

    asyncio.run(scenario())
