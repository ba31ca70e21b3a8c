"""
Tests for transaction confirmation polling.
"""

import asyncio
import time

import httpx
import pytest

from kupmios.provider.poller import ConfirmationPoller, PollerState

from conftest import generate_test_tx_hash, make_match

TX_HASH = generate_test_tx_hash(42)
PATH = f"/matches/*@{TX_HASH}?unspent"


def appear_on_poll(n: int):
    """Route body that shows the transaction's output from the n-th poll on."""
    polls = {"count": 0}

    def body(request):
        polls["count"] += 1
        return [make_match(TX_HASH)] if polls["count"] >= n else []

    return body


class TestConfirmationPoller:
    """Tests for the poller state machine."""

    @pytest.mark.asyncio
    async def test_confirms_after_settle_delay(self, indexer, fake_kupo):
        fake_kupo.route(PATH, appear_on_poll(2))
        poller = ConfirmationPoller(indexer, TX_HASH, interval=0.05, settle_delay=0.1)
        started = time.monotonic()

        confirmed = await poller.wait()
        finished = time.monotonic()

        assert confirmed is True
        assert poller.state == PollerState.CONFIRMED
        assert poller.polls == 2
        assert len(fake_kupo.requests) == 2
        assert fake_kupo.request_times[0] - started >= 0.04
        assert fake_kupo.request_times[1] - fake_kupo.request_times[0] >= 0.04
        assert finished - fake_kupo.request_times[1] >= 0.09

    @pytest.mark.asyncio
    async def test_no_polls_after_confirmation(self, indexer, fake_kupo):
        fake_kupo.route(PATH, appear_on_poll(1))
        poller = ConfirmationPoller(indexer, TX_HASH, interval=0.02, settle_delay=0.1)

        assert await poller.wait() is True
        await asyncio.sleep(0.06)

        assert len(fake_kupo.requests) == 1

    @pytest.mark.asyncio
    async def test_stop_ends_wait(self, indexer, fake_kupo):
        fake_kupo.route(PATH, [])
        poller = ConfirmationPoller(indexer, TX_HASH, interval=0.02, settle_delay=0)

        task = asyncio.create_task(poller.wait())
        await asyncio.sleep(0.07)
        poller.stop()
        confirmed = await task
        polls = len(fake_kupo.requests)
        await asyncio.sleep(0.05)

        assert confirmed is False
        assert poller.state == PollerState.STOPPED
        assert polls >= 1
        assert len(fake_kupo.requests) == polls

    @pytest.mark.asyncio
    async def test_timeout(self, indexer, fake_kupo):
        fake_kupo.route(PATH, [])
        poller = ConfirmationPoller(indexer, TX_HASH, interval=0.02, settle_delay=0)

        confirmed = await poller.wait(timeout=0.1)

        assert confirmed is False
        assert poller.state == PollerState.STOPPED

    @pytest.mark.asyncio
    async def test_timeout_does_not_cancel_seen_confirmation(self, indexer, fake_kupo):
        fake_kupo.route(PATH, appear_on_poll(1))
        poller = ConfirmationPoller(indexer, TX_HASH, interval=0.02, settle_delay=0.2)

        confirmed = await poller.wait(timeout=0.1)

        assert confirmed is True
        assert poller.state == PollerState.CONFIRMED
        assert poller.polls == 1

    @pytest.mark.asyncio
    async def test_stop_during_settle_still_confirms(self, indexer, fake_kupo):
        fake_kupo.route(PATH, appear_on_poll(1))
        poller = ConfirmationPoller(indexer, TX_HASH, interval=0.02, settle_delay=0.1)

        task = asyncio.create_task(poller.wait())
        await asyncio.sleep(0.05)
        poller.stop()

        assert await task is True
        assert poller.state == PollerState.CONFIRMED

    @pytest.mark.asyncio
    async def test_indexer_errors_propagate(self, indexer, fake_kupo):
        poller = ConfirmationPoller(indexer, TX_HASH, interval=0.01, settle_delay=0)

        with pytest.raises(httpx.HTTPStatusError):
            await poller.wait(timeout=1)

    @pytest.mark.asyncio
    async def test_provider_await_tx_uses_config(self, provider, fake_kupo):
        fake_kupo.route(PATH, appear_on_poll(1))

        assert await provider.await_tx(TX_HASH) is True

    def test_explicit_zero_interval_kept(self, provider):
        poller = provider.confirmation_poller(TX_HASH, check_interval=0)

        assert poller.interval == 0

    def test_default_interval_from_config(self, provider, test_config):
        poller = provider.confirmation_poller(TX_HASH)

        assert poller.interval == test_config.confirmation_interval_seconds

    @pytest.mark.asyncio
    async def test_provider_await_tx_timeout(self, provider, fake_kupo):
        fake_kupo.route(PATH, [])

        assert await provider.await_tx(TX_HASH, check_interval=0.01, timeout=0.05) is False
