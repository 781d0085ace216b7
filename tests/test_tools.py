import json
import pytest
import httpx
import respx
from unittest.mock import patch
from pharmacyline.circuit_breaker import CircuitBreaker
from pharmacyline.tools import RecordsClient, RefillStatus, StubRecords


BASE_URL = "https://records.example.com"


class TestRecordsClientAuth:
    @pytest.mark.asyncio
    async def test_sends_api_key_header(self):
        with respx.mock:
            client = RecordsClient(base_url=BASE_URL, api_key="test-key-123")
            route = respx.post(f"{BASE_URL}/patients/verify").mock(
                return_value=httpx.Response(200, json={"verified": True})
            )
            await client.verify_identity("Jane Doe", "1980-01-01")
            assert route.calls[0].request.headers.get("x-api-key") == "test-key-123"

    @pytest.mark.asyncio
    async def test_no_api_key_still_works(self):
        with respx.mock:
            client = RecordsClient(base_url=BASE_URL)
            route = respx.post(f"{BASE_URL}/patients/verify").mock(
                return_value=httpx.Response(200, json={"verified": True})
            )
            await client.verify_identity("Jane Doe", "1980-01-01")
            assert route.called


class TestVerifyIdentity:
    @respx.mock
    @pytest.mark.asyncio
    async def test_verified(self):
        route = respx.post(f"{BASE_URL}/patients/verify").mock(
            return_value=httpx.Response(200, json={"verified": True})
        )
        result = await RecordsClient(base_url=BASE_URL).verify_identity("Jane Doe", "1980-01-01")
        assert result == {"verified": True}
        assert json.loads(route.calls[0].request.content) == {
            "patient_name": "Jane Doe", "date_of_birth": "1980-01-01",
        }

    @respx.mock
    @pytest.mark.asyncio
    async def test_truthy_non_bool_is_not_verified(self):
        respx.post(f"{BASE_URL}/patients/verify").mock(
            return_value=httpx.Response(200, json={"verified": "yes"})
        )
        result = await RecordsClient(base_url=BASE_URL).verify_identity("Jane Doe", "1980-01-01")
        assert result == {"verified": False}

    @respx.mock
    @pytest.mark.asyncio
    async def test_failure_is_not_verified(self):
        respx.post(f"{BASE_URL}/patients/verify").mock(return_value=httpx.Response(500))
        result = await RecordsClient(base_url=BASE_URL).verify_identity("Jane Doe", "1980-01-01")
        assert result["verified"] is False
        assert "error" in result


class TestSubmitRefill:
    @respx.mock
    @pytest.mark.asyncio
    async def test_approved(self):
        route = respx.post(f"{BASE_URL}/refills").mock(
            return_value=httpx.Response(200, json={"status": "approved", "pickup_eta": "today after 5pm"})
        )
        result = await RecordsClient(base_url=BASE_URL).submit_refill("Jane Doe", "1980-01-01", "445566")
        assert result == {"status": "approved", "pickup_eta": "today after 5pm"}
        assert json.loads(route.calls[0].request.content)["rx_number"] == "445566"

    @respx.mock
    @pytest.mark.asyncio
    async def test_approved_without_eta_gets_default(self):
        respx.post(f"{BASE_URL}/refills").mock(
            return_value=httpx.Response(200, json={"status": "approved"})
        )
        result = await RecordsClient(base_url=BASE_URL).submit_refill("Jane Doe", "1980-01-01", "445566")
        assert result["pickup_eta"] == "tomorrow after 2pm"

    @respx.mock
    @pytest.mark.asyncio
    async def test_too_soon(self):
        respx.post(f"{BASE_URL}/refills").mock(
            return_value=httpx.Response(200, json={"status": "too_soon"})
        )
        result = await RecordsClient(base_url=BASE_URL).submit_refill("Jane Doe", "1980-01-01", "445566")
        assert result == {"status": "too_soon"}

    @respx.mock
    @pytest.mark.asyncio
    async def test_unknown_status_is_unavailable(self):
        respx.post(f"{BASE_URL}/refills").mock(
            return_value=httpx.Response(200, json={"status": "maybe"})
        )
        result = await RecordsClient(base_url=BASE_URL).submit_refill("Jane Doe", "1980-01-01", "445566")
        assert result["status"] == "gateway_unavailable"

    @respx.mock
    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self):
        respx.post(f"{BASE_URL}/refills").mock(return_value=httpx.Response(503))
        result = await RecordsClient(base_url=BASE_URL).submit_refill("Jane Doe", "1980-01-01", "445566")
        assert result["status"] == "gateway_unavailable"
        assert "error" in result


class TestCircuitBreakerIntegration:
    @respx.mock
    @pytest.mark.asyncio
    async def test_opens_after_three_failures(self):
        route = respx.post(f"{BASE_URL}/refills").mock(return_value=httpx.Response(500))
        client = RecordsClient(base_url=BASE_URL)
        for _ in range(3):
            await client.submit_refill("Jane Doe", "1980-01-01", "1")
        result = await client.submit_refill("Jane Doe", "1980-01-01", "1")
        assert route.call_count == 3
        assert result["status"] == "gateway_unavailable"

    @respx.mock
    @pytest.mark.asyncio
    async def test_open_circuit_fails_verification(self):
        respx.post(f"{BASE_URL}/patients/verify").mock(return_value=httpx.Response(500))
        client = RecordsClient(base_url=BASE_URL)
        for _ in range(3):
            await client.verify_identity("Jane Doe", "1980-01-01")
        result = await client.verify_identity("Jane Doe", "1980-01-01")
        assert result["verified"] is False

    @respx.mock
    @pytest.mark.asyncio
    async def test_trial_call_after_cooldown_closes_circuit(self):
        approved = httpx.Response(200, json={"status": "approved"})
        route = respx.post(f"{BASE_URL}/refills").mock(side_effect=[
            httpx.Response(500), httpx.Response(500), httpx.Response(500), approved, approved,
        ])
        client = RecordsClient(base_url=BASE_URL)
        with _clock(1000.0):
            for _ in range(3):
                await client.submit_refill("Jane Doe", "1980-01-01", "1")
        with _clock(1061.0):
            trial = await client.submit_refill("Jane Doe", "1980-01-01", "1")
            after = await client.submit_refill("Jane Doe", "1980-01-01", "1")
        assert trial["status"] == "approved"
        assert after["status"] == "approved"
        assert route.call_count == 5


def _clock(t):
    return patch("pharmacyline.circuit_breaker.time.monotonic", return_value=t)


def _tripped(at=1000.0):
    cb = CircuitBreaker(failure_threshold=1, cooldown_seconds=60.0)
    with _clock(at):
        cb.record_failure()
    return cb


class TestCircuitBreaker:
    def test_closed_by_default(self):
        assert CircuitBreaker().should_try()

    def test_opens_at_threshold(self):
        cb = CircuitBreaker(failure_threshold=2)
        cb.record_failure()
        assert cb.should_try()
        cb.record_failure()
        assert not cb.should_try()

    def test_success_resets_failure_count(self):
        cb = CircuitBreaker(failure_threshold=2)
        cb.record_failure()
        cb.record_success()
        cb.record_failure()
        assert cb.should_try()

    def test_refuses_during_cooldown(self):
        cb = _tripped()
        with _clock(1059.0):
            assert not cb.should_try()

    def test_single_trial_call_after_cooldown(self):
        cb = _tripped()
        with _clock(1061.0):
            assert cb.should_try()
            assert not cb.should_try()
            assert not cb.should_try()

    def test_successful_trial_call_closes(self):
        cb = _tripped()
        with _clock(1061.0):
            cb.should_try()
            cb.record_success()
            assert cb.should_try()
            assert cb.should_try()

    def test_failed_trial_call_restarts_cooldown(self):
        cb = _tripped()
        with _clock(1061.0):
            cb.should_try()
            cb.record_failure()
        with _clock(1100.0):
            assert not cb.should_try()
        with _clock(1122.0):
            assert cb.should_try()


class TestStubRecords:
    @pytest.mark.asyncio
    async def test_verifies_everyone(self):
        assert await StubRecords().verify_identity("Anyone", "whenever") == {"verified": True}

    @pytest.mark.asyncio
    async def test_approves_every_refill(self):
        result = await StubRecords().submit_refill("Anyone", "whenever", "1")
        assert result == {"status": RefillStatus.APPROVED.value, "pickup_eta": "tomorrow after 2pm"}


class TestRecordsClientPooling:
    @pytest.mark.asyncio
    async def test_close_cleans_up(self):
        client = RecordsClient(base_url=BASE_URL, api_key="test")
        await client.close()
        assert client._client.is_closed

    def test_accepts_injected_client(self):
        injected = httpx.AsyncClient(base_url="https://injected.local")
        client = RecordsClient(base_url=BASE_URL, client=injected)
        assert client._client is injected
