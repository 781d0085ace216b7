import httpx
import logging
from enum import Enum

from pharmacyline.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)


class RefillStatus(Enum):
    APPROVED = "approved"
    TOO_SOON = "too_soon"
    EXPIRED = "expired"
    NO_REFILLS_REMAINING = "no_refills_remaining"
    VERIFICATION_FAILED = "verification_failed"
    GATEWAY_UNAVAILABLE = "gateway_unavailable"

    @classmethod
    def parse(cls, value) -> "RefillStatus":
        try:
            return cls(value)
        except ValueError:
            logger.error("Unknown refill status from records system: %r", value)
            return cls.GATEWAY_UNAVAILABLE


DEFAULT_PICKUP_ETA = "tomorrow after 2pm"


class RecordsClient:
    """HTTP client for the pharmacy records system.

    Wraps each call with a circuit breaker: after 3 consecutive failures,
    records calls are skipped for 60s and failure results are returned
    immediately so the state machine can route to a pharmacist instead of
    leaving the caller waiting on a dead backend.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 8.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._circuit = CircuitBreaker(
            failure_threshold=3,
            cooldown_seconds=60.0,
            label="records system",
        )
        if client is not None:
            self._client = client
        else:
            headers = {"Content-Type": "application/json"}
            if api_key:
                headers["X-API-Key"] = api_key
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
            )

    async def close(self):
        """Close the shared HTTP client. Call at shutdown."""
        await self._client.aclose()

    async def verify_identity(self, name: str, dob: str) -> dict:
        if not self._circuit.should_try():
            logger.warning("Records circuit breaker open, failing identity check")
            return {"verified": False, "error": "records system unavailable"}
        try:
            resp = await self._client.post(
                "/patients/verify",
                json={"patient_name": name, "date_of_birth": dob},
            )
            resp.raise_for_status()
            self._circuit.record_success()
            data = resp.json()
            return {"verified": data.get("verified") is True}
        except Exception as e:
            self._circuit.record_failure()
            logger.error("verify_identity failed: %s", e)
            return {"verified": False, "error": str(e)}

    async def submit_refill(self, name: str, dob: str, rx_number: str) -> dict:
        if not self._circuit.should_try():
            logger.warning("Records circuit breaker open, returning refill unavailable")
            return {"status": RefillStatus.GATEWAY_UNAVAILABLE.value, "error": "records system unavailable"}
        try:
            resp = await self._client.post(
                "/refills",
                json={
                    "rx_number": rx_number,
                    "patient_name": name,
                    "date_of_birth": dob,
                },
            )
            resp.raise_for_status()
            self._circuit.record_success()
            data = resp.json()
            status = RefillStatus.parse(data.get("status"))
            result = {"status": status.value}
            if status is RefillStatus.APPROVED:
                result["pickup_eta"] = data.get("pickup_eta") or DEFAULT_PICKUP_ETA
            return result
        except Exception as e:
            self._circuit.record_failure()
            logger.error("submit_refill failed: %s", e)
            return {"status": RefillStatus.GATEWAY_UNAVAILABLE.value, "error": str(e)}


class StubRecords:
    """Stand-in records system used until a real backend is configured.

    Verifies every caller and approves every refill.
    """

    def __init__(self, pickup_eta: str = DEFAULT_PICKUP_ETA):
        self.pickup_eta = pickup_eta

    async def close(self):
        pass

    async def verify_identity(self, name: str, dob: str) -> dict:
        return {"verified": True}

    async def submit_refill(self, name: str, dob: str, rx_number: str) -> dict:
        return {"status": RefillStatus.APPROVED.value, "pickup_eta": self.pickup_eta}
