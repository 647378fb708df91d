"""
Device Simulation Runner

Drives a running LedgerLock server the way a small building would:

1. Setup: register every device, grant the initial edges
2. Continuous: each scenario requests access on its own interval

Every request goes through the HTTP gateway, so every attempt lands in
the audit log exactly as real device traffic would.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

import httpx

from ledgerlock.api.auth.jwt import create_signer_token
from ledgerlock.api.config import settings
from ledgerlock.simulation.devices import DEVICES, INITIAL_GRANTS, SCENARIOS, Scenario

logger = logging.getLogger(__name__)


@dataclass
class ScenarioStats:
    """Counters for one scenario loop."""
    name: str
    attempts: int = 0
    granted: int = 0
    denied: int = 0
    errors: int = 0
    last_run_at: Optional[datetime] = None
    last_error: Optional[str] = None


class SimulationRunner:
    """
    Registers the simulated devices and replays their access attempts.

    Owner calls use `owner_token` when given, otherwise a token minted
    locally for the configured ledger owner. Device tokens are always
    minted locally, so the runner must share the server's JWT secret.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        owner_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        scenarios: Optional[List[Scenario]] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.SIMULATION_API_URL).rstrip("/")
        self._owner_token = owner_token or settings.SIMULATION_OWNER_TOKEN
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout or settings.SIMULATION_REQUEST_TIMEOUT_SEC
        self.scenarios = scenarios if scenarios is not None else list(SCENARIOS)

        self._device_tokens: Dict[str, str] = {}
        self._tasks: List[asyncio.Task] = []
        self._running = False
        self.stats: Dict[str, ScenarioStats] = {
            scenario.description: ScenarioStats(name=scenario.description)
            for scenario in self.scenarios
        }

    # ==================== HTTP ====================

    async def __aenter__(self) -> "SimulationRunner":
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _owner_headers(self) -> Dict[str, str]:
        if not self._owner_token:
            self._owner_token = create_signer_token(settings.LEDGER_OWNER_ADDRESS)
        return {"Authorization": f"Bearer {self._owner_token}"}

    def _device_headers(self, address: str) -> Dict[str, str]:
        if address not in self._device_tokens:
            self._device_tokens[address] = create_signer_token(address)
        return {"Authorization": f"Bearer {self._device_tokens[address]}"}

    async def _post(self, path: str, body: dict, headers: Dict[str, str]) -> httpx.Response:
        if self._client is None:
            raise RuntimeError("SimulationRunner must be used as an async context manager")
        return await self._client.post(f"{self.base_url}{path}", json=body, headers=headers)

    # ==================== Setup ====================

    async def setup(self) -> None:
        """Register all devices and grant the initial permissions."""
        logger.info("--- Starting Simulation Setup ---")

        for device in DEVICES.values():
            response = await self._post(
                "/identities/register",
                {"address": device.address, "name": device.name, "role": device.role},
                self._owner_headers(),
            )
            if response.status_code == 409:
                logger.info(f"{device.name} already registered ({device.address})")
                continue
            response.raise_for_status()
            logger.info(f"Registered {device.name} as {device.role} ({device.address})")

        for requester_key, resource_key in INITIAL_GRANTS:
            requester, resource = DEVICES[requester_key], DEVICES[resource_key]
            response = await self._post(
                "/permissions/grant",
                {"requester": requester.address, "resource": resource.address},
                self._owner_headers(),
            )
            response.raise_for_status()
            logger.info(f"Granted {requester.name} access to {resource.name}")

        logger.info("--- Simulation Setup Complete ---")

    # ==================== Continuous ====================

    async def request(self, scenario: Scenario) -> Optional[bool]:
        """
        Submit one access attempt for a scenario.

        Returns:
            The access decision, or None if the attempt failed
        """
        stats = self.stats[scenario.description]
        requester = DEVICES[scenario.requester]
        resource = DEVICES[scenario.resource]

        stats.attempts += 1
        stats.last_run_at = datetime.now(timezone.utc)

        response = await self._post(
            "/access/request",
            {"requester": requester.address, "resource": resource.address},
            self._device_headers(requester.address),
        )
        if response.status_code != 200:
            error = response.json().get("error", {})
            stats.errors += 1
            stats.last_error = error.get("reason", response.text)
            logger.warning(
                f"[EVENT] {scenario.description}... failed: "
                f"{error.get('kind', response.status_code)} {stats.last_error}"
            )
            return None

        granted = bool(response.json()["access_granted"])
        if granted:
            stats.granted += 1
        else:
            stats.denied += 1
        logger.info(f"[EVENT] {scenario.description}... Access Granted: {granted}")
        return granted

    async def _run_loop(self, scenario: Scenario) -> None:
        while self._running:
            try:
                await asyncio.sleep(scenario.interval_sec)
                await self.request(scenario)
            except asyncio.CancelledError:
                break
            except httpx.HTTPError as e:
                stats = self.stats[scenario.description]
                stats.errors += 1
                stats.last_error = str(e)
                logger.error(f"{scenario.description} request failed: {e}")

    async def start(self) -> None:
        """Start one loop per scenario."""
        if self._running:
            return

        self._running = True
        self._tasks = [asyncio.create_task(self._run_loop(s)) for s in self.scenarios]
        logger.info("--- Starting Continuous Device Simulation ---")

    async def stop(self) -> None:
        """Cancel all scenario loops."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []

    async def run_forever(self) -> None:
        """Setup, then simulate until cancelled."""
        await self.setup()
        await self.start()
        try:
            await asyncio.gather(*self._tasks)
        finally:
            await self.stop()
