"""Simulated IoT devices that exercise a running LedgerLock server."""

from ledgerlock.simulation.devices import DEVICES, SCENARIOS, Scenario, SimulatedDevice
from ledgerlock.simulation.runner import SimulationRunner

__all__ = ["DEVICES", "SCENARIOS", "Scenario", "SimulatedDevice", "SimulationRunner"]
