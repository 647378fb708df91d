"""
Simulated device roster.

Each device signs its own access requests; the server only needs the
address, so no key material is kept here.
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple


@dataclass(frozen=True)
class SimulatedDevice:
    key: str
    name: str
    role: str
    address: str


DEVICES: Dict[str, SimulatedDevice] = {
    device.key: device
    for device in (
        SimulatedDevice(
            key="smartLock",
            name="Main Entrance Smart Lock",
            role="Device_Lock",
            address="0x6F93aa46273567EF188b76f50366f4E38598f88F",
        ),
        SimulatedDevice(
            key="securityCamera",
            name="Lobby Security Camera",
            role="Device_Camera",
            address="0x5Af7d060A864fdbeDe900A709a34f57eAE8FbAAE",
        ),
        SimulatedDevice(
            key="dataServer",
            name="Secure Data Server",
            role="Device_Server",
            address="0x29FA168772FA6ED3b65Cd42CacFa00316297a949",
        ),
        SimulatedDevice(
            key="employeeFob",
            name="Employee Fob",
            role="User_Employee",
            address="0x1C00B42fDeb1fe0F7b10c7c444645133423de484",
        ),
        # Never granted anything
        SimulatedDevice(
            key="unauthorizedActor",
            name="Unauthorized Actor",
            role="Guest",
            address="0x22Cd0A86960851ff5F150ad3D504ccCdcE6F4777",
        ),
    )
}

# (requester, resource) edges granted during setup
INITIAL_GRANTS: List[Tuple[str, str]] = [
    ("employeeFob", "smartLock"),
    ("securityCamera", "dataServer"),
]


@dataclass(frozen=True)
class Scenario:
    """A device that periodically requests access to a resource."""

    requester: str
    resource: str
    interval_sec: float
    description: str


SCENARIOS: List[Scenario] = [
    Scenario("employeeFob", "smartLock", 15.0, "Employee Fob attempts to unlock door"),
    Scenario("securityCamera", "dataServer", 10.0, "Security Camera attempts to store data"),
    Scenario("unauthorizedActor", "dataServer", 20.0, "Unauthorized Actor attempts to access server"),
]
