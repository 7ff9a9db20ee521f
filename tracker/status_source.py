"""
Status sources for cluster connectivity and scenario progress
The simulated source stands in for real kubectl queries
"""
import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .models import ScenarioStatus

logger = logging.getLogger(__name__)

@dataclass
class ClusterStatus:
    """Result of a cluster connectivity check"""
    connected: bool
    nodes: int = 0
    resources: int = 0

@dataclass
class ScenarioReport:
    """Observed status of a scenario; completed is None when unchanged"""
    status: ScenarioStatus
    completed: Optional[int] = None


class StatusSource:
    """Provider of connectivity and scenario progress signals"""

    async def check_cluster(self) -> ClusterStatus:
        raise NotImplementedError

    async def check_scenario(self, name: str, total: int) -> ScenarioReport:
        raise NotImplementedError


class SimulatedStatusSource(StatusSource):
    """Random placeholder for a real cluster API"""

    CONNECT_PROBABILITY = 0.7
    NODE_RANGE = (2, 4)
    RESOURCE_RANGE = (10, 29)

    def __init__(self, latency: float = 1.0, rng: Optional[random.Random] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.latency = latency
        self.rng = rng or random.Random()
        self._sleep = sleep

    async def check_cluster(self) -> ClusterStatus:
        await self._sleep(self.latency)

        # All three draws are made regardless of the outcome
        connected = self.rng.random() < self.CONNECT_PROBABILITY
        nodes = self.rng.randint(*self.NODE_RANGE)
        resources = self.rng.randint(*self.RESOURCE_RANGE)

        if not connected:
            logger.debug("Simulated cluster check: offline")
            return ClusterStatus(connected=False)

        logger.debug(f"Simulated cluster check: {nodes} nodes, {resources} pods")
        return ClusterStatus(connected=True, nodes=nodes, resources=resources)

    async def check_scenario(self, name: str, total: int) -> ScenarioReport:
        # Drawn independently of the current status
        status = self.rng.choice(list(ScenarioStatus))

        if status == ScenarioStatus.COMPLETED:
            return ScenarioReport(status=status, completed=total)
        if status == ScenarioStatus.RUNNING:
            return ScenarioReport(status=status, completed=self.rng.randrange(total) if total > 0 else 0)
        return ScenarioReport(status=status)
