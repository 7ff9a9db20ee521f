import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

class ScenarioStatus(Enum):
    """Lifecycle states of a workshop scenario"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

# Built-in scenarios and their number of issues to fix, in display order
DEFAULT_SCENARIOS: Dict[str, int] = {
    "pod-startup-failures": 5,
    "dns-issues": 3,
    "rbac-issues": 2,
    "node-not-ready": 4,
    "image-pull-errors": 2,
}

def as_timestamp(value: Any) -> Optional[int]:
    """Return value as an integer ms timestamp, or None if it is not a finite number"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return int(value)

@dataclass
class Scenario:
    """Progress of a single named scenario"""
    name: str
    total: int
    completed: int = 0
    status: ScenarioStatus = ScenarioStatus.PENDING
    start_time: Optional[int] = None  # ms timestamp of first transition into running

    @property
    def progress_fraction(self) -> float:
        if self.total <= 0:
            return 0.0
        return self.completed / self.total

    def clamp(self):
        """Keep completed within [0, total] and completed status at full count"""
        self.completed = max(0, min(self.completed, self.total))
        if self.status == ScenarioStatus.COMPLETED:
            self.completed = self.total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "completed": self.completed,
            "status": self.status.value,
            "startTime": self.start_time,
        }

    def merge(self, data: Dict[str, Any]):
        """Apply persisted fields over this scenario, field by field.

        The total is fixed per scenario and is never taken from storage.
        Fields with unusable values keep their current value.
        """
        if "status" in data:
            try:
                self.status = ScenarioStatus(data["status"])
            except ValueError:
                logger.warning(f"Ignoring unknown status {data['status']!r} for scenario {self.name}")

        if "completed" in data:
            completed = data["completed"]
            if isinstance(completed, int) and not isinstance(completed, bool):
                self.completed = completed
            else:
                logger.warning(f"Ignoring invalid completed count {completed!r} for scenario {self.name}")

        if "startTime" in data:
            start_time = data["startTime"]
            timestamp = as_timestamp(start_time)
            if start_time is None or timestamp is not None:
                self.start_time = timestamp
            else:
                logger.warning(f"Ignoring invalid start time {start_time!r} for scenario {self.name}")

        self.clamp()


def default_scenarios() -> Dict[str, Scenario]:
    return {name: Scenario(name=name, total=total) for name, total in DEFAULT_SCENARIOS.items()}


@dataclass
class WorkshopSession:
    """All scenario progress for one workshop, as persisted"""
    workshop_start_time: int
    scenarios: Dict[str, Scenario] = field(default_factory=default_scenarios)
    last_updated: Optional[int] = None

    @classmethod
    def create(cls, now: int) -> "WorkshopSession":
        return cls(workshop_start_time=now)

    def get(self, name: str) -> Optional[Scenario]:
        return self.scenarios.get(name)

    def count_with_status(self, status: ScenarioStatus) -> int:
        return sum(1 for scenario in self.scenarios.values() if scenario.status == status)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenarios": {name: scenario.to_dict() for name, scenario in self.scenarios.items()},
            "workshopStartTime": self.workshop_start_time,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], now: int) -> "WorkshopSession":
        """Build a session from persisted data merged over the built-in defaults.

        Scenarios missing from the data keep their defaults; unknown scenario
        names and unknown keys are ignored.
        """
        start_time = as_timestamp(data.get("workshopStartTime"))
        session = cls(workshop_start_time=start_time or now)
        session.last_updated = as_timestamp(data.get("lastUpdated"))

        persisted = data.get("scenarios")
        if not isinstance(persisted, dict):
            persisted = {}

        for name, scenario_data in persisted.items():
            scenario = session.scenarios.get(name)
            if scenario is None:
                logger.debug(f"Ignoring unknown persisted scenario: {name}")
                continue
            if not isinstance(scenario_data, dict):
                logger.warning(f"Ignoring malformed persisted entry for scenario {name}")
                continue
            scenario.merge(scenario_data)

        return session
