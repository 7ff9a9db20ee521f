"""
View-state consumed by display renderers
The tracker computes these values; renderers only present them
"""
import logging
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, Any

from .commands import SuggestedCommand
from .models import Scenario, ScenarioStatus

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    ScenarioStatus.PENDING: "Not Started",
    ScenarioStatus.RUNNING: "In Progress",
    ScenarioStatus.COMPLETED: "Completed",
    ScenarioStatus.FAILED: "Failed",
}

STATUS_ICONS = {
    ScenarioStatus.PENDING: "clock",
    ScenarioStatus.RUNNING: "play",
    ScenarioStatus.COMPLETED: "check-circle",
    ScenarioStatus.FAILED: "exclamation-triangle",
}

class ClusterState(Enum):
    """Connectivity indicator states"""
    UNKNOWN = "unknown"
    ONLINE = "online"
    OFFLINE = "offline"
    ERROR = "error"

@dataclass
class ScenarioView:
    name: str
    status: str
    label: str
    icon: str
    progress_percent: float
    issues_label: str

    @classmethod
    def from_scenario(cls, scenario: Scenario) -> "ScenarioView":
        return cls(
            name=scenario.name,
            status=scenario.status.value,
            label=STATUS_LABELS[scenario.status],
            icon=STATUS_ICONS[scenario.status],
            progress_percent=scenario.progress_fraction * 100,
            issues_label=f"{scenario.completed}/{scenario.total}",
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

@dataclass
class AggregateView:
    total_scenarios: int
    completed_scenarios: int
    overall_percent: float
    elapsed_minutes: int
    last_updated: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

@dataclass
class ClusterView:
    state: ClusterState
    text: str
    nodes: int = 0
    resources: int = 0

    @classmethod
    def connecting(cls) -> "ClusterView":
        return cls(state=ClusterState.UNKNOWN, text="Connecting...")

    @classmethod
    def online(cls, nodes: int, resources: int) -> "ClusterView":
        return cls(state=ClusterState.ONLINE, text=f"Connected ({nodes} nodes, {resources} pods)",
                   nodes=nodes, resources=resources)

    @classmethod
    def offline(cls) -> "ClusterView":
        return cls(state=ClusterState.OFFLINE, text="Cluster Offline")

    @classmethod
    def error(cls) -> "ClusterView":
        return cls(state=ClusterState.ERROR, text="Connection Error")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "text": self.text,
            "nodes": self.nodes,
            "resources": self.resources,
        }


class DisplayRenderer:
    """Receives view-state from the tracker. Subclasses override what they display."""

    def render_scenario(self, view: ScenarioView):
        pass

    def render_aggregate(self, view: AggregateView):
        pass

    def render_cluster(self, view: ClusterView):
        pass

    def show_command(self, command: SuggestedCommand):
        pass


class LoggingRenderer(DisplayRenderer):
    """Renderer that only logs, for headless runs"""

    def render_scenario(self, view: ScenarioView):
        logger.debug(f"Scenario {view.name}: {view.label} ({view.issues_label})")

    def render_aggregate(self, view: AggregateView):
        logger.debug(
            f"Overall progress {view.overall_percent:.0f}% "
            f"({view.completed_scenarios}/{view.total_scenarios}), {view.elapsed_minutes} min"
        )

    def render_cluster(self, view: ClusterView):
        logger.debug(f"Cluster status: {view.text}")

    def show_command(self, command: SuggestedCommand):
        logger.info(f"Run: {command.text}")
