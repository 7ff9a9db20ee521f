"""
Workshop progress tracker
Reconciles scenario progress with the persisted session, applies simulated
status checks and feeds view-state to a display renderer
"""
import asyncio
import logging
import math
import time
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Any, Optional

from .commands import CommandAction, SuggestedCommand
from .config import TrackerConfig
from .exceptions import StorageReadFailure
from .models import Scenario, ScenarioStatus, WorkshopSession
from .persistence import PersistenceStore, MemoryStore, encode_session, decode_session
from .renderer import DisplayRenderer, LoggingRenderer, ScenarioView, AggregateView, ClusterView
from .status_source import StatusSource, SimulatedStatusSource

logger = logging.getLogger(__name__)

def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class ProgressTracker:
    """Owns the workshop session and every mutation applied to it"""

    def __init__(self, store: Optional[PersistenceStore] = None,
                 status_source: Optional[StatusSource] = None,
                 renderer: Optional[DisplayRenderer] = None,
                 config: Optional[TrackerConfig] = None,
                 clock: Callable[[], int] = _wall_clock_ms,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.config = config or TrackerConfig()
        self.store = store or MemoryStore()
        self.status_source = status_source or SimulatedStatusSource(
            latency=self.config.status_check_latency, sleep=sleep
        )
        self.renderer = renderer or LoggingRenderer()
        self._clock = clock
        self._sleep = sleep

        # State
        self.session = WorkshopSession.create(self._clock())
        self.cluster_view = ClusterView.connecting()
        self.last_command: Optional[SuggestedCommand] = None

        # Background tasks
        self.cluster_poll_task: Optional[asyncio.Task] = None
        self.scenario_poll_task: Optional[asyncio.Task] = None
        self.initial_check_task: Optional[asyncio.Task] = None
        self._shutdown = False

    @property
    def scenarios(self) -> Dict[str, Scenario]:
        return self.session.scenarios

    @property
    def is_running(self) -> bool:
        return self.cluster_poll_task is not None and not self._shutdown

    async def initialize(self):
        """Load saved progress, render it and start the recurring checks"""
        self._shutdown = False
        self.load()
        self.update_display()

        if self.cluster_poll_task is None:
            self.cluster_poll_task = asyncio.create_task(self._cluster_poll_loop())
        if self.scenario_poll_task is None:
            self.scenario_poll_task = asyncio.create_task(self._scenario_poll_loop())

        if self.initial_check_task is not None and not self.initial_check_task.done():
            self.initial_check_task.cancel()
        self.initial_check_task = asyncio.create_task(self.check_cluster_status())

        logger.info(
            f"Progress tracker started with {len(self.scenarios)} scenarios "
            f"(cluster every {self.config.cluster_poll_interval}s, "
            f"running scenarios every {self.config.scenario_poll_interval}s)"
        )

    async def shutdown(self):
        """Stop the recurring checks and write a final save"""
        if self._shutdown:
            return

        self._shutdown = True

        for task in (self.cluster_poll_task, self.scenario_poll_task, self.initial_check_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        self.cluster_poll_task = None
        self.scenario_poll_task = None
        self.initial_check_task = None

        self.save()
        logger.info("Progress tracker stopped")

    def load(self):
        """Replace the session with the persisted one, or defaults if there is none"""
        now = self._clock()

        try:
            blob = self.store.load()
            if blob:
                self.session = decode_session(blob, now)
                logger.info(
                    f"Loaded saved progress: {self.session.count_with_status(ScenarioStatus.COMPLETED)}"
                    f"/{len(self.scenarios)} scenarios completed"
                )
                return
        except StorageReadFailure as e:
            logger.warning(f"Failed to load saved progress: {e}")

        self.session = WorkshopSession.create(now)

    def save(self):
        """Persist the session. Failures are logged, never raised."""
        self.session.last_updated = self._clock()

        try:
            self.store.save(encode_session(self.session))
        except Exception as e:
            logger.error(f"Error saving progress: {e}")

    async def check_cluster_status(self) -> ClusterView:
        """Query the status source and render the connectivity indicator"""
        try:
            status = await self.status_source.check_cluster()

            if status.connected:
                view = ClusterView.online(status.nodes, status.resources)
            else:
                view = ClusterView.offline()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Cluster status check failed: {e}")
            view = ClusterView.error()

        self.cluster_view = view
        self._render(self.renderer.render_cluster, view)
        return view

    async def check_scenario_status(self, name: str) -> Optional[Scenario]:
        """Apply a status report for one scenario. Unknown names are ignored."""
        scenario = self.scenarios.get(name)
        if scenario is None:
            logger.debug(f"Ignoring status check for unknown scenario: {name}")
            return None

        try:
            report = await self.status_source.check_scenario(name, scenario.total)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Status check for scenario {name} failed: {e}")
            return scenario

        scenario.status = report.status

        if report.status == ScenarioStatus.RUNNING and scenario.start_time is None:
            scenario.start_time = self._clock()

        if report.completed is not None:
            scenario.completed = report.completed

        scenario.clamp()

        self._render_scenario(scenario)
        self._render_aggregate()
        self.save()
        return scenario

    def start_scenario(self, name: str) -> Optional[SuggestedCommand]:
        """Move a pending scenario to running. Any other state is left alone."""
        scenario = self.scenarios.get(name)
        if scenario is None or scenario.status != ScenarioStatus.PENDING:
            return None

        scenario.status = ScenarioStatus.RUNNING
        scenario.start_time = self._clock()
        logger.info(f"Started scenario {name}")

        self._render_scenario(scenario)
        self.save()
        return self._emit_command(CommandAction.RUN, name)

    async def request_status(self, name: str) -> Optional[SuggestedCommand]:
        if name not in self.scenarios:
            return None

        await self.check_scenario_status(name)
        return self._emit_command(CommandAction.STATUS, name)

    def request_hints(self, name: str) -> Optional[SuggestedCommand]:
        if name not in self.scenarios:
            return None
        return self._emit_command(CommandAction.HINT, name)

    async def poll_running_scenarios(self) -> List[str]:
        """Re-check every scenario that is running at the time of the call"""
        running = [
            name for name, scenario in self.scenarios.items()
            if scenario.status == ScenarioStatus.RUNNING
        ]

        for name in running:
            await self.check_scenario_status(name)

        return running

    async def refresh(self) -> ClusterView:
        view = await self.check_cluster_status()
        self.update_display()
        return view

    def compute_aggregate(self) -> AggregateView:
        now = self._clock()
        total = len(self.scenarios)
        completed = self.session.count_with_status(ScenarioStatus.COMPLETED)

        return AggregateView(
            total_scenarios=total,
            completed_scenarios=completed,
            overall_percent=(completed / total) * 100 if total else 0.0,
            elapsed_minutes=math.floor((now - self.session.workshop_start_time) / 60000),
            last_updated=datetime.fromtimestamp(now / 1000).strftime("%H:%M:%S"),
        )

    def scenario_view(self, name: str) -> Optional[ScenarioView]:
        scenario = self.scenarios.get(name)
        if scenario is None:
            return None
        return ScenarioView.from_scenario(scenario)

    def scenario_views(self) -> List[ScenarioView]:
        return [ScenarioView.from_scenario(scenario) for scenario in self.scenarios.values()]

    def update_display(self):
        for scenario in self.scenarios.values():
            self._render_scenario(scenario)
        self._render_aggregate()

    def snapshot(self) -> Dict[str, Any]:
        """JSON-ready view of the whole dashboard"""
        return {
            "scenarios": [view.to_dict() for view in self.scenario_views()],
            "aggregate": self.compute_aggregate().to_dict(),
            "cluster": self.cluster_view.to_dict(),
            "workshop_start_time": self.session.workshop_start_time,
            "last_saved": self.session.last_updated,
        }

    def _emit_command(self, action: CommandAction, name: str) -> SuggestedCommand:
        command = SuggestedCommand(
            action=action,
            scenario=name,
            display_seconds=self.config.command_display_seconds,
        )
        self.last_command = command
        self._render(self.renderer.show_command, command)
        return command

    def _render_scenario(self, scenario: Scenario):
        self._render(self.renderer.render_scenario, ScenarioView.from_scenario(scenario))

    def _render_aggregate(self):
        self._render(self.renderer.render_aggregate, self.compute_aggregate())

    def _render(self, method: Callable[[Any], None], view: Any):
        try:
            method(view)
        except Exception as e:
            logger.error(f"Renderer error in {getattr(method, '__name__', method)}: {e}")

    async def _cluster_poll_loop(self):
        """Cadence A: connectivity check and aggregate refresh"""
        while not self._shutdown:
            try:
                await self._sleep(self.config.cluster_poll_interval)
                await self.check_cluster_status()
                self._render_aggregate()

            except asyncio.CancelledError:
                logger.debug("Cluster poll loop cancelled")
                break
            except Exception as e:
                logger.error(f"Error in cluster poll loop: {e}")

    async def _scenario_poll_loop(self):
        """Cadence B: re-check running scenarios"""
        while not self._shutdown:
            try:
                await self._sleep(self.config.scenario_poll_interval)
                await self.poll_running_scenarios()

            except asyncio.CancelledError:
                logger.debug("Scenario poll loop cancelled")
                break
            except Exception as e:
                logger.error(f"Error in scenario poll loop: {e}")
