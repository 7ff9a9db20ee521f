"""
Progress tracking core for the workshop progress portal
Owns the scenario state model, its persistence and the simulated status checks
"""

from .models import Scenario, ScenarioStatus, WorkshopSession
from .progress_tracker import ProgressTracker

__all__ = ["Scenario", "ScenarioStatus", "WorkshopSession", "ProgressTracker"]
