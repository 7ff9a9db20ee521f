from dataclasses import dataclass
from pathlib import Path


@dataclass
class TrackerConfig:
    """Tunable settings for the progress tracker"""
    cluster_poll_interval: float = 30.0  # cadence A, seconds
    scenario_poll_interval: float = 10.0  # cadence B, seconds
    status_check_latency: float = 1.0
    command_display_seconds: float = 5.0
    storage_key: str = "workshop-progress"
    data_dir: Path = Path("./progress-data")
    command_prefix: str = "./scenario-manager.sh"
