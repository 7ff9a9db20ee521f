from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any

class CommandAction(Enum):
    """Out-of-process actions the user is asked to run"""
    RUN = "run"
    STATUS = "status"
    HINT = "hint"

# Trailing arguments the scenario manager expects per action
_SHELL_SUFFIX = {
    CommandAction.RUN: " inject",
    CommandAction.STATUS: "",
    CommandAction.HINT: "",
}

@dataclass
class SuggestedCommand:
    """A command shown transiently to the user and copied to the clipboard"""
    action: CommandAction
    scenario: str
    display_seconds: float = 5.0

    @property
    def text(self) -> str:
        return f"{self.action.value} {self.scenario}"

    def shell_command(self, prefix: str = "./scenario-manager.sh") -> str:
        command = f"{self.text}{_SHELL_SUFFIX[self.action]}"
        return f"{prefix} {command}" if prefix else command

    def to_dict(self, prefix: str = "./scenario-manager.sh") -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "scenario": self.scenario,
            "text": self.text,
            "shell_command": self.shell_command(prefix),
            "display_seconds": self.display_seconds,
        }
