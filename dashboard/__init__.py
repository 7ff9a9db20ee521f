"""
Dashboard package for the workshop progress portal
Provides the web page, REST actions and live WebSocket updates
"""

from .server import DashboardServer, DashboardRenderer
from .main import DashboardApplication

__all__ = ["DashboardServer", "DashboardRenderer", "DashboardApplication"]
