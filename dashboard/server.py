"""
Real-time dashboard server for the workshop progress portal
Provides WebSocket-based live progress updates and REST endpoints for user actions
"""
import asyncio
import json
import logging
import time
from typing import Dict, List, Optional, Any

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, HTTPException
from fastapi.responses import HTMLResponse
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from tracker.commands import SuggestedCommand
from tracker.progress_tracker import ProgressTracker
from tracker.renderer import DisplayRenderer, ScenarioView, AggregateView, ClusterView

logger = logging.getLogger(__name__)

class DashboardRenderer(DisplayRenderer):
    """Keeps the latest view-state and queues suggested commands for broadcast"""

    def __init__(self, command_prefix: str = "./scenario-manager.sh"):
        self.command_prefix = command_prefix
        self.scenarios: Dict[str, ScenarioView] = {}
        self.aggregate: Optional[AggregateView] = None
        self.cluster: Optional[ClusterView] = None
        self.pending_commands: List[Dict[str, Any]] = []

    def render_scenario(self, view: ScenarioView):
        self.scenarios[view.name] = view

    def render_aggregate(self, view: AggregateView):
        self.aggregate = view

    def render_cluster(self, view: ClusterView):
        self.cluster = view

    def show_command(self, command: SuggestedCommand):
        self.pending_commands.append(command.to_dict(self.command_prefix))

    def drain_commands(self) -> List[Dict[str, Any]]:
        commands, self.pending_commands = self.pending_commands, []
        return commands


class DashboardServer:
    """Dashboard server with WebSocket support"""

    def __init__(self, tracker: ProgressTracker, host: str = "0.0.0.0", port: int = 8080,
                 renderer: Optional[DashboardRenderer] = None, broadcast_interval: float = 2.0):
        self.tracker = tracker
        self.renderer = renderer
        self.host = host
        self.port = port
        self.broadcast_interval = broadcast_interval

        # WebSocket connection manager
        self.active_connections: List[WebSocket] = []

        self.app = FastAPI(
            title="Workshop Progress Portal",
            description="Live progress of the troubleshooting workshop scenarios",
            version="1.0.0"
        )

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        self._setup_routes()

        # Background task for broadcasting progress
        self.broadcast_task: Optional[asyncio.Task] = None
        self.server: Optional[uvicorn.Server] = None
        self._shutdown = False

    def _command_response(self, name: str, command: Optional[SuggestedCommand]) -> Dict[str, Any]:
        prefix = self.tracker.config.command_prefix
        return {
            "success": command is not None,
            "scenario": name,
            "command": command.to_dict(prefix) if command else None,
            "progress": self.tracker.scenario_view(name).to_dict(),
        }

    def _require_scenario(self, name: str):
        if name not in self.tracker.scenarios:
            raise HTTPException(status_code=404, detail=f"Unknown scenario: {name}")

    def _setup_routes(self):
        """Setup FastAPI routes"""

        @self.app.get("/", response_class=HTMLResponse)
        async def dashboard():
            """Serve the main dashboard page"""
            return DASHBOARD_HTML

        @self.app.get("/api/progress")
        async def get_progress():
            """Get the full progress snapshot"""
            try:
                return self.tracker.snapshot()
            except Exception as e:
                logger.error(f"Error getting progress: {e}")
                raise HTTPException(status_code=500, detail=str(e))

        @self.app.get("/api/scenarios")
        async def list_scenarios():
            return [view.to_dict() for view in self.tracker.scenario_views()]

        @self.app.get("/api/scenarios/{name}")
        async def get_scenario(name: str):
            view = self.tracker.scenario_view(name)
            if view is None:
                raise HTTPException(status_code=404, detail=f"Unknown scenario: {name}")
            return view.to_dict()

        @self.app.post("/api/scenarios/{name}/start")
        async def start_scenario(name: str):
            """Start a pending scenario"""
            self._require_scenario(name)
            command = self.tracker.start_scenario(name)
            return self._command_response(name, command)

        @self.app.post("/api/scenarios/{name}/status")
        async def check_status(name: str):
            """Check a scenario's status"""
            self._require_scenario(name)
            try:
                command = await self.tracker.request_status(name)
            except Exception as e:
                logger.error(f"Error checking status of {name}: {e}")
                raise HTTPException(status_code=500, detail=str(e))
            return self._command_response(name, command)

        @self.app.post("/api/scenarios/{name}/hints")
        async def get_hints(name: str):
            self._require_scenario(name)
            command = self.tracker.request_hints(name)
            return self._command_response(name, command)

        @self.app.get("/api/cluster")
        async def get_cluster():
            return self.tracker.cluster_view.to_dict()

        @self.app.post("/api/refresh")
        async def refresh():
            """Re-check the cluster and redraw, as when the page becomes visible again"""
            try:
                await self.tracker.refresh()
                return self.tracker.snapshot()
            except Exception as e:
                logger.error(f"Error refreshing progress: {e}")
                raise HTTPException(status_code=500, detail=str(e))

        @self.app.websocket("/ws")
        async def websocket_endpoint(websocket: WebSocket):
            """WebSocket endpoint for real-time updates"""
            await self.connect_websocket(websocket)
            try:
                while True:
                    message = await websocket.receive_text()
                    data = json.loads(message)

                    if data.get("type") == "ping":
                        await websocket.send_text(json.dumps({"type": "pong"}))
                    elif data.get("type") == "subscribe":
                        await websocket.send_text(json.dumps({
                            "type": "subscription_confirmed",
                            "timestamp": time.time(),
                            "progress": self.tracker.snapshot()
                        }))

            except WebSocketDisconnect:
                self.disconnect_websocket(websocket)
            except Exception as e:
                logger.error(f"WebSocket error: {e}")
                self.disconnect_websocket(websocket)

    async def connect_websocket(self, websocket: WebSocket):
        """Add new WebSocket connection"""
        await websocket.accept()
        self.active_connections.append(websocket)
        logger.info(f"WebSocket connected. Active connections: {len(self.active_connections)}")

    def disconnect_websocket(self, websocket: WebSocket):
        """Remove WebSocket connection"""
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
        logger.info(f"WebSocket disconnected. Active connections: {len(self.active_connections)}")

    async def broadcast_to_websockets(self, message: dict):
        """Broadcast message to all connected WebSocket clients"""
        if not self.active_connections:
            return

        message_str = json.dumps(message)
        disconnected_connections = []

        for connection in self.active_connections:
            try:
                await connection.send_text(message_str)
            except Exception as e:
                logger.warning(f"Failed to send to WebSocket: {e}")
                disconnected_connections.append(connection)

        for connection in disconnected_connections:
            self.disconnect_websocket(connection)

    async def broadcast_once(self):
        """Push queued commands and a fresh progress snapshot to every client"""
        if self.renderer is not None:
            for command in self.renderer.drain_commands():
                await self.broadcast_to_websockets({"type": "suggested_command", **command})

        if self.active_connections:
            await self.broadcast_to_websockets({
                "type": "progress_update",
                "timestamp": time.time(),
                "progress": self.tracker.snapshot()
            })

    async def _broadcast_progress_loop(self):
        """Background task to broadcast progress to WebSocket clients"""
        while not self._shutdown:
            try:
                await self.broadcast_once()
                await asyncio.sleep(self.broadcast_interval)

            except asyncio.CancelledError:
                logger.info("Progress broadcast loop cancelled")
                break
            except Exception as e:
                logger.error(f"Error in progress broadcast loop: {e}")
                await asyncio.sleep(5.0)

    async def start(self):
        """Start the dashboard server"""
        self._shutdown = False

        self.broadcast_task = asyncio.create_task(self._broadcast_progress_loop())

        logger.info(f"Starting dashboard server on {self.host}:{self.port}")

        config = uvicorn.Config(
            app=self.app,
            host=self.host,
            port=self.port,
            log_level="info"
        )
        self.server = uvicorn.Server(config)
        await self.server.serve()

    async def stop(self):
        """Stop the dashboard server"""
        self._shutdown = True

        if self.server is not None:
            self.server.should_exit = True

        if self.broadcast_task:
            self.broadcast_task.cancel()
            try:
                await self.broadcast_task
            except asyncio.CancelledError:
                pass
            self.broadcast_task = None

        logger.info("Dashboard server stopped")


DASHBOARD_HTML = '''
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Workshop Progress Portal</title>
    <style>
        body { font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; background: #f5f5f5; color: #333; margin: 0; }
        .header { background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); color: white; padding: 1rem 2rem; }
        .status-indicator { display: inline-block; width: 12px; height: 12px; border-radius: 50%; background: #999; }
        .status-indicator.online { background: #4CAF50; }
        .status-indicator.offline, .status-indicator.error { background: #f44336; }
        .dashboard { padding: 2rem; display: grid; grid-template-columns: repeat(auto-fit, minmax(280px, 1fr)); gap: 1.5rem; }
        .card { background: white; border-radius: 8px; padding: 1.5rem; box-shadow: 0 2px 10px rgba(0,0,0,0.1); }
        .card.running { border-left: 4px solid #2196f3; }
        .card.completed { border-left: 4px solid #4CAF50; }
        .card.failed { border-left: 4px solid #f44336; }
        .bar { background: #eee; border-radius: 4px; height: 8px; margin: 0.75rem 0; }
        .bar > div { background: #667eea; height: 100%; border-radius: 4px; }
        .full-width { grid-column: 1 / -1; }
        #notification { position: fixed; top: 20px; right: 20px; background: #2c3e50; color: white; padding: 15px 20px;
                        border-radius: 8px; font-family: Monaco, monospace; display: none; }
    </style>
</head>
<body>
    <div class="header">
        <h1>Troubleshooting Workshop Progress</h1>
        <span class="status-indicator" id="statusIndicator"></span>
        <span id="statusText">Connecting...</span>
    </div>

    <div class="dashboard">
        <div class="card full-width">
            <h3>Overall Progress</h3>
            <div class="bar"><div id="overallProgress" style="width: 0%"></div></div>
            <span id="completedScenarios">0</span>/<span id="totalScenarios">0</span> scenarios,
            <span id="timeSpent">0</span> min, updated <span id="lastUpdated">--</span>
        </div>
        <div id="scenarioCards" class="full-width dashboard" style="padding: 0"></div>
    </div>
    <div id="notification"></div>

    <script>
        let ws = null;

        function connectWebSocket() {
            const protocol = window.location.protocol === 'https:' ? 'wss:' : 'ws:';
            ws = new WebSocket(`${protocol}//${window.location.host}/ws`);
            ws.onopen = () => ws.send(JSON.stringify({type: 'subscribe'}));
            ws.onmessage = (event) => {
                const data = JSON.parse(event.data);
                if (data.progress) renderProgress(data.progress);
                if (data.type === 'suggested_command') showCommand(data.shell_command, data.display_seconds);
            };
            ws.onclose = () => setTimeout(connectWebSocket, 5000);
        }

        function renderProgress(progress) {
            const cluster = progress.cluster;
            document.getElementById('statusIndicator').className = `status-indicator ${cluster.state}`;
            document.getElementById('statusText').textContent = cluster.text;

            const agg = progress.aggregate;
            document.getElementById('overallProgress').style.width = `${agg.overall_percent}%`;
            document.getElementById('completedScenarios').textContent = agg.completed_scenarios;
            document.getElementById('totalScenarios').textContent = agg.total_scenarios;
            document.getElementById('timeSpent').textContent = agg.elapsed_minutes;
            document.getElementById('lastUpdated').textContent = agg.last_updated;

            document.getElementById('scenarioCards').innerHTML = progress.scenarios.map(s => `
                <div class="card ${s.status}">
                    <h3>${s.name}</h3>
                    <div>${s.label}</div>
                    <div class="bar"><div style="width: ${s.progress_percent}%"></div></div>
                    <div>${s.issues_label}</div>
                    <button onclick="action('${s.name}', 'start')">Start</button>
                    <button onclick="action('${s.name}', 'status')">Check Status</button>
                    <button onclick="action('${s.name}', 'hints')">Hints</button>
                </div>`).join('');
        }

        async function action(name, kind) {
            const response = await fetch(`/api/scenarios/${name}/${kind}`, {method: 'POST'});
            const result = await response.json();
            if (result.command) showCommand(result.command.shell_command, result.command.display_seconds);
            const progress = await (await fetch('/api/progress')).json();
            renderProgress(progress);
        }

        function showCommand(command, seconds) {
            const notification = document.getElementById('notification');
            notification.textContent = `Run: ${command}`;
            notification.style.display = 'block';
            setTimeout(() => { notification.style.display = 'none'; }, seconds * 1000);
            navigator.clipboard.writeText(command).catch(() => {
                console.warn('Failed to copy command to clipboard');
            });
        }

        document.addEventListener('visibilitychange', async () => {
            if (!document.hidden) {
                renderProgress(await (await fetch('/api/refresh', {method: 'POST'})).json());
            }
        });

        document.addEventListener('DOMContentLoaded', connectWebSocket);
    </script>
</body>
</html>
'''
