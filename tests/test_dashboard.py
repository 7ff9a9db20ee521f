"""
Tests for the progress portal dashboard
"""
import pytest
import asyncio
import json
from unittest.mock import Mock, AsyncMock, patch
from fastapi.testclient import TestClient

from dashboard.main import DashboardApplication, build_parser
from dashboard.server import DashboardServer, DashboardRenderer
from tracker.config import TrackerConfig
from tracker.models import ScenarioStatus
from tracker.persistence import MemoryStore, JsonFileStore
from tracker.progress_tracker import ProgressTracker
from tracker.status_source import StatusSource, ClusterStatus, ScenarioReport

class TestDashboardServer:
    """Test dashboard server functionality"""

    @pytest.fixture
    def status_source(self):
        source = Mock(spec=StatusSource)
        source.check_cluster = AsyncMock(return_value=ClusterStatus(connected=True, nodes=2, resources=15))
        source.check_scenario = AsyncMock(
            return_value=ScenarioReport(status=ScenarioStatus.COMPLETED, completed=3)
        )
        return source

    @pytest.fixture
    def dashboard_renderer(self):
        return DashboardRenderer()

    @pytest.fixture
    def progress_tracker(self, status_source, dashboard_renderer):
        return ProgressTracker(
            store=MemoryStore(),
            status_source=status_source,
            renderer=dashboard_renderer
        )

    @pytest.fixture
    def dashboard_server(self, progress_tracker, dashboard_renderer):
        return DashboardServer(progress_tracker, host="127.0.0.1", port=8081, renderer=dashboard_renderer)

    @pytest.fixture
    def client(self, dashboard_server):
        return TestClient(dashboard_server.app)

    def test_dashboard_initialization(self, dashboard_server, progress_tracker):
        """Test dashboard server initialization"""
        assert dashboard_server.tracker == progress_tracker
        assert dashboard_server.host == "127.0.0.1"
        assert dashboard_server.port == 8081
        assert dashboard_server.active_connections == []
        assert dashboard_server.app is not None

    def test_dashboard_html_page(self, client):
        """Test the main dashboard HTML page"""
        response = client.get("/")

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "Workshop Progress" in response.text
        assert "clipboard" in response.text

    def test_api_progress_endpoint(self, client):
        response = client.get("/api/progress")

        assert response.status_code == 200
        data = response.json()
        assert len(data["scenarios"]) == 5
        assert data["aggregate"]["total_scenarios"] == 5
        assert data["aggregate"]["overall_percent"] == 0.0
        assert data["cluster"]["state"] == "unknown"

    def test_api_scenarios_endpoint(self, client):
        response = client.get("/api/scenarios")

        assert response.status_code == 200
        names = [view["name"] for view in response.json()]
        assert names[0] == "pod-startup-failures"
        assert "image-pull-errors" in names

    def test_api_single_scenario(self, client):
        response = client.get("/api/scenarios/rbac-issues")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "pending"
        assert data["label"] == "Not Started"
        assert data["issues_label"] == "0/2"

    def test_unknown_scenario_returns_404(self, client):
        assert client.get("/api/scenarios/nope").status_code == 404
        assert client.post("/api/scenarios/nope/start").status_code == 404
        assert client.post("/api/scenarios/nope/status").status_code == 404
        assert client.post("/api/scenarios/nope/hints").status_code == 404

    def test_start_scenario_endpoint(self, client, progress_tracker, dashboard_renderer):
        response = client.post("/api/scenarios/dns-issues/start")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] == True
        assert data["command"]["text"] == "run dns-issues"
        assert data["command"]["shell_command"] == "./scenario-manager.sh run dns-issues inject"
        assert data["progress"]["status"] == "running"
        assert progress_tracker.scenarios["dns-issues"].status == ScenarioStatus.RUNNING
        assert dashboard_renderer.pending_commands[0]["text"] == "run dns-issues"

    def test_start_twice_reports_no_change(self, client):
        client.post("/api/scenarios/dns-issues/start")
        response = client.post("/api/scenarios/dns-issues/start")

        data = response.json()
        assert data["success"] == False
        assert data["command"] is None

    def test_status_endpoint(self, client, status_source):
        response = client.post("/api/scenarios/dns-issues/status")

        assert response.status_code == 200
        data = response.json()
        assert data["command"]["shell_command"] == "./scenario-manager.sh status dns-issues"
        assert data["progress"]["status"] == "completed"
        assert data["progress"]["issues_label"] == "3/3"
        status_source.check_scenario.assert_awaited_once_with("dns-issues", 3)

    def test_hints_endpoint(self, client, progress_tracker):
        response = client.post("/api/scenarios/node-not-ready/hints")

        assert response.status_code == 200
        data = response.json()
        assert data["command"]["text"] == "hint node-not-ready"
        assert data["command"]["display_seconds"] == 5.0
        assert progress_tracker.scenarios["node-not-ready"].status == ScenarioStatus.PENDING

    def test_cluster_and_refresh_endpoints(self, client):
        assert client.get("/api/cluster").json()["state"] == "unknown"

        response = client.post("/api/refresh")

        assert response.status_code == 200
        assert response.json()["cluster"]["text"] == "Connected (2 nodes, 15 pods)"
        assert client.get("/api/cluster").json()["state"] == "online"

    def test_websocket_ping_and_subscribe(self, client):
        with client.websocket_connect("/ws") as websocket:
            websocket.send_text(json.dumps({"type": "ping"}))
            assert json.loads(websocket.receive_text()) == {"type": "pong"}

            websocket.send_text(json.dumps({"type": "subscribe"}))
            reply = json.loads(websocket.receive_text())
            assert reply["type"] == "subscription_confirmed"
            assert len(reply["progress"]["scenarios"]) == 5

    @pytest.mark.asyncio
    async def test_websocket_connection(self, dashboard_server):
        """Test WebSocket connection handling"""
        mock_websocket = AsyncMock()
        mock_websocket.accept = AsyncMock()

        await dashboard_server.connect_websocket(mock_websocket)

        assert mock_websocket in dashboard_server.active_connections
        assert len(dashboard_server.active_connections) == 1

        dashboard_server.disconnect_websocket(mock_websocket)
        assert len(dashboard_server.active_connections) == 0

    @pytest.mark.asyncio
    async def test_websocket_broadcast(self, dashboard_server):
        """Test WebSocket broadcast functionality"""
        mock_ws1 = AsyncMock()
        mock_ws2 = AsyncMock()

        await dashboard_server.connect_websocket(mock_ws1)
        await dashboard_server.connect_websocket(mock_ws2)

        message = {"type": "test", "data": "hello"}
        await dashboard_server.broadcast_to_websockets(message)

        mock_ws1.send_text.assert_called_once()
        mock_ws2.send_text.assert_called_once()

        sent_message = mock_ws1.send_text.call_args[0][0]
        assert json.loads(sent_message) == message

    @pytest.mark.asyncio
    async def test_broadcast_drops_failed_connections(self, dashboard_server):
        healthy = AsyncMock()
        broken = AsyncMock()
        broken.send_text.side_effect = RuntimeError("connection closed")

        await dashboard_server.connect_websocket(healthy)
        await dashboard_server.connect_websocket(broken)
        await dashboard_server.broadcast_to_websockets({"type": "test"})

        assert dashboard_server.active_connections == [healthy]

    @pytest.mark.asyncio
    async def test_broadcast_once_sends_commands_then_progress(self, dashboard_server, progress_tracker,
                                                               dashboard_renderer):
        websocket = AsyncMock()
        await dashboard_server.connect_websocket(websocket)
        progress_tracker.request_hints("dns-issues")

        await dashboard_server.broadcast_once()

        sent = [json.loads(call.args[0]) for call in websocket.send_text.call_args_list]
        assert [message["type"] for message in sent] == ["suggested_command", "progress_update"]
        assert sent[0]["text"] == "hint dns-issues"
        assert dashboard_renderer.pending_commands == []

    @pytest.mark.asyncio
    async def test_stop_cancels_broadcast_loop(self, dashboard_server):
        dashboard_server.broadcast_task = asyncio.create_task(dashboard_server._broadcast_progress_loop())
        await asyncio.sleep(0)

        await dashboard_server.stop()

        assert dashboard_server.broadcast_task is None


class TestDashboardRenderer:

    def test_keeps_latest_views(self):
        renderer = DashboardRenderer()
        tracker = ProgressTracker(renderer=renderer)

        tracker.update_display()

        assert set(renderer.scenarios) == set(tracker.scenarios)
        assert renderer.aggregate.total_scenarios == 5

    def test_command_prefix(self):
        renderer = DashboardRenderer(command_prefix="")
        tracker = ProgressTracker(renderer=renderer)

        tracker.request_hints("rbac-issues")

        assert renderer.drain_commands()[0]["shell_command"] == "hint rbac-issues"
        assert renderer.drain_commands() == []


class TestDashboardApplication:

    def test_persistent_store_uses_data_dir(self, tmp_path):
        app = DashboardApplication(config=TrackerConfig(data_dir=tmp_path))

        assert isinstance(app.store, JsonFileStore)
        assert app.store.path == tmp_path / "workshop-progress.json"
        assert app.tracker.renderer is app.renderer
        assert app.dashboard_server.tracker is app.tracker

    def test_no_persist_uses_memory_store(self):
        app = DashboardApplication(persist=False)
        assert isinstance(app.store, MemoryStore)

    @pytest.mark.asyncio
    async def test_start_and_stop_saves_progress(self, tmp_path):
        app = DashboardApplication(config=TrackerConfig(data_dir=tmp_path))

        with patch.object(app.dashboard_server, "start", new=AsyncMock()):
            await app.start()

        app.tracker.start_scenario("image-pull-errors")
        await app.stop()

        saved = json.loads((tmp_path / "workshop-progress.json").read_text())
        assert saved["scenarios"]["image-pull-errors"]["status"] == "running"
        assert not app.tracker.is_running

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self):
        app = DashboardApplication(persist=False)
        app.tracker.shutdown = AsyncMock()
        app.dashboard_server.stop = AsyncMock()

        await app.stop()
        await app.stop()

        app.tracker.shutdown.assert_awaited_once()
        app.dashboard_server.stop.assert_awaited_once()

    def test_argument_parser(self):
        args = build_parser().parse_args(["--port", "9090", "--no-persist", "--data-dir", "/tmp/x"])

        assert args.port == 9090
        assert args.no_persist
        assert args.data_dir == "/tmp/x"
        assert args.host == "0.0.0.0"
