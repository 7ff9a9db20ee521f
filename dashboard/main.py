"""
Main application runner for the workshop progress portal
Wires the progress tracker to its store, status source and the web dashboard
"""
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from tracker.config import TrackerConfig
from tracker.persistence import PersistenceStore, JsonFileStore, MemoryStore
from tracker.progress_tracker import ProgressTracker
from tracker.status_source import SimulatedStatusSource
from dashboard.server import DashboardServer, DashboardRenderer

logger = logging.getLogger(__name__)

class DashboardApplication:
    """Composition root: owns the single tracker instance and the dashboard server"""

    def __init__(self, dashboard_host: str = "0.0.0.0", dashboard_port: int = 8080,
                 config: Optional[TrackerConfig] = None, persist: bool = True):
        self.dashboard_host = dashboard_host
        self.dashboard_port = dashboard_port
        self.config = config or TrackerConfig()

        self.store: PersistenceStore
        if persist:
            self.store = JsonFileStore(str(self.config.data_dir), self.config.storage_key)
        else:
            self.store = MemoryStore()

        self.renderer = DashboardRenderer(command_prefix=self.config.command_prefix)

        self.tracker = ProgressTracker(
            store=self.store,
            status_source=SimulatedStatusSource(latency=self.config.status_check_latency),
            renderer=self.renderer,
            config=self.config
        )

        self.dashboard_server = DashboardServer(
            tracker=self.tracker,
            host=dashboard_host,
            port=dashboard_port,
            renderer=self.renderer
        )

        self._shutdown = False

    async def start(self):
        """Start the application"""
        logger.info("Starting Workshop Progress Portal")

        try:
            await self.tracker.initialize()
            logger.info("Progress tracker started")

            # Blocks until the server exits
            await self.dashboard_server.start()

        except Exception as e:
            logger.error(f"Failed to start application: {e}")
            await self.stop()
            raise

    async def stop(self):
        """Stop the application, saving progress one last time"""
        if self._shutdown:
            return

        self._shutdown = True
        logger.info("Stopping Workshop Progress Portal")

        try:
            await self.tracker.shutdown()
            logger.info("Progress saved")

            await self.dashboard_server.stop()

        except Exception as e:
            logger.error(f"Error during shutdown: {e}")

    def setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown"""
        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}, initiating shutdown...")
            asyncio.create_task(self.stop())

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)


def build_parser():
    import argparse

    parser = argparse.ArgumentParser(description="Workshop Progress Portal")
    parser.add_argument("--host", default="0.0.0.0", help="Dashboard host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="Dashboard port (default: 8080)")
    parser.add_argument("--data-dir", default="./progress-data",
                        help="Directory holding saved progress (default: ./progress-data)")
    parser.add_argument("--no-persist", action="store_true", help="Keep progress in memory only")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


async def main(argv=None):
    """Main entry point"""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    config = TrackerConfig(data_dir=Path(args.data_dir))
    app = DashboardApplication(
        dashboard_host=args.host,
        dashboard_port=args.port,
        config=config,
        persist=not args.no_persist
    )
    app.setup_signal_handlers()

    try:
        await app.start()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except Exception as e:
        logger.error(f"Application error: {e}")
        sys.exit(1)
    finally:
        await app.stop()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
