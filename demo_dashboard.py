#!/usr/bin/env python3
"""
Demo script to run the workshop progress portal
Progress is kept in memory so every run starts from a fresh workshop
"""
import asyncio
import logging
import sys

from dashboard.main import DashboardApplication


async def main():
    """Run the portal demo"""
    print("🚀 Starting Workshop Progress Portal Demo")
    print("=" * 60)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    app = DashboardApplication(
        dashboard_host="0.0.0.0",
        dashboard_port=8080,
        persist=False
    )
    app.setup_signal_handlers()

    try:
        print("📊 Portal will be available at: http://localhost:8080")
        print("🔧 Features included:")
        print("  • Progress for the five troubleshooting scenarios")
        print("  • Simulated cluster connectivity indicator")
        print("  • Suggested scenario-manager commands")
        print("  • WebSocket-based live updates")
        print("\n⚡ Press Ctrl+C to stop the portal\n")

        await app.start()

    except KeyboardInterrupt:
        print("\n🛑 Received keyboard interrupt, shutting down gracefully...")
    except Exception as e:
        print(f"❌ Error running portal: {e}")
        sys.exit(1)
    finally:
        await app.stop()
        print("✅ Portal stopped")


if __name__ == "__main__":
    asyncio.run(main())
