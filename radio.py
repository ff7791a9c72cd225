"""Busk Radio — entry point.

    python radio.py                 serve the station API on WEB_HOST:WEB_PORT
    python radio.py schedule 90     print the ad schedule for a 90-minute show
"""
import asyncio
import logging
import sys

import uvicorn
from rich import print as rprint
from rich.logging import RichHandler

from busk.config import WEB_HOST, WEB_PORT
from busk.preflight import run_preflight
from busk.station import Station
from busk.ui import console, print_header, print_startup, schedule_table
from busk.web.server import create_app


def _setup_logging():
    logging.basicConfig(
        level=logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


async def main():
    print_header()

    ok = await run_preflight()
    if not ok:
        sys.exit(1)

    station = Station.from_config()
    print_startup(
        ads=len(station.store.all_advertisements()),
        pending_requests=len(station.store.pending_requests()),
    )

    server = uvicorn.Server(uvicorn.Config(
        create_app(station),
        host=WEB_HOST,
        port=WEB_PORT,
        log_config=None,
    ))
    await server.serve()


if __name__ == "__main__":
    _setup_logging()

    if len(sys.argv) >= 2 and sys.argv[1] == "schedule":
        try:
            minutes = float(sys.argv[2]) if len(sys.argv) > 2 else 60
        except ValueError:
            rprint("[red]Usage: python radio.py schedule <minutes>[/red]")
            sys.exit(2)
        console.print(schedule_table(minutes))
        sys.exit(0)

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        rprint("\n\n  [bold]Station off the air.[/bold] Goodbye.\n")
        sys.exit(0)
