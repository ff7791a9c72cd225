"""Console display helpers — startup banner and ad schedule tables."""
from rich.console import Console
from rich.table import Table

from .config import APP_VERSION, WEB_HOST, WEB_PORT
from .schedule import PRICING, schedule_for, slot_label

console = Console()


def print_header():
    console.print(
        f"\n  [bold cyan]📻  Busk Radio[/bold cyan]"
        f"  [dim]v{APP_VERSION}[/dim]"
    )


def print_startup(ads: int, pending_requests: int):
    console.print(
        f"  [bold]{ads}[/bold] ads booked · [bold]{pending_requests}[/bold] requests waiting"
    )
    console.print(f"  [dim]Listening on http://{WEB_HOST}:{WEB_PORT}[/dim]\n")


def schedule_table(show_duration: float) -> Table:
    schedule = schedule_for(show_duration)
    table = Table(title=f"Ad schedule — {schedule.key} ({schedule.total_ad_time} ad-min)")
    table.add_column("Minute", justify="right")
    table.add_column("Length")
    table.add_column("Type")
    table.add_column("Placement", style="dim")
    table.add_column("Standard", justify="right")
    table.add_column("Branded", justify="right")
    for slot in schedule.ad_slots:
        prices = PRICING[slot.duration]
        table.add_row(
            str(slot.position),
            f"{slot.duration}s",
            slot.type,
            slot_label(slot.position, show_duration),
            f"${prices['standard']}",
            f"${prices['branded']}",
        )
    return table
