"""Startup Preflight Check"""
from rich.console import Console

from . import acestep, speech
from .config import ACESTEP_HOST, APP_VERSION, DATA_DIR, MUSIC_BACKEND, SPEECH_HOST

console = Console()


async def run_preflight() -> bool:
    """
    Run all startup checks. Print results. Return True only if ALL pass.
    """
    console.print(f"\n  [bold]📻  Busk Radio v{APP_VERSION}[/bold] — preflight check\n")

    checks = [
        ("Python deps", _check_python_deps),
        ("Data directory", _check_data_dir),
        ("Speech server", _check_speech),
        ("Music generator", _check_generator),
    ]

    results = []
    for i, (label, fn) in enumerate(checks, 1):
        ok, msg, fix = await fn()
        results.append((ok, label, msg, fix))
        icon = "[green]✓[/green]" if ok else "[red]✗[/red]"
        dots = "." * max(30 - len(label), 3)
        status = f"[green]{msg}[/green]" if ok else f"[red]{msg}[/red]"
        console.print(f"  [{i}/{len(checks)}] {label} {dots} {icon} {status}")

    failures = [(label, fix) for ok, label, _, fix in results if not ok and fix]
    if failures:
        console.print("")
        for label, fix in failures:
            console.print(f"  [yellow]Fix for {label}:[/yellow]")
            for line in fix.strip().splitlines():
                console.print(f"    {line}")
            console.print("")
        return False

    console.print("")
    return True


async def _check_python_deps() -> tuple[bool, str, str]:
    missing = []
    versions = []
    for name in ("httpx", "starlette", "uvicorn"):
        try:
            mod = __import__(name)
            versions.append(f"{name} {getattr(mod, '__version__', 'ok')}")
        except ImportError:
            missing.append(name)

    if missing:
        return False, f"missing: {', '.join(missing)}", "Run: pip install -e ."
    return True, ", ".join(versions), ""


async def _check_data_dir() -> tuple[bool, str, str]:
    try:
        DATA_DIR.mkdir(parents=True, exist_ok=True)
        probe = DATA_DIR / ".write-test"
        probe.write_text("ok")
        probe.unlink()
    except OSError as e:
        return False, "not writable", f"Check permissions on {DATA_DIR}\n({e})"
    return True, str(DATA_DIR), ""


async def _check_speech() -> tuple[bool, str, str]:
    if not SPEECH_HOST:
        return True, "console announcements (SPEECH_HOST not set)", ""
    if await speech.check_server(SPEECH_HOST):
        return True, f"running at {SPEECH_HOST.replace('http://', '')}", ""
    return False, "not responding", (
        f"No speech server answered at {SPEECH_HOST}/health.\n"
        "Start it, or unset SPEECH_HOST to print announcements instead."
    )


async def _check_generator() -> tuple[bool, str, str]:
    if MUSIC_BACKEND != "acestep":
        return True, f"{MUSIC_BACKEND} generation", ""
    if await acestep.check_server(ACESTEP_HOST):
        return True, f"ACE-Step at {ACESTEP_HOST.replace('http://', '')}", ""
    return False, "ACE-Step not responding", (
        "Start the ACE-Step API server:\n"
        "  cd ~/ACE-Step && uv run acestep-api --port 8001\n"
        "Or set MUSIC_BACKEND=simulated in .env"
    )
