"""CLI commands for TicketBot."""

import asyncio
import sys
import threading
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from ticketbot import __version__, __logo__

app = typer.Typer(
    name="ticketbot",
    help=f"{__logo__} TicketBot - automatic replies to new ticket channels",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} TicketBot v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-V", callback=version_callback, is_eager=True
    ),
):
    """TicketBot - automatic replies to new ticket channels."""
    pass


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


# ============================================================================
# Onboard / Setup
# ============================================================================


@app.command()
def onboard():
    """Write a default configuration file."""
    from ticketbot.config.loader import get_config_path, save_config
    from ticketbot.config.schema import Config

    config_path = get_config_path()

    if config_path.exists():
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit()

    save_config(Config(), config_path)
    console.print(f"[green]✓[/green] Created config at {config_path}")

    console.print(f"\n{__logo__} TicketBot is ready!")
    console.print("\nNext steps:")
    console.print("  1. Put your session token under [cyan]upstream.session_token[/cyan]")
    console.print("     (or export [cyan]TICKETBOT_UPSTREAM__SESSION_TOKEN[/cyan])")
    console.print("  2. Review [cyan]destinations[/cyan]: [cyan]ticketbot destinations[/cyan]")
    console.print("  3. Run: [cyan]ticketbot run --frames -[/cyan]")


# ============================================================================
# Run
# ============================================================================


def _start_line_reader(loop: asyncio.AbstractEventLoop, stream) -> asyncio.Queue:
    """Read lines from a blocking stream on a daemon thread."""
    lines: asyncio.Queue[str | None] = asyncio.Queue()

    def reader():
        for line in stream:
            loop.call_soon_threadsafe(lines.put_nowait, line)
        loop.call_soon_threadsafe(lines.put_nowait, None)

    threading.Thread(target=reader, name="ticketbot-stdin", daemon=True).start()
    return lines


async def _queued_lines(lines: asyncio.Queue):
    while True:
        line = await lines.get()
        if line is None:
            return
        if line.strip():
            yield line


async def _console_loop(manager, lines: asyncio.Queue) -> None:
    """Run control commands typed on stdin."""
    from ticketbot.auto_reply.commands import build_control_registry, parse_command
    from ticketbot.server.bot_manager import BotStateError

    registry = build_control_registry(manager)
    console.print("[dim]Commands: pause, resume, status, exit[/dim]")

    async for line in _queued_lines(lines):
        command = parse_command(line)
        if command is None:
            continue
        try:
            response = await registry.execute(command)
        except BotStateError as e:
            response = f"[yellow]{e}[/yellow]"
        if response:
            console.print(response)


async def _wait_until_idle(manager) -> None:
    while manager.bus.size or manager.get_status()["in_flight"] or manager.queue.size:
        await asyncio.sleep(0.1)


@app.command()
def run(
    frames: str = typer.Option(
        None, "--frames", "-f", help="JSON-lines file of feed frames ('-' for stdin)"
    ),
    token: str = typer.Option(None, "--token", "-t", help="Session token (overrides config)"),
    port: int = typer.Option(None, "--port", "-p", help="Serve the control API on this port"),
    exit_when_done: bool = typer.Option(
        False, "--exit-when-done", help="Shut down once the frames file is fully answered"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Start the bot."""
    from ticketbot.bus.queue import FrameFeed
    from ticketbot.config.loader import load_config
    from ticketbot.server.bot_manager import BotManager
    from ticketbot.server.main import serve

    _configure_logging(verbose)
    config = load_config()

    if token:
        config.upstream.session_token = token

    if not config.upstream.session_token:
        console.print("[red]Error: No session token configured.[/red]")
        console.print("Set upstream.session_token in ~/.ticketbot/config.json or pass --token")
        raise typer.Exit(1)

    if frames and frames != "-" and not Path(frames).exists():
        console.print(f"[red]Error: frames file not found: {frames}[/red]")
        raise typer.Exit(1)

    console.print(f"{__logo__} Starting TicketBot...")
    limits = config.rate_limit
    console.print(
        f"[green]✓[/green] Rate limit: {limits.refill_rate:g} msg/sec, burst {limits.bucket_size}"
    )
    console.print(f"[green]✓[/green] Monitoring {len(config.destinations)} servers")

    manager = BotManager(config)
    feed = FrameFeed(manager.bus)

    async def run_bot():
        loop = asyncio.get_running_loop()
        stdin_lines = _start_line_reader(loop, sys.stdin)
        tasks: list[asyncio.Task] = []

        async def pump_frames():
            if frames == "-":
                count = await feed.pump(_queued_lines(stdin_lines))
            else:
                with open(frames) as handle:
                    count = await feed.pump(line for line in handle if line.strip())
            logger.info(f"Frame feed finished: {count} ticket events")
            if exit_when_done:
                await _wait_until_idle(manager)
                manager.request_shutdown()

        await manager.start()
        if frames:
            tasks.append(asyncio.create_task(pump_frames()))
        if frames != "-":
            tasks.append(asyncio.create_task(_console_loop(manager, stdin_lines)))
        if port:
            tasks.append(asyncio.create_task(serve(manager, config.control.host, port)))

        try:
            await manager.wait_for_shutdown()
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await manager.stop()

    try:
        asyncio.run(run_bot())
    except KeyboardInterrupt:
        console.print("\nShutting down...")


# ============================================================================
# Inspection
# ============================================================================


@app.command()
def status():
    """Show TicketBot configuration status."""
    from ticketbot.config.loader import load_config, get_config_path

    config_path = get_config_path()
    config = load_config()

    console.print(f"{__logo__} TicketBot Status\n")
    console.print(f"Config: {config_path} {'[green]✓[/green]' if config_path.exists() else '[red]✗[/red]'}")
    console.print(f"API base: {config.upstream.api_base}")
    console.print(
        f"Session token: {'[green]✓[/green]' if config.upstream.session_token else '[dim]not set[/dim]'}"
    )

    limits = config.rate_limit
    console.print("\n[bold]Rate Limiting:[/bold]")
    console.print(f"  Refill: {limits.refill_rate:g} tokens/sec, bucket {limits.bucket_size}")
    console.print(f"  Queue: max {limits.max_queue_size} pending, poll every {limits.poll_interval_ms}ms")

    dedup = config.dedup
    console.print("\n[bold]Memory Cleanup:[/bold]")
    console.print(
        f"  Every {dedup.cleanup_interval_minutes:g} minutes, keeping {dedup.expiration_hours:g}h "
        f"of data, max {dedup.max_entries} channels"
    )

    console.print("\n[bold]Pause:[/bold]")
    console.print(
        f"  {'Discards' if config.control.discard_on_pause else 'Keeps'} queued replies when paused"
    )


@app.command()
def destinations():
    """List the reply policy for each monitored server."""
    from ticketbot.config.loader import load_config

    config = load_config()

    table = Table(title="Destinations")
    table.add_column("Server ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Priority", style="green")
    table.add_column("Delay (ms)", style="yellow")
    table.add_column("Message")

    for server_id, entry in config.destinations.items():
        if entry.delay_max_ms == 0:
            delay = "none"
        elif entry.delay_min_ms == entry.delay_max_ms:
            delay = f"{entry.delay_min_ms:g} (fixed)"
        else:
            delay = f"{entry.delay_min_ms:g}-{entry.delay_max_ms:g}"

        if entry.message == "random_suffix":
            message = f"random suffix ({', '.join(entry.suffixes)})"
        elif entry.message == "template":
            message = f"template: {entry.template}"
        else:
            message = "ticket number"

        table.add_row(server_id, entry.name, "✓" if entry.priority else "", delay, message)

    console.print(table)


@app.command()
def resolve(
    server_id: str = typer.Argument(..., help="Server id the ticket was opened in"),
    label: str = typer.Argument(..., help="Channel name of the ticket"),
):
    """Show the reply the bot would send for a ticket."""
    from ticketbot.auto_reply.policy import DestinationPolicy
    from ticketbot.config.loader import load_config

    config = load_config()
    reply = DestinationPolicy(config.destinations).resolve(server_id, label)

    low, high = reply.delay_range_ms
    console.print(f"Destination: [cyan]{reply.destination_name}[/cyan]")
    console.print(f"Message: [bold]{reply.message}[/bold]")
    console.print(f"Priority: {'yes' if reply.priority else 'no'}")
    console.print(f"Delay: {low:g}-{high:g}ms")


if __name__ == "__main__":
    app()
