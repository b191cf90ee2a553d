"""
Control commands for a running TicketBot.

Supports:
- pause / resume / status / exit / help, with or without a leading /
- Aliases and help text
- A registry wired to a BotManager
"""

from typing import TYPE_CHECKING, Any, Awaitable, Callable
from dataclasses import dataclass, field

if TYPE_CHECKING:
    from ticketbot.server.bot_manager import BotManager


@dataclass
class Command:
    """A parsed command."""
    name: str
    arguments: list[str] = field(default_factory=list)
    raw: str = ""

    @property
    def arg(self) -> str:
        """Get first argument or empty string."""
        return self.arguments[0] if self.arguments else ""


# Type alias for command handlers
CommandHandler = Callable[[Command, dict[str, Any]], Awaitable[str | None]]


class CommandRegistry:
    """Registry of control command handlers."""

    def __init__(self):
        self._handlers: dict[str, CommandHandler] = {}
        self._aliases: dict[str, str] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str = "",
        aliases: list[str] | None = None,
    ) -> None:
        """
        Register a command handler.

        Args:
            name: Primary command name.
            handler: Async function to handle the command.
            help_text: Help text for the command.
            aliases: Alternative names for the command.
        """
        self._handlers[name] = handler
        if help_text:
            self._help[name] = help_text

        for alias in aliases or []:
            self._aliases[alias] = name

    def get_handler(self, command_name: str) -> CommandHandler | None:
        """Get handler for a command or one of its aliases."""
        if command_name in self._handlers:
            return self._handlers[command_name]

        canonical = self._aliases.get(command_name)
        if canonical:
            return self._handlers.get(canonical)

        return None

    async def execute(
        self,
        command: Command,
        context: dict[str, Any] | None = None,
    ) -> str | None:
        """
        Execute a command.

        Returns:
            Handler response, or the list of commands if it is unknown.
        """
        handler = self.get_handler(command.name)
        if handler:
            return await handler(command, context or {})
        return f"Available commands: {', '.join(self.list_commands())}"

    def get_help(self, command_name: str = "") -> str:
        """Get help text for a command or all commands."""
        if command_name:
            canonical = self._aliases.get(command_name, command_name)
            return self._help.get(canonical, f"No help for: {command_name}")

        lines = ["Available commands:"]
        for name in self.list_commands():
            lines.append(f"  {name} - {self._help.get(name, '')}")
        return "\n".join(lines)

    def list_commands(self) -> list[str]:
        """List all registered commands."""
        return list(self._handlers)


def parse_command(text: str) -> Command | None:
    """
    Parse a console line into a command.

    Examples:
        pause -> Command(name="pause")
        /status -> Command(name="status")
        help pause -> Command(name="help", arguments=["pause"])

    Returns:
        Parsed Command or None for a blank line.
    """
    text = text.strip()
    parts = text.lstrip("/").split()
    if not parts:
        return None

    return Command(name=parts[0].lower(), arguments=parts[1:], raw=text)


def format_status(status: dict[str, Any]) -> str:
    """Render BotManager.get_status() for the console."""
    queue = status["queue"]
    dedup = status["dedup"]
    lines = [
        "--- Bot Status ---",
        f"State: {status['state']}",
        f"Rate Limiter: {queue['available_tokens']:g}/{queue['bucket_size']} tokens available",
        f"Queue: {queue['queue_length']} messages waiting",
        f"Channels Tracked: {dedup['total_entries']}",
        "------------------",
    ]
    return "\n".join(lines)


def build_control_registry(manager: "BotManager") -> CommandRegistry:
    """Create a registry whose commands drive `manager`."""
    registry = CommandRegistry()

    async def handle_pause(cmd: Command, ctx: dict) -> str:
        discarded = manager.pause()
        return f"Bot PAUSED ({discarded} queued replies discarded)"

    async def handle_resume(cmd: Command, ctx: dict) -> str:
        manager.resume()
        return "Bot RESUMED"

    async def handle_status(cmd: Command, ctx: dict) -> str:
        return format_status(manager.get_status())

    async def handle_exit(cmd: Command, ctx: dict) -> str:
        manager.request_shutdown()
        return "Shutting down the bot..."

    async def handle_help(cmd: Command, ctx: dict) -> str:
        return registry.get_help(cmd.arg)

    registry.register("pause", handle_pause, "Stop replying to new tickets")
    registry.register("resume", handle_resume, "Start replying again")
    registry.register("status", handle_status, "Show tokens, queue and tracked channels")
    registry.register("exit", handle_exit, "Shut the bot down", ["quit", "shutdown"])
    registry.register("help", handle_help, "Show available commands", ["?"])
    return registry
