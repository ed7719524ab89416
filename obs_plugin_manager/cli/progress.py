"""Progress display for plugin operations.

Renders :class:`ProgressEvent` objects from a :class:`ProgressChannel` as a
rich progress bar.
"""

from collections.abc import Generator
from contextlib import contextmanager

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from obs_plugin_manager.install.events import ProgressChannel, ProgressEvent, ProgressStage

# Default console for progress output
console = Console()


@contextmanager
def spinner(
    message: str,
    transient: bool = True,
    console_instance: Console | None = None,
) -> Generator[None, None, None]:
    """Show a spinner for indeterminate operations.

    Example:
        with spinner("Fetching releases..."):
            releases = asyncio.run(orchestrator.get_all_releases(plugin_id))
    """
    prog_console = console_instance or console

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=transient,
        console=prog_console,
    ) as progress:
        progress.add_task(description=message, total=None)
        yield


@contextmanager
def operation_progress(
    channel: ProgressChannel,
    description: str,
    enabled: bool = True,
    console_instance: Console | None = None,
) -> Generator[ProgressChannel, None, None]:
    """Show a progress bar driven by the events published on ``channel``.

    The bar is removed when the block exits; the channel is closed.

    Args:
        channel: Channel the operation publishes to
        description: Label shown before the current stage message
        enabled: If False, events are consumed silently (quiet/JSON mode)
        console_instance: Optional custom console instance

    Yields:
        The channel, for passing to the orchestrator
    """
    if not enabled:
        try:
            yield channel
        finally:
            channel.close()
        return

    prog_console = console_instance or console

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=prog_console,
        transient=True,
    ) as progress:
        task = progress.add_task(description=description, total=100)

        def on_event(event: ProgressEvent) -> None:
            text = f"{description}: {event.message}"
            if event.stage is ProgressStage.FAILED:
                text = f"[red]{text}[/red]"
            if event.percent is None:
                progress.update(task, description=text)
            else:
                progress.update(task, description=text, completed=event.percent)

        unsubscribe = channel.subscribe(on_event)
        try:
            yield channel
        finally:
            unsubscribe()
            channel.close()


def status_message(message: str, status: str = "info") -> None:
    """Print a status message with an appropriate icon.

    Args:
        message: The message to display
        status: One of info, success, warning, error
    """
    icons = {
        "info": "[blue]ℹ[/blue]",
        "success": "[green]✓[/green]",
        "warning": "[yellow]⚠[/yellow]",
        "error": "[red]✗[/red]",
    }

    icon = icons.get(status, "[blue]ℹ[/blue]")
    console.print(f"{icon} {message}")
