#!/usr/bin/env python
# Main entry point for the world atlas client
import asyncio
import logging
import signal
import traceback

from rich.logging import RichHandler

from client.game.broadcast import BroadcastHub
from client.game.models import ElementType
from client.game.session import WorldSession
from client.game.sync_connection import SyncConnection
from client.ui.console import (
    console, display_table, prompt_input, render_map_view, render_pov,
    show_error, show_info, show_warning
)
from client.utils.config import Config

logger = logging.getLogger(__name__)

HELP = {
    "manage": "go <map_id> | toggle <element_id> | click <element_id> | quit",
    "editor": "map <name> [parent_id] | delmap <map_id> | element <x> <y> [type] | delelement <id> | player <name> | quit",
    "player": "click <element_id> | quit",
    "pov": "dismiss | quit",
}


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def setup_signal_handlers(stop: asyncio.Event):
    """Set up signal handlers for graceful shutdown"""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass


def render(view):
    if view.kind == "pov":
        render_pov(view)
    elif view.kind == "player":
        render_map_view(view, elements=view.visible_elements())
    else:
        render_map_view(view)
    console.print(f"[dim]{HELP[view.kind]}[/dim]")


def _find_element(view, element_id):
    current = view.current_map
    if current is None or not current.is_full:
        return None
    return current.get_element(element_id)


async def run_command(view, line: str) -> bool:
    """Run one console command against a view, False to quit"""
    parts = line.split()
    if not parts:
        return True
    command, args = parts[0].lower(), parts[1:]

    if command in ("quit", "exit"):
        return False

    if view.kind == "pov" and command == "dismiss":
        view.dismiss()
    elif command == "click" and args and view.kind in ("manage", "player"):
        element = _find_element(view, args[0])
        if element is None:
            show_warning(f"No element {args[0]} on this map")
        else:
            await view.activate_element(element)
    elif view.kind == "manage" and command == "go" and args:
        await view.change_map(args[0])
    elif view.kind == "manage" and command == "toggle" and args:
        await view.toggle_element_visibility(args[0])
    elif view.kind == "editor" and command == "map" and args:
        await view.create_map(args[0], parent_map_id=args[1] if len(args) > 1 else None)
    elif view.kind == "editor" and command == "delmap" and args:
        await view.delete_map(args[0])
    elif view.kind == "editor" and command == "element" and len(args) >= 2:
        element_type = ElementType(args[2]) if len(args) > 2 else ElementType.PORTAL
        await view.save_element(view.new_element(float(args[0]), float(args[1]), element_type))
    elif view.kind == "editor" and command == "delelement" and args:
        await view.delete_element(args[0])
    elif view.kind == "editor" and command == "player" and args:
        await view.add_player(" ".join(args))
    else:
        show_warning(f"Unknown command. {HELP[view.kind]}")
    return True


async def command_loop(view, stop: asyncio.Event):
    while not stop.is_set():
        line = await asyncio.to_thread(prompt_input, ">")
        try:
            if not await run_command(view, line):
                break
        except ValueError as e:
            show_error(str(e))
    stop.set()


async def list_worlds(session: WorldSession):
    worlds = await session.cache.load_all()
    display_table("Worlds", [w.model_dump() for w in worlds], [
        ("id", "ID", "dim"),
        ("name", "Name", "cyan"),
        ("root_map_id", "Root map", "green"),
        ("updated_at", "Updated", "white"),
    ])


async def run(config: Config, args):
    """Run the client against one world"""
    hub = BroadcastHub()
    connection = SyncConnection(config.ws_url)
    session = WorldSession(config, hub, network=connection)

    if args.list:
        await list_worlds(session)
        return
    if not args.world:
        show_error("Pass --world <id> or --list")
        return

    stop = asyncio.Event()
    setup_signal_handlers(stop)

    if not await connection.connect():
        show_warning("Running without live updates")

    view = await session.open_view(args.view, args.world, on_change=render)
    listener = asyncio.create_task(connection.listen())
    commands = asyncio.create_task(command_loop(view, stop))

    try:
        await stop.wait()
    finally:
        if not commands.done():
            # the input thread cannot be interrupted
            logger.info("Shutting down, press Enter to exit")
        commands.cancel()
        session.close()
        await connection.disconnect()
        await listener
        show_info("Goodbye")


def main():
    config = Config()
    args = config.parse_args()
    setup_logging(args.verbose)

    try:
        asyncio.run(run(config, args))
    except KeyboardInterrupt:
        console.print("\n[yellow]Application terminated by user[/yellow]")
    except Exception as e:
        console.print(f"\n[bold red]Fatal error: {str(e)}[/bold red]")
        console.print(traceback.format_exc())


if __name__ == "__main__":
    main()
