#!/usr/bin/env python
# Console UI utilities
import os
from typing import Any, Dict, List, Optional, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table
from rich.text import Text

# Initialize Rich console
console = Console()


def clear_screen():
    """Clear the terminal screen"""
    os.system('cls' if os.name == 'nt' else 'clear')


def show_title(title: str, subtitle: Optional[str] = None, style="bold cyan", clear: bool = True):
    """Display a title panel"""
    if clear:
        clear_screen()

    title_text = Text(title, style=style)
    console.print(Panel(title_text, expand=False))

    if subtitle:
        console.print(f"\n{subtitle}\n")


def display_table(title: str, data: List[Dict[str, Any]], columns: List[Tuple[str, str, str]]):
    """
    Display data in a table format

    Args:
        title: Table title
        data: List of dictionaries containing the data
        columns: List of (key, header, style) tuples
    """
    table = Table(title=title)

    for key, header, style in columns:
        table.add_column(header, style=style)

    for item in data:
        row = []
        for key, _, _ in columns:
            value = item.get(key, "")
            if value is None:
                value = ""

            # Convert to string and truncate if necessary
            value_str = str(value)
            if len(value_str) > 50:
                value_str = value_str[:47] + "..."

            row.append(value_str)

        table.add_row(*row)

    console.print(table)


def show_error(message: str):
    """Display an error message"""
    console.print(f"[bold red]Error:[/bold red] {message}")


def show_success(message: str):
    """Display a success message"""
    console.print(f"[bold green]Success:[/bold green] {message}")


def show_warning(message: str):
    """Display a warning message"""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def show_info(message: str):
    """Display an info message"""
    console.print(f"[bold blue]Info:[/bold blue] {message}")


def prompt_input(field_name: str, default: str = "") -> str:
    """Prompt for a line of input with consistent formatting"""
    return Prompt.ask(field_name, default=default)


ELEMENT_COLUMNS = [
    ("id", "ID", "dim"),
    ("name", "Name", "cyan"),
    ("type", "Type", "magenta"),
    ("visible", "Visible", "green"),
    ("hp", "HP", "red"),
    ("ac", "AC", "yellow"),
    ("position", "Position", "white"),
    ("target", "Leads to", "blue"),
]


def _element_row(element) -> Dict[str, Any]:
    hp = ""
    if element.hp_max is not None:
        hp = f"{element.hp_current if element.hp_current is not None else element.hp_max}/{element.hp_max}"
    return {
        "id": element.id,
        "name": element.name,
        "type": element.type.value,
        "visible": "yes" if element.visible else "no",
        "hp": hp,
        "ac": element.ac,
        "position": f"{element.x:.0f}%, {element.y:.0f}%",
        "target": element.target_map_id,
    }


def render_map_view(view, elements=None):
    """Redraw a map view: header, map tree and the selected map's elements"""
    world = view.world
    current = view.current_map
    world_name = (world.name if world else None) or view.world_id
    subtitle = f"Map: {current.name or current.id}" if current else "No map selected"
    show_title(f"{world_name} [{view.kind}]", subtitle)

    maps = [
        {
            "id": m.id,
            "name": ("  " * m.level) + (m.name or m.id),
            "level": m.level,
            "selected": "*" if current and m.id == current.id else "",
        }
        for m in view.maps
    ]
    display_table("Maps", maps, [
        ("selected", "", "bold green"),
        ("name", "Name", "cyan"),
        ("level", "Level", "white"),
        ("id", "ID", "dim"),
    ])

    if current is None:
        return
    if not current.is_full:
        show_warning("Only the index record of this map is available")
        return

    shown = current.elements if elements is None else elements
    display_table("Elements", [_element_row(e) for e in shown], ELEMENT_COLUMNS)

    if world and world.players:
        display_table("Players", [
            {"name": p.name, "hp": f"{p.hp_current}/{p.hp_max}" if p.hp_max is not None else "", "ac": p.ac}
            for p in world.players
        ], [("name", "Name", "cyan"), ("hp", "HP", "red"), ("ac", "AC", "yellow")])


def render_pov(view):
    """Redraw the point-of-view panel"""
    clear_screen()
    image = view.current
    if image is None:
        console.print(Panel(Text("Waiting for the GM to show a creature...", style="dim"), expand=False))
        return
    body = Text(image.image_url or "(no image)", style="underline blue")
    console.print(Panel(body, title=image.creature_name or "Creature", border_style="green", expand=False))
