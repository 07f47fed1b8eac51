#!/usr/bin/env python
# Per-view state: what the view shows and which map is selected
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from client.game.models import MapRecord, World


@dataclass
class ViewState:
    """State owned by one view.

    ``generation`` moves on every selection change, so an async handler can
    tell whether the selection it read before awaiting is still current.
    """

    world_id: str
    world: Optional[World] = None
    maps: List[MapRecord] = field(default_factory=list)
    current_map: Optional[MapRecord] = None
    generation: int = 0

    @property
    def current_map_id(self) -> Optional[str]:
        return self.current_map.id if self.current_map else None

    def snapshot(self) -> Tuple[Optional[str], int]:
        """Selection as seen right now, read before any await"""
        return self.current_map_id, self.generation

    def is_current(self, generation: int) -> bool:
        return self.generation == generation

    def select(self, map_record: Optional[MapRecord]) -> None:
        self.current_map = map_record
        self.generation += 1

    def replace_current(self, map_record: MapRecord) -> None:
        """Swap in a fresher record of the selected map without moving the selection"""
        if self.current_map is not None and self.current_map.id == map_record.id:
            self.current_map = map_record

    def clear(self) -> None:
        self.world = None
        self.maps = []
        self.select(None)
