from typing import Sized


class ListCursor:
    """Selected index over a sized collection, clamped to its bounds."""

    def __init__(self, items: Sized):
        self.items = items
        self.selected = 0

    def move(self, delta: int) -> None:
        nxt = max(self.selected + delta, 0)
        length = len(self.items)
        if length > 0 and nxt >= length:
            nxt = length - 1
        self.selected = nxt

    def clamp(self) -> None:
        length = len(self.items)
        if length == 0:
            self.selected = 0
        else:
            self.selected = min(max(self.selected, 0), length - 1)
