"""Featured item list, kept as an ordered JSON array on disk.

Array position is the display rank.
"""
import threading
from typing import List

from ..models.featured_item import FeaturedItem
from ..utils import FEATURED_ITEMS_FILE, data_path, load_json, save_json

DIRECTIONS = ("up", "down")

# held across a load and save of the items file
LOCK = threading.Lock()


def load_items() -> List[dict]:
    items = load_json(data_path(FEATURED_ITEMS_FILE), [])
    if not isinstance(items, list):
        return []
    return [FeaturedItem.from_json(entry).to_json() for entry in items if isinstance(entry, dict)]


def save_items(items: List[dict]) -> None:
    save_json(data_path(FEATURED_ITEMS_FILE), items)


def add_item(items: List[dict], item_id, name: str, item_type=None) -> List[dict]:
    """Append a new item. Raises ValueError when the name is already listed."""
    name = str(name).strip()
    if any(entry.get("name") == name for entry in items):
        raise ValueError(f"Item already listed: {name}")
    item = FeaturedItem(int(item_id) if item_id else 0, name, item_type or "market")
    return items + [item.to_json()]


def remove_item(items: List[dict], item_id: int) -> List[dict]:
    """Drop every entry with the given id. Raises KeyError if none matched."""
    filtered = [entry for entry in items if entry.get("id") != item_id]
    if len(filtered) == len(items):
        raise KeyError(item_id)
    return filtered


def move_item(items: List[dict], item_id: int, direction: str) -> List[dict]:
    """
    Swap the item with its neighbour in the given direction.

    Raises KeyError for an unknown id and IndexError when the move would
    leave the list (first item up, last item down).
    """
    if direction not in DIRECTIONS:
        raise ValueError(f"Unknown direction: {direction}")

    index = next(
        (i for i, entry in enumerate(items) if entry.get("id") == item_id),
        -1,
    )
    if index == -1:
        raise KeyError(item_id)

    target = index - 1 if direction == "up" else index + 1
    if target < 0 or target >= len(items):
        raise IndexError(f"Cannot move item {item_id} {direction}")

    reordered = list(items)
    reordered[index], reordered[target] = reordered[target], reordered[index]
    return reordered
