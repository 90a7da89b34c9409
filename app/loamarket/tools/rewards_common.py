"""Helpers shared by the reward sheet converters."""
import math
import re
from typing import Iterable, List, Sequence

_NON_NUMERIC_RE = re.compile(r"[^\d.-]")
_NUMBER_RE = re.compile(r"-?(\d+\.?\d*|\.\d+)")
_LEADING_NUMBER_RE = re.compile(r"^\s*[-+]?(\d+\.?\d*|\.\d+)")


def cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def _tidy(number: float):
    return int(number) if float(number).is_integer() else number


def parse_quantity(value):
    """Numbers pass through; strings keep only digits, dots and minus signs."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        return 0 if math.isnan(value) else _tidy(value)
    match = _NUMBER_RE.match(_NON_NUMERIC_RE.sub("", str(value)))
    return _tidy(float(match.group(0))) if match else 0


def starts_with_number(text: str) -> bool:
    return bool(_LEADING_NUMBER_RE.match(text))


def find_column(headers: Sequence[str], keywords: Iterable[str]) -> int:
    """Index of the first header containing any keyword, or -1."""
    keywords = list(keywords)
    for index, header in enumerate(headers):
        if any(keyword in header for keyword in keywords):
            return index
    return -1


def reward_pairs(headers: Sequence[str], row: Sequence, skip: Iterable[int] = ()) -> List[dict]:
    skip = set(skip)
    rewards = []
    for index, header in enumerate(headers):
        if index in skip or index >= len(row):
            continue
        item_name = header.strip()
        if not item_name:
            continue
        quantity = parse_quantity(row[index])
        if quantity > 0:
            rewards.append({"itemName": item_name, "quantity": quantity})
    return rewards
