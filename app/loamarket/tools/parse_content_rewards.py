"""Convert the content reward workbook into ``content-rewards.json``.

Each processed sheet has a header row; one column names the stage, one the
entry level, and every other column is an item whose cell holds the
quantity dropped at that stage.
"""
import argparse
import logging
from pathlib import Path
from typing import Dict, List, Sequence

import pandas as pd

from ..log import configure_logging
from ..utils import CONTENT_REWARDS_FILE, data_path, save_json
from .rewards_common import cell_text, find_column, reward_pairs, starts_with_number

log = logging.getLogger("loamarket.tools.content_rewards")

SHEETS = ("카던&전선", "에브니 큐브", "가디언 토벌")
NAME_KEYWORDS = ("이름", "name", "단계", "stage")
LEVEL_KEYWORDS = ("입장레벨", "레벨", "level", "난이도")
PROBABILITY_MARKERS = ("확률", "probability")
DEFAULT_LEVEL = "기본"
MISSING_LEVEL = "레벨없음"
HEADER_VALUES = ("입장레벨", "레벨", "이름", "name")


def process_sheet(rows: Sequence[Sequence], sheet_name: str = "") -> Dict[str, List[dict]]:
    """Group a sheet's stages by level key."""
    if not rows:
        log.warning("%s: sheet is empty", sheet_name)
        return {}

    headers = [cell_text(h) for h in rows[0]]
    lowered = [h.lower() for h in headers]
    name_idx = find_column(lowered, NAME_KEYWORDS)
    level_idx = find_column(lowered, LEVEL_KEYWORDS)
    log.debug("%s: name column %s, level column %s", sheet_name, name_idx, level_idx)

    if len(headers) < 2:
        log.warning("%s: too few header columns", sheet_name)
        return {}

    skip = {name_idx, level_idx}
    skip.update(
        i for i, h in enumerate(lowered) if any(marker in h for marker in PROBABILITY_MARKERS)
    )

    result: Dict[str, List[dict]] = {}
    for row in rows[1:]:
        if row is None or len(row) == 0:
            continue

        stage = cell_text(row[name_idx]) if 0 <= name_idx < len(row) else ""
        level = cell_text(row[level_idx]) if 0 <= level_idx < len(row) else ""

        if (not stage and not level) or stage == "이름" or level == "입장레벨":
            continue
        if level and not starts_with_number(level):
            continue

        level_key = level or (DEFAULT_LEVEL if level_idx == -1 else MISSING_LEVEL)
        if level_key in HEADER_VALUES:
            level_key = DEFAULT_LEVEL

        stages = result.setdefault(level_key, [])
        rewards = reward_pairs(headers, row, skip=skip)
        if rewards:
            stages.append({"stage": stage or f"단계{len(stages) + 1}", "rewards": rewards})

    for level_key in list(result):
        stages = [s for s in result[level_key] if s["stage"] not in ("이름", "")]
        if stages:
            result[level_key] = sorted(stages, key=lambda s: s["stage"])
        else:
            del result[level_key]

    total = sum(len(stages) for stages in result.values())
    log.info("%s: %d level(s), %d stage(s)", sheet_name, len(result), total)
    return result


def parse_workbook(path) -> Dict[str, dict]:
    sheets = pd.read_excel(path, sheet_name=None, header=None, dtype=object, na_filter=False)
    log.info("Sheets found: %s", list(sheets))
    result = {}
    for name, frame in sheets.items():
        if name in SHEETS:
            result[name] = process_sheet(frame.values.tolist(), name)
    return result


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Convert calc.xlsx into content-rewards.json.")
    parser.add_argument("workbook", nargs="?", default="calc.xlsx", help="Path to the workbook.")
    parser.add_argument("--output", default=None, help="Output JSON path.")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    configure_logging()
    args = _parse_args(argv)
    output = Path(args.output) if args.output else data_path(CONTENT_REWARDS_FILE)
    try:
        result = parse_workbook(args.workbook)
    except (OSError, ValueError):
        log.exception("Failed to read workbook %s", args.workbook)
        return 1
    save_json(output, result)
    log.info("Wrote %s", output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
