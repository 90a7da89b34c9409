"""Convert the per-tier reward CSVs into ``csv-rewards.json``."""
import argparse
import logging
from pathlib import Path
from typing import List

import pandas as pd

from ..log import configure_logging
from ..utils import CSV_REWARDS_FILE, data_path, save_json
from .rewards_common import cell_text, reward_pairs

log = logging.getLogger("loamarket.tools.csv_rewards")

SOURCES = {
    "에브니 큐브": {"티어3": "cube3t.csv", "티어4": "cube4t.csv"},
    "가디언 토벌": {"티어3": "tobul3t.csv", "티어4": "tobul4t.csv"},
}


def parse_rows(rows) -> List[dict]:
    """First column is the stage, every other header an item."""
    rows = [row for row in rows if any(cell_text(c) for c in row)]
    if len(rows) < 2:
        return []

    headers = [cell_text(h) for h in rows[0]]
    stages = []
    for row in rows[1:]:
        stage = cell_text(row[0]) if len(row) else ""
        if not stage:
            continue
        rewards = reward_pairs(headers, row, skip={0})
        if rewards:
            stages.append({"stage": stage, "rewards": rewards})
    return stages


def parse_csv(path) -> List[dict]:
    try:
        frame = pd.read_csv(path, header=None, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    except (OSError, ValueError, pd.errors.ParserError):
        log.exception("Failed to parse %s", path)
        return []
    stages = parse_rows(frame.values.tolist())
    if not stages:
        log.warning("%s: no stages with rewards", Path(path).name)
    return stages


def parse_all(source_dir) -> dict:
    source_dir = Path(source_dir)
    result = {}
    for content, tiers in SOURCES.items():
        result[content] = {tier: parse_csv(source_dir / name) for tier, name in tiers.items()}
        log.info(
            "%s: %s",
            content,
            ", ".join(f"{tier} {len(stages)}" for tier, stages in result[content].items()),
        )
    return result


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Convert reward CSVs into csv-rewards.json.")
    parser.add_argument("source_dir", nargs="?", default=".", help="Directory holding the CSV files.")
    parser.add_argument("--output", default=None, help="Output JSON path.")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    configure_logging()
    args = _parse_args(argv)
    output = Path(args.output) if args.output else data_path(CSV_REWARDS_FILE)
    save_json(output, parse_all(args.source_dir))
    log.info("Wrote %s", output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
