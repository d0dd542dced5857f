import csv
from pathlib import Path
from typing import List, Optional, Sequence

from vault_tvl.errors import ConfigError


def read_blocks_from_csv(path: Path) -> List[int]:
    """Read block heights from the ``block`` column of a CSV file.

    Rows with an empty ``block`` cell are ignored.
    """
    if not path.exists():
        raise ConfigError(f"Blocks file not found: {path}")
    blocks: List[int] = []
    with path.open("r", newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None or "block" not in reader.fieldnames:
            raise ConfigError(f"Blocks file {path} has no 'block' column")
        for line_no, row in enumerate(reader, start=2):
            raw = (row.get("block") or "").strip()
            if not raw:
                continue
            try:
                blocks.append(int(raw, 10))
            except ValueError as exc:
                raise ConfigError(f"{path}:{line_no}: invalid block number {raw!r}") from exc
    return blocks


def select_blocks(
    explicit: Optional[Sequence[int]] = None,
    csv_path: Optional[Path] = None,
    configured_csv: Optional[Path] = None,
    configured: Optional[Sequence[int]] = None,
) -> List[int]:
    if explicit:
        return list(explicit)
    if csv_path is not None:
        return read_blocks_from_csv(csv_path)
    if configured_csv is not None:
        return read_blocks_from_csv(configured_csv)
    if configured:
        return list(configured)
    raise ConfigError("No blocks to process: pass --block, --blocks-csv or configure BLOCKS")
