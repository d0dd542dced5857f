import logging
from typing import Dict, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


def build_summary_table(rows_per_block: Dict[int, int], timestamps: Optional[Dict[int, int]] = None) -> Table:
    table = Table(title="User TVL rows per block", expand=False)
    table.add_column("Block", justify="right")
    table.add_column("Timestamp", justify="right")
    table.add_column("Rows", justify="right")
    for block_number, count in rows_per_block.items():
        timestamp = (timestamps or {}).get(block_number)
        table.add_row(str(block_number), "" if timestamp is None else str(timestamp), f"{count:,}")
    table.caption = f"Total rows: {sum(rows_per_block.values()):,}"
    return table


def print_summary(
    rows_per_block: Dict[int, int],
    timestamps: Optional[Dict[int, int]] = None,
    console: Optional[Console] = None,
) -> None:
    (console or Console()).print(build_summary_table(rows_per_block, timestamps))
