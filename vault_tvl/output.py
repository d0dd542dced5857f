import csv
import logging
from pathlib import Path
from typing import Iterable, Sequence

from vault_tvl.types import OutputRow, ShareBalance

logger = logging.getLogger(__name__)

OUTPUT_HEADER = [
    "block_number",
    "timestamp",
    "user_address",
    "token_address",
    "token_balance",
    "token_symbol",
    "in_active",
]
SHARE_TOKEN_HEADER = ["block_number", "timestamp", "user", "contractId", "balance", "isActive"]


def _bool_literal(value: bool) -> str:
    return "true" if value else "false"


def _ensure_parent(path: Path) -> None:
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)


def write_output_rows(rows: Sequence[OutputRow], path: Path) -> int:
    _ensure_parent(path)
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(OUTPUT_HEADER)
        for row in rows:
            writer.writerow(
                [
                    row.block_number,
                    row.timestamp,
                    row.user_address,
                    row.token_address,
                    str(row.token_balance),
                    row.token_symbol,
                    _bool_literal(row.in_active),
                ]
            )
    logger.info("User TVL file has been written to %s (%d rows)", path, len(rows))
    return len(rows)


def write_share_balances(balances: Iterable[ShareBalance], path: Path) -> int:
    """Write share token balances as read from the source, before vault splitting."""
    _ensure_parent(path)
    count = 0
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(SHARE_TOKEN_HEADER)
        for balance in balances:
            writer.writerow(
                [
                    balance.block_number,
                    balance.timestamp,
                    balance.user,
                    balance.vault,
                    str(balance.balance),
                    _bool_literal(balance.is_active),
                ]
            )
            count += 1
    logger.debug("Share token file %s: wrote %d rows", path, count)
    return count
