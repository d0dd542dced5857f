import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from vault_tvl.abi_loader import load_all_abis
from vault_tvl.blocks import select_blocks
from vault_tvl.config import AppConfig, load_config
from vault_tvl.errors import VaultTVLError
from vault_tvl.output import write_output_rows, write_share_balances
from vault_tvl.readers.subgraph import SubgraphShareBalanceSource
from vault_tvl.readers.web3_reader import Web3SnapshotReader, get_provider
from vault_tvl.report import VaultTVLReport
from vault_tvl.ui import print_summary, setup_logging

logger = logging.getLogger("vault_tvl")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Per-user active/inactive TVL of concentrated-liquidity vaults at historical blocks."
    )
    parser.add_argument("--config", type=Path, default=None, help="path to config.json")
    parser.add_argument("--block", type=int, action="append", dest="blocks", help="block height (repeatable)")
    parser.add_argument("--blocks-csv", type=Path, default=None, help="CSV file with a 'block' column")
    parser.add_argument("--output", type=Path, default=None, help="user TVL CSV path")
    parser.add_argument("--share-token-output", type=Path, default=None, help="share token balances CSV path")
    parser.add_argument("--log-level", default=None)
    return parser.parse_args(argv)


def build_report(config: AppConfig) -> VaultTVLReport:
    provider = get_provider(config.chain.rpc_urls)
    share_source = SubgraphShareBalanceSource(config.source.subgraph_url, config.source.page_size)
    reader = Web3SnapshotReader(provider, config.vaults, load_all_abis(), share_source)
    return VaultTVLReport(reader, config.vaults)


def run(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    setup_logging(args.log_level or config.log_level)
    blocks = select_blocks(args.blocks, args.blocks_csv, config.blocks_csv, config.blocks)
    output_path = args.output or config.output.output_path
    share_token_path = args.share_token_output or config.output.share_token_path

    logger.info("Processing %d block(s) across %d vault(s) on %s", len(blocks), len(config.vaults), config.chain.name)
    report = build_report(config)
    rows = report.run(blocks)

    write_share_balances(report.share_balances, share_token_path)
    logger.info("Share token file has been written to %s", share_token_path)
    write_output_rows(rows, output_path)
    print_summary(report.rows_per_block, report.block_timestamps)
    if report.failed_vaults:
        for vault, block_number in report.failed_vaults:
            logger.error("Vault %s failed at block %s; its rows are missing from the report", vault, block_number)
        return 1
    logger.info("Done")
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    try:
        sys.exit(run(args))
    except VaultTVLError as exc:
        logger.error("%s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
