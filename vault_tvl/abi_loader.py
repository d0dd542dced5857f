import json
from pathlib import Path
from typing import Dict, List

ABI_NAMES = ("vault", "erc20", "erc20_bytes32")


def _load_single_abi(abi_dir: Path, name: str) -> List[dict]:
    path = abi_dir / f"{name}.json"
    if not path.exists():
        raise FileNotFoundError(f"ABI file not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def load_all_abis(abi_path: Path | None = None) -> Dict[str, List[dict]]:
    abi_dir = abi_path or Path(__file__).with_name("abis")
    if not abi_dir.exists():
        raise FileNotFoundError(f"ABI directory not found: {abi_dir}")
    return {name: _load_single_abi(abi_dir, name) for name in ABI_NAMES}
