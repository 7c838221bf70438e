"""
Token whitelist loading from tokens.json ({"tokens": {"SYMBOL": "0x..."}}).
"""

import json
import logging
from pathlib import Path
from typing import Dict, Union

from eth_utils import is_hex_address

logger = logging.getLogger(__name__)


def load_tokens_file(path: Union[str, Path]) -> Dict[str, str]:
    """
    Load the token whitelist.

    The file is optional: a missing or unreadable file yields an empty
    mapping, which disables whitelist filtering. Entries whose address is
    not a valid hex address are skipped.

    Returns:
        symbol -> lower-case address
    """
    path = Path(path)
    if not path.exists():
        logger.info(f"No token whitelist at {path}, whitelist filtering disabled")
        return {}

    try:
        with open(path) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read token whitelist {path}: {e}")
        return {}

    entries = data.get("tokens") if isinstance(data, dict) else None
    if not isinstance(entries, dict):
        logger.warning(f"Token whitelist {path} has no 'tokens' object")
        return {}

    tokens = {}
    for symbol, address in entries.items():
        if not isinstance(address, str) or not is_hex_address(address):
            logger.warning(f"Skipping token {symbol}: invalid address {address!r}")
            continue
        tokens[symbol] = address.lower()

    logger.info(f"Loaded {len(tokens)} whitelisted tokens from {path}")
    return tokens
