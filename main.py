#!/usr/bin/env python3
"""
Polymarket On-Chain Event Scanner
Main entry point

Decodes OrderFilled trades and ConditionPreparation markets from Polygon
and prints them as JSON.
"""
import argparse
import json
import logging
import os
import string
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / 'src'))

from errors import PolyscanError
from rpc_manager import RPCManager
from scanner import PolymarketScanner

DEFAULT_FROM_BLOCK = 66000000
DEFAULT_RANGE = 10


def setup_logging(config: dict):
    """
    Setup logging configuration

    Args:
        config: Configuration dictionary
    """
    log_config = config.get('logging', {})
    log_level = getattr(logging, log_config.get('level', 'INFO'))
    log_file = log_config.get('file', 'logs/polyscan.log')

    # Create logs directory
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    # JSON goes to stdout, so logs go to stderr
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stderr)
        ]
    )


def load_config(config_path: str = 'config.yaml') -> dict:
    """
    Load configuration from YAML file

    Args:
        config_path: Path to configuration file

    Returns:
        dict: Configuration dictionary
    """
    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
        return config or {}
    except (OSError, yaml.YAMLError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)


def validate_config(config: dict) -> bool:
    """
    Validate configuration

    Args:
        config: Configuration dictionary

    Returns:
        bool: True if valid
    """
    errors = []

    if not config.get('rpc_endpoints'):
        errors.append("⚠️  No RPC endpoints configured")

    # Check if Infura API key is set when using Infura
    if 'infura' in [e.lower() for e in config.get('rpc_endpoints', [])]:
        if not os.getenv('INFURA_API_KEY'):
            errors.append("⚠️  Infura endpoint configured but INFURA_API_KEY not found in .env file")

    contracts = config.get('contracts') or {}
    for key in ('conditional_tokens', 'collateral_token'):
        value = contracts.get(key)
        if value and not _is_address(value):
            errors.append(f"⚠️  contracts.{key} is not an address: {value}")
    for value in contracts.get('exchanges') or []:
        if not _is_address(value):
            errors.append(f"⚠️  contracts.exchanges entry is not an address: {value}")

    resolver = config.get('resolver') or {}
    if resolver.get('transfer_collision', 'last') not in ('first', 'last'):
        errors.append("⚠️  resolver.transfer_collision must be 'first' or 'last'")

    if errors:
        print("\n" + "=" * 60, file=sys.stderr)
        print("CONFIGURATION ERRORS:", file=sys.stderr)
        print("=" * 60, file=sys.stderr)
        for error in errors:
            print(error, file=sys.stderr)
        print("=" * 60 + "\n", file=sys.stderr)
        return False

    return True


def _is_address(value) -> bool:
    text = str(value)
    return text.startswith('0x') and len(text) == 42


def _hex32(value: str) -> str:
    """argparse type for 32-byte hashes: 0x followed by 64 hex digits"""
    text = value.strip()
    digits = text[2:] if text[:2].lower() == '0x' else ''
    if len(digits) != 64 or any(c not in string.hexdigits for c in digits):
        raise argparse.ArgumentTypeError(f"expected 0x followed by 64 hex digits, got {value!r}")
    return '0x' + digits.lower()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Polymarket on-chain event scanner')
    parser.add_argument('--config', default='config.yaml', help='Path to configuration file')
    parser.add_argument('--output', '-o', help='Write JSON to this file instead of stdout')

    sub = parser.add_subparsers(dest='command', required=True)

    trades = sub.add_parser('trades', help='Decode OrderFilled events in a block range')
    trades.add_argument('--from', dest='from_block', type=int, help='Start block')
    trades.add_argument('--range', dest='block_range', type=int, help='Number of blocks to scan')

    tx = sub.add_parser('tx', help='Decode OrderFilled events of one transaction')
    tx.add_argument('tx_hash', type=_hex32, help='Transaction hash')

    market_tx = sub.add_parser('market-tx', help='Decode the market prepared in one transaction')
    market_tx.add_argument('tx_hash', type=_hex32, help='Transaction hash')

    market = sub.add_parser('market', help='Decode the market of a condition ID')
    market.add_argument('condition_id', type=_hex32, help='Condition ID (0x...)')
    market.add_argument('--from-block', type=int, help='First block to search')

    markets = sub.add_parser('markets', help='Decode ConditionPreparation events in a block range')
    markets.add_argument('--from', dest='from_block', type=int, help='Start block')
    markets.add_argument('--range', dest='block_range', type=int, help='Number of blocks to scan')

    return parser


def _block_window(args, config: dict) -> tuple[int, int]:
    scan_config = config.get('scan', {})
    from_block = args.from_block if args.from_block is not None else scan_config.get('default_from_block', DEFAULT_FROM_BLOCK)
    block_range = args.block_range if args.block_range is not None else scan_config.get('default_range', DEFAULT_RANGE)
    return from_block, from_block + block_range


def run_command(args, scanner: PolymarketScanner, config: dict):
    """
    Dispatch one CLI command

    Returns:
        JSON-serializable result
    """
    if args.command == 'trades':
        from_block, to_block = _block_window(args, config)
        return [t.to_dict() for t in scanner.fetch_events(from_block, to_block)]

    if args.command == 'tx':
        return [t.to_dict() for t in scanner.fetch_tx_events(args.tx_hash.strip())]

    if args.command == 'market-tx':
        info = scanner.fetch_market_info(args.tx_hash.strip())
        return info.to_dict() if info else None

    if args.command == 'market':
        info = scanner.fetch_market_info_by_condition_id(args.condition_id.strip(), args.from_block)
        return info.to_dict() if info else None

    if args.command == 'markets':
        from_block, to_block = _block_window(args, config)
        return [m.to_dict() for m in scanner.fetch_market_events(from_block, to_block)]

    raise ValueError(f"Unknown command: {args.command}")


def main(argv=None):
    """Main entry point"""
    args = build_parser().parse_args(argv)

    config = load_config(args.config)
    setup_logging(config)
    logger = logging.getLogger(__name__)

    if not validate_config(config):
        logger.error("Configuration validation failed. Please check config.yaml")
        sys.exit(1)

    try:
        rpc_manager = RPCManager(
            rpc_endpoints=config['rpc_endpoints'],
            timeout=config.get('rpc', {}).get('timeout', 30)
        )
        scanner = PolymarketScanner(rpc_manager, config)

        result = run_command(args, scanner, config)

    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)

    except PolyscanError as e:
        logger.error(f"{e}")
        sys.exit(1)

    text = json.dumps(result, indent=2)
    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            f.write(text + "\n")
        logger.info(f"Wrote output to {args.output}")
    else:
        print(text)


if __name__ == '__main__':
    main()
