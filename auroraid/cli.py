"""
AuroraID CLI - device-bound wallet commands.

Commands:
  auroraid device-id   - Show (and on first use, establish) this device's ID
  auroraid generate    - Create or load the wallet bound to a device ID
  auroraid status      - Report whether a device ID has a usable wallet
  auroraid pair        - Decode a hardware pairing frame into a companion wallet
  auroraid regenerate  - Replace a wallet with the next generation (needs --yes)
  auroraid delete      - Remove a stored wallet (needs --yes)
  auroraid sign        - Sign a message with a stored wallet
  auroraid verify      - Verify a signature against a stored wallet

Output is JSON on stdout. Private keys are never printed; the mnemonic
is printed only with --reveal.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Optional

from auroraid import __version__
from auroraid.core.config import IdentityConfig
from auroraid.core.crypto.wallet import Wallet
from auroraid.core.errors import IdentityError
from auroraid.core.identity.service import IdentityService
from auroraid.core.logging import configure_root_logger
from auroraid.db.kv_store import MemoryStore, open_store


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_RETRYABLE = 3


def _emit(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def _wallet_payload(wallet: Wallet, reveal: bool) -> dict[str, Any]:
    return wallet.redacted(reveal_mnemonic=reveal)


def _target_device(service: IdentityService, args: argparse.Namespace) -> str:
    """--device-id if given, else the active local device."""
    return args.device_id or service.current_device_id()


def _read_frame(value: str) -> str:
    if value == "-":
        return sys.stdin.read()
    return value


def cmd_device_id(service: IdentityService, args: argparse.Namespace) -> int:
    _emit({"deviceId": service.current_device_id()})
    return EXIT_OK


def cmd_generate(service: IdentityService, args: argparse.Namespace) -> int:
    wallet = service.generate_wallet(_target_device(service, args), args.chain)
    _emit(_wallet_payload(wallet, args.reveal))
    return EXIT_OK


def cmd_status(service: IdentityService, args: argparse.Namespace) -> int:
    device_id = _target_device(service, args)
    payload = service.check_wallet_status(device_id).to_dict()
    payload["deviceId"] = device_id
    payload["state"] = service.state(device_id).value
    _emit(payload)
    return EXIT_OK


def cmd_pair(service: IdentityService, args: argparse.Namespace) -> int:
    wallet = service.decrypt_and_generate_mnemonic(_read_frame(args.frame))
    _emit(_wallet_payload(wallet, args.reveal))
    return EXIT_OK


def cmd_regenerate(service: IdentityService, args: argparse.Namespace) -> int:
    device_id = _target_device(service, args)
    wallet = service.regenerate_wallet(device_id, confirmed=args.yes, chain_type=args.chain)
    _emit(_wallet_payload(wallet, args.reveal))
    return EXIT_OK


def cmd_delete(service: IdentityService, args: argparse.Namespace) -> int:
    device_id = _target_device(service, args)
    if not args.yes:
        print(
            f"Error: Deleting the wallet for {device_id} destroys its keys. Re-run with --yes.",
            file=sys.stderr,
        )
        return EXIT_ERROR
    _emit({"deviceId": device_id, "deleted": service.delete_wallet(device_id)})
    return EXIT_OK


def cmd_sign(service: IdentityService, args: argparse.Namespace) -> int:
    device_id = _target_device(service, args)
    _emit({"deviceId": device_id, "signature": service.sign_message(device_id, args.message)})
    return EXIT_OK


def cmd_verify(service: IdentityService, args: argparse.Namespace) -> int:
    device_id = _target_device(service, args)
    check = service.verify_signature(device_id, args.message, args.signature)
    _emit({"success": check.success, "message": check.message})
    return EXIT_OK if check.success else EXIT_ERROR


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="auroraid",
        description="AuroraID - device-bound BIP39 wallets.",
    )
    parser.add_argument("--version", action="version", version=f"auroraid {__version__}")
    parser.add_argument(
        "--ephemeral",
        action="store_true",
        help="Use an in-memory store (nothing is written to disk)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override the configured log level",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("device-id", help="Show this device's ID")

    def _device_arg(p: argparse.ArgumentParser) -> None:
        p.add_argument("--device-id", help="Target device ID (default: this device)")

    def _reveal_arg(p: argparse.ArgumentParser) -> None:
        p.add_argument("--reveal", action="store_true", help="Include the mnemonic in the output")

    p_gen = sub.add_parser("generate", help="Create or load the device wallet")
    _device_arg(p_gen)
    _reveal_arg(p_gen)
    p_gen.add_argument("--chain", help="ethereum, polkadot or kusama")

    p_status = sub.add_parser("status", help="Show wallet status")
    _device_arg(p_status)

    p_pair = sub.add_parser("pair", help="Decode a hardware pairing frame")
    p_pair.add_argument("frame", help="Frame text ('zczc ... nnnn'), or - to read stdin")
    _reveal_arg(p_pair)

    p_regen = sub.add_parser("regenerate", help="Replace the device wallet")
    _device_arg(p_regen)
    _reveal_arg(p_regen)
    p_regen.add_argument("--chain", help="Chain for the new wallet (default: keep)")
    p_regen.add_argument("--yes", action="store_true", help="Confirm the old keys may be discarded")

    p_del = sub.add_parser("delete", help="Delete the device wallet")
    _device_arg(p_del)
    p_del.add_argument("--yes", action="store_true", help="Confirm deletion")

    p_sign = sub.add_parser("sign", help="Sign a message")
    _device_arg(p_sign)
    p_sign.add_argument("message", help="Message text")

    p_verify = sub.add_parser("verify", help="Verify a signature")
    _device_arg(p_verify)
    p_verify.add_argument("message", help="Message text")
    p_verify.add_argument("signature", help="0x-prefixed 65-byte signature")

    return parser


COMMANDS = {
    "device-id": cmd_device_id,
    "generate": cmd_generate,
    "status": cmd_status,
    "pair": cmd_pair,
    "regenerate": cmd_regenerate,
    "delete": cmd_delete,
    "sign": cmd_sign,
    "verify": cmd_verify,
}


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_ERROR

    try:
        config = IdentityConfig.load()
    except ValueError as exc:
        print(f"Error: Invalid configuration: {exc}", file=sys.stderr)
        return EXIT_ERROR

    if config.logging.enable_file:
        config.ensure_directories()
    configure_root_logger(
        log_dir=config.paths.log_dir,
        level=args.log_level or config.logging.level,
        enable_console=config.logging.enable_console,
        enable_file=config.logging.enable_file,
        enable_json=config.logging.enable_json,
        include_checksums=config.logging.include_checksums,
        max_file_size=config.logging.max_file_size_bytes,
        backup_count=config.logging.backup_count,
    )

    try:
        store = MemoryStore() if args.ephemeral else open_store(config)
        service = IdentityService(store, config)
        return COMMANDS[args.command](service, args)
    except IdentityError as exc:
        logger.debug("Command %s failed: %s", args.command, type(exc).__name__)
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_RETRYABLE if exc.retryable else EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
