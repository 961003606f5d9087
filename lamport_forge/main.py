"""
Command line entry point.

Subcommands:
- keygen: create a Lamport key pair as hex files
- sign:   sign a message with a hex secret key
- verify: check a hex signature on a message
- forge:  rebuild leaked key material from known signatures and forge
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from lamport_forge.codec import (
    key_to_hex,
    public_key_from_hex,
    secret_key_from_hex,
    signature_from_hex,
    signature_to_hex,
)
from lamport_forge.config import get_settings
from lamport_forge.crypto import (
    FormatError,
    ForgeError,
    InconsistencyError,
    RandomSourceError,
    digest_message,
    generate_keypair,
    sign_message,
    supported_hash_algorithms,
)
from lamport_forge.models import Signature
from lamport_forge.services.aggregator import aggregate_leaks
from lamport_forge.services.forger import Forger
from lamport_forge.services.verifier import verify, verify_pairs

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def _read_text(path: str) -> str:
    try:
        return Path(path).read_text(encoding='utf-8')
    except OSError as e:
        raise FormatError(f"Cannot read {path}: {e}") from e


def _write_or_print(text: str, path: Optional[str]) -> None:
    if path:
        Path(path).write_text(text + "\n", encoding='utf-8')
        print(f"Wrote {path}")
    else:
        print(text)


def _parse_known(entries: List[str], bits: int) -> List[Tuple[str, Signature]]:
    """Parse TEXT=SIGFILE entries into (text, signature) pairs."""
    known = []
    for entry in entries:
        text, sep, path = entry.rpartition('=')
        if not sep or not path:
            raise FormatError(f"Known signature must be TEXT=SIGFILE, got {entry!r}")
        known.append((text, signature_from_hex(_read_text(path), bits)))
    return known


# ============================================================================
# Commands
# ============================================================================

def cmd_keygen(args) -> int:
    secret_key, public_key = generate_keypair(args.bits, args.hash)
    _write_or_print(key_to_hex(secret_key), args.secret_out)
    _write_or_print(key_to_hex(public_key), args.public_out)
    return 0


def cmd_sign(args) -> int:
    secret_key = secret_key_from_hex(_read_text(args.secret_key), args.bits, args.hash)
    message = digest_message(args.message, args.bits, args.hash)
    signature = sign_message(message, secret_key)
    _write_or_print(signature_to_hex(signature), args.out)
    return 0


def cmd_verify(args) -> int:
    public_key = public_key_from_hex(_read_text(args.public_key), args.bits, args.hash)
    signature = signature_from_hex(_read_text(args.signature), args.bits)
    message = digest_message(args.message, args.bits, args.hash)

    ok = verify(message, public_key, signature)
    print(f"ok: {ok}")
    return 0 if ok else 1


def cmd_forge(args) -> int:
    settings = get_settings()
    public_key = public_key_from_hex(_read_text(args.public_key), args.bits, args.hash)
    known = _parse_known(args.known, args.bits)
    pairs = [(digest_message(text, args.bits, args.hash), sig) for text, sig in known]
    logger.info(f"Loaded {len(pairs)} known signature(s)")

    verify_pairs(pairs, public_key)
    report = aggregate_leaks(
        pairs,
        public_key=public_key,
        strict=args.strict or settings.strict_consistency,
    )

    forger = Forger(
        public_key,
        report.partial_key,
        prefix=args.prefix,
        known_messages=[text for text, _ in known],
        marker=args.marker,
        max_iterations=args.max_iterations,
        workers=args.workers,
        timeout_seconds=args.timeout,
    )

    try:
        result = forger.forge()
    except ForgeError as e:
        print(f"Forgery failed: {e}", file=sys.stderr)
        return 1

    print(f"message: {result.message}")
    print(f"attempts: {result.iterations}")
    print(f"ok: {verify(result.digest, public_key, result.signature)}")
    _write_or_print(signature_to_hex(result.signature), args.out)
    return 0


# ============================================================================
# Parser
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()

    parser = argparse.ArgumentParser(
        prog="lamport-forge",
        description=f"{settings.app_name}: verify Lamport signatures and forge them under reused keys"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {settings.app_version}")
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging"
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--bits",
        type=int,
        default=settings.message_bits,
        help="Message width in bits (default: %(default)s)"
    )
    common.add_argument(
        "--hash",
        choices=supported_hash_algorithms(),
        default=settings.hash_algorithm,
        help="Hash algorithm (default: %(default)s)"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    keygen = sub.add_parser("keygen", parents=[common], help="Generate a key pair")
    keygen.add_argument("--secret-out", help="Secret key output file")
    keygen.add_argument("--public-out", help="Public key output file")
    keygen.set_defaults(handler=cmd_keygen)

    sign = sub.add_parser("sign", parents=[common], help="Sign a message")
    sign.add_argument("--secret-key", required=True, help="Hex secret key file")
    sign.add_argument("--message", required=True, help="Message text")
    sign.add_argument("--out", help="Signature output file")
    sign.set_defaults(handler=cmd_sign)

    verify_cmd = sub.add_parser("verify", parents=[common], help="Verify a signature")
    verify_cmd.add_argument("--public-key", required=True, help="Hex public key file")
    verify_cmd.add_argument("--message", required=True, help="Message text")
    verify_cmd.add_argument("--signature", required=True, help="Hex signature file")
    verify_cmd.set_defaults(handler=cmd_verify)

    forge = sub.add_parser("forge", parents=[common], help="Forge from reused-key signatures")
    forge.add_argument("--public-key", required=True, help="Hex public key file")
    forge.add_argument(
        "--known",
        action="append",
        required=True,
        metavar="TEXT=SIGFILE",
        help="Known message and its hex signature file (repeatable)"
    )
    forge.add_argument("--prefix", default=settings.forge_prefix, help="Forged message prefix")
    forge.add_argument("--marker", default=settings.forge_marker, help="Required substring of the prefix")
    forge.add_argument("--max-iterations", type=int, default=settings.max_iterations)
    forge.add_argument("--workers", type=int, default=settings.workers)
    forge.add_argument("--timeout", type=float, default=settings.timeout_seconds, help="Seconds before giving up")
    forge.add_argument("--strict", action="store_true", help="Abort on inconsistent known signatures")
    forge.add_argument("--out", help="Forged signature output file")
    forge.set_defaults(handler=cmd_forge)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging("DEBUG" if args.verbose or settings.debug else settings.log_level)

    try:
        return args.handler(args)
    except (FormatError, InconsistencyError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    except RandomSourceError as e:
        logger.error(f"Random source failure: {e}")
        print(f"error: {e}", file=sys.stderr)
        return 3


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
