"""
sigstark command line

Usage:
    sigstark params
    sigstark prove  --public-input FILE --witness FILE --out FILE
    sigstark verify --public-input FILE --proof FILE

Public input is a JSON object with message_hash, public_key and signature;
the witness is a JSON array of integers. Proofs are written in the binary
wire format. Parameters come from SIGSTARK_* environment variables.
"""

from pathlib import Path
from typing import List, Optional
import argparse
import json
import sys

from .air import PublicInput
from .errors import StarkError
from .proof import STARKProof, proof_hash
from .settings import get_settings
from .stark import STARKProver, STARKVerifier
from .observability import setup_logging


def _read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise SystemExit(f"sigstark: {path}: {exc.strerror or exc}")


def _read_json(path: Path):
    try:
        return json.loads(_read_bytes(path))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise SystemExit(f"sigstark: {path}: invalid JSON ({exc})")


def cmd_params(args, params) -> int:
    summary = {
        'field_prime': hex(params.field_prime),
        'field_generator': params.field_generator,
        'blowup_factor': params.blowup_factor,
        'fri_round_budget': params.fri_round_budget,
        'num_queries': params.num_queries,
        'hash_name': params.hash_name,
        'params_digest': hex(params.digest()),
        'conjectured_security_bits': params.conjectured_security_bits(),
    }
    print(json.dumps(summary, indent=2))
    return 0


def cmd_prove(args, params) -> int:
    public_input = PublicInput.from_mapping(_read_json(args.public_input))
    witness = _read_json(args.witness)

    proof = STARKProver(params).prove(public_input, witness)
    data = proof.serialize()
    try:
        args.out.write_bytes(data)
    except OSError as exc:
        raise SystemExit(f"sigstark: {args.out}: {exc.strerror or exc}")

    print(f"Proof written to: {args.out} ({len(data)} bytes)")
    print(f"Proof hash: {proof_hash(proof, params.hasher):#066x}")
    return 0


def cmd_verify(args, params) -> int:
    public_input = PublicInput.from_mapping(_read_json(args.public_input))
    proof = STARKProof.deserialize(_read_bytes(args.proof), params.field)

    accepted, reason = STARKVerifier(params).verify_with_reason(public_input, proof)
    if accepted:
        print("ACCEPT")
        return 0
    print(f"REJECT: {reason}")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='sigstark',
        description='STARK proofs binding a private witness to a signature statement',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    sigstark params
    sigstark prove --public-input pi.json --witness w.json --out proof.bin
    sigstark verify --public-input pi.json --proof proof.bin
        """
    )
    commands = parser.add_subparsers(dest='command', required=True)

    params = commands.add_parser('params', help='Show the active proof parameters')
    params.set_defaults(handler=cmd_params)

    prove = commands.add_parser('prove', help='Generate a proof')
    prove.add_argument('--public-input', type=Path, required=True, help='Public input JSON file')
    prove.add_argument('--witness', type=Path, required=True, help='Witness JSON file')
    prove.add_argument('--out', '-o', type=Path, required=True, help='Proof output file')
    prove.set_defaults(handler=cmd_prove)

    verify = commands.add_parser('verify', help='Verify a proof')
    verify.add_argument('--public-input', type=Path, required=True, help='Public input JSON file')
    verify.add_argument('--proof', type=Path, required=True, help='Proof file')
    verify.set_defaults(handler=cmd_verify)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings()
        setup_logging(settings.log_level.value, settings.json_logs)
        return args.handler(args, settings.to_params())
    except StarkError as exc:
        print(f"sigstark: {type(exc).__name__}: {exc}", file=sys.stderr)
        return 2


if __name__ == '__main__':
    sys.exit(main())
