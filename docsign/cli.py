"""
DocSign command-line interface.

Usage:
    docsign inspect certs/signer_cert.pem
    docsign keygen --out keys/signer --algorithm ECDSA --key-size 256
    docsign sign contract.pdf --cert certs/signer_cert.pem --key certs/signer_key.pem
    docsign verify contract.pdf contract.pdf.p7s --ca certs/ca_cert.pem
"""

import argparse
import os
import sys
from typing import List, Optional

from loguru import logger

from docsign.common import config
from docsign.common.exceptions import DocSignException
from docsign.common.models import SignatureOptions, ValidationOptions
from docsign.common.utils import format_duration
from docsign.crypto.certificate import get_certificate_info, parse_certificate
from docsign.crypto.keys import generate_key_pair, import_private_key, validate_key_pair
from docsign.crypto.report import export_validation_result, export_validation_result_as_text
from docsign.crypto.sign import sign_file
from docsign.crypto.validate import validate_signature

SIGNATURE_SUFFIXES = {"pkcs7": ".p7s", "detached": ".sig"}


def _configure_logging(level: str):
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def _read(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def _load_certificate(path: str):
    data = _read(path)
    fmt = "pem" if b"-----BEGIN" in data else "der"
    return parse_certificate(data, fmt)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="docsign", description="Sign and validate documents")
    parser.add_argument(
        "--log-level",
        default=config.LOG_LEVEL,
        help=f"Log level (default: {config.LOG_LEVEL})"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    inspect_parser = subparsers.add_parser("inspect", help="Show certificate details")
    inspect_parser.add_argument("certificate", help="Certificate file (PEM or DER)")
    inspect_parser.add_argument("--json", action="store_true", help="Print the parsed certificate as JSON")

    keygen_parser = subparsers.add_parser("keygen", help="Generate a key pair")
    keygen_parser.add_argument(
        "--out",
        required=True,
        help="Output prefix for key files (e.g., keys/signer)"
    )
    keygen_parser.add_argument("--algorithm", choices=["RSA", "ECDSA"], default="RSA")
    keygen_parser.add_argument(
        "--key-size",
        type=int,
        default=2048,
        help="RSA modulus size, or 256/384 for ECDSA (default: 2048)"
    )

    sign_parser = subparsers.add_parser("sign", help="Sign a document")
    sign_parser.add_argument("document", help="Document to sign")
    sign_parser.add_argument("--cert", required=True, help="Signer certificate (PEM or DER)")
    sign_parser.add_argument("--key", required=True, help="Signer private key (PEM)")
    sign_parser.add_argument("--password", default=None, help="Password for an encrypted key")
    sign_parser.add_argument(
        "--hash",
        choices=["SHA-256", "SHA-384", "SHA-512"],
        default=config.DEFAULT_HASH_ALGORITHM
    )
    sign_parser.add_argument(
        "--format",
        choices=["pkcs7", "detached"],
        default=config.DEFAULT_SIGNATURE_FORMAT
    )
    sign_parser.add_argument("--out", default=None, help="Output file (default: document + .p7s/.sig)")

    verify_parser = subparsers.add_parser("verify", help="Validate a pkcs7 signature")
    verify_parser.add_argument("document", help="Signed document")
    verify_parser.add_argument("signature", help="Signature file (base64, PEM or DER)")
    verify_parser.add_argument(
        "--ca",
        action="append",
        default=[],
        help="Trusted CA certificate (repeatable)"
    )
    verify_parser.add_argument("--allow-expired", action="store_true")
    verify_parser.add_argument("--validate-timestamp", action="store_true")
    verify_parser.add_argument("--check-revocation", action="store_true")
    verify_parser.add_argument("--json", action="store_true", help="Print the report as JSON")

    return parser


def _inspect(args) -> int:
    certificate = _load_certificate(args.certificate)
    if args.json:
        print(certificate.model_dump_json(indent=2))
        return 0

    info = get_certificate_info(certificate)
    print(f"Subject:             {info['subject']}")
    print(f"Issuer:              {info['issuer']}")
    print(f"Serial:              {info['serial_number']}")
    print(f"Valid from:          {info['not_valid_before']}")
    print(f"Valid until:         {info['not_valid_after']}")
    print(f"Status:              {format_duration(info['days_until_expiration'])}")
    print(f"Public key:          {info['public_key']}")
    print(f"Signature algorithm: {info['signature_algorithm']}")
    print(f"SHA-1:               {info['sha1']}")
    print(f"SHA-256:             {info['sha256']}")
    return 0


def _keygen(args) -> int:
    print(f"[*] Generating {args.algorithm} key pair...")
    private_pem, public_pem = generate_key_pair(args.algorithm, args.key_size)

    output_dir = os.path.dirname(args.out)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)

    key_path = f"{args.out}_key.pem"
    with open(key_path, "w") as f:
        f.write(private_pem)
    print(f"[+] Private key saved to: {key_path}")

    pub_path = f"{args.out}_pub.pem"
    with open(pub_path, "w") as f:
        f.write(public_pem)
    print(f"[+] Public key saved to: {pub_path}")
    return 0


def _sign(args) -> int:
    certificate = _load_certificate(args.cert)
    options = SignatureOptions(hash_algorithm=args.hash, format=args.format)

    with import_private_key(_read(args.key), args.password) as key:
        if not validate_key_pair(key, certificate):
            print("[!] Private key does not match the certificate", file=sys.stderr)
            return 1
        result = sign_file(args.document, certificate, key, options)

    out_path = args.out or f"{args.document}{SIGNATURE_SUFFIXES[result.format]}"
    with open(out_path, "w") as f:
        f.write(result.signature)

    print(f"[+] Signed with {result.algorithm} at {result.signed_at.isoformat()}")
    print(f"    Signer: {result.metadata.signer_info}")
    print(f"    Certificate SHA-256: {result.metadata.certificate_fingerprint}")
    print(f"[+] Signature saved to: {out_path}")
    return 0


def _verify(args) -> int:
    options = ValidationOptions(
        trusted_cas=[_load_certificate(path) for path in args.ca],
        allow_expired_certificates=args.allow_expired,
        validate_timestamp=args.validate_timestamp,
        check_revocation=args.check_revocation,
    )
    result = validate_signature(_read(args.document), _read(args.signature), options)

    if args.json:
        print(export_validation_result(result))
    else:
        print(export_validation_result_as_text(result))
    return 0 if result.valid else 1


COMMANDS = {
    "inspect": _inspect,
    "keygen": _keygen,
    "sign": _sign,
    "verify": _verify,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logger.enable("docsign")
    _configure_logging(args.log_level)

    try:
        return COMMANDS[args.command](args)
    except DocSignException as e:
        print(f"[!] {e}", file=sys.stderr)
        return 2
    except OSError as e:
        print(f"[!] {e.strerror}: {e.filename}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
