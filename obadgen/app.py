"""
Command line interface of obadgen.

Generates Open Badge 2.0 assertions and bakes them into PNG and SVG images.
Log output goes to stderr, results to stdout.
"""
import argparse
import logging
import sys
from pathlib import Path

from obadgen import __version__, patcher
from obadgen.build_openbadge_metadata import (
    IDENTITY_TYPES,
    build_assertion,
    build_badge_class,
    build_criteria,
    build_cryptographic_key,
    build_identity,
    build_issuer,
    build_verification,
    get_current_timestamp,
)
from obadgen.crypto_utils import derive_public_key_from_private, load_private_key, public_key_pem, save_keypair
from obadgen.patcher import PatchError, VerifyAlreadySet
from obadgen.process import run
from obadgen.settings import Settings, Verbosity, default_verbosity

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_CONFLICT = 2


def setup_logging(verbosity: Verbosity) -> None:
    logging.basicConfig(
        level=verbosity.to_logging_level(),
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s"
    )
    logging.getLogger().setLevel(verbosity.to_logging_level())


def verbosity(args: argparse.Namespace) -> Verbosity:
    """Returns the logging verbosity to be used."""
    if args.quiet:
        return Verbosity.NONE
    if args.log_level:
        return Verbosity(args.log_level)
    return default_verbosity().up(args.verbose)


def cmd_bake(args: argparse.Namespace, settings: Settings) -> int:
    settings.assertion_loc = args.assertion
    settings.verify_url = args.verify
    settings.key_id = args.key_id
    settings.source_image_loc = args.source
    settings.baked_loc = args.baked
    settings.fail_if_verify_present = not args.overwrite
    if args.sign_key:
        settings.sign_key_loc = args.sign_key
    if args.no_sign:
        settings.private_key = None
    run(settings)
    logger.info("Baked badge written to '%s'", args.baked)
    return 0


def cmd_extract(args: argparse.Namespace, settings: Settings) -> int:
    verify = patcher.extract(args.image)
    if verify is None:
        logger.error("No Open Badge data found in '%s'", args.image)
        return EXIT_FAILURE
    print(verify)
    return 0


def cmd_keygen(args: argparse.Namespace, settings: Settings) -> int:
    public_key, _ = save_keypair(args.private_out, args.public_out)
    logger.info("Private key written to '%s'", args.private_out)
    print(public_key)
    return 0


def cmd_assertion(args: argparse.Namespace, settings: Settings) -> int:
    verification = build_verification(
        "signed" if args.signed else "hosted",
        creator=args.creator if args.signed else None
    )
    assertion = build_assertion(
        assertion_id=args.id,
        badge=args.badge,
        recipient=build_identity(args.recipient, args.identity_type, hashed=not args.plain, salt=args.salt),
        verification=verification,
        issued_on=args.issued_on or get_current_timestamp(),
        image=args.image,
        evidence=args.evidence,
        narrative=args.narrative,
        expires=args.expires
    )
    write_document(assertion, args.output, "Assertion")
    return 0


def cmd_badge_class(args: argparse.Namespace, settings: Settings) -> int:
    criteria = args.criteria
    if args.criteria_narrative or not args.criteria:
        criteria = build_criteria(criteria_id=args.criteria, narrative=args.criteria_narrative)
    badge_class = build_badge_class(
        badge_id=args.id,
        name=args.name,
        description=args.description,
        image=args.image,
        criteria=criteria,
        issuer=args.issuer,
        tags=args.tag,
        alignment=args.alignment
    )
    write_document(badge_class, args.output, "BadgeClass")
    return 0


def cmd_issuer(args: argparse.Namespace, settings: Settings) -> int:
    issuer = build_issuer(
        issuer_id=args.id,
        name=args.name,
        url=args.url,
        email=args.email,
        public_key=args.public_key,
        description=args.description,
        image=args.image,
        telephone=args.telephone,
        revocation_list=args.revocation_list
    )
    write_document(issuer, args.output, "Issuer")
    return 0


def cmd_key(args: argparse.Namespace, settings: Settings) -> int:
    public_key = args.public_key
    if args.sign_key:
        public_key = derive_public_key_from_private(load_private_key(args.sign_key))
    key = build_cryptographic_key(args.id, args.owner, public_key_pem(public_key))
    write_document(key, args.output, "CryptographicKey")
    return 0


def write_document(document: str, output: Path, kind: str) -> None:
    if output:
        output.write_text(document + "\n", encoding="utf-8")
        logger.info("%s written to '%s'", kind, output)
    else:
        print(document)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="obadgen",
        description="Generates (aka \"bakes\") Open Badge annotated PNG and SVG images"
    )
    parser.add_argument("-V", "--version", action="store_true",
                        help="Print version information and exit. Combine with -q to only print the version string.")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="More verbose log output; may be repeated")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Suppress log output")
    parser.add_argument("-F", "--log-level", choices=[v.value for v in Verbosity],
                        help="Set the log level")
    subparsers = parser.add_subparsers(dest="command")

    bake = subparsers.add_parser("bake", help="Bake a hosted URL or an assertion into an image")
    bake.add_argument("source", type=Path, help="Image to bake (.png or .svg)")
    bake.add_argument("baked", type=Path, help="Where to write the baked image")
    payload = bake.add_mutually_exclusive_group(required=True)
    payload.add_argument("--verify", metavar="URL", help="Hosted assertion URL to bake")
    payload.add_argument("--assertion", type=Path, metavar="FILE", help="Assertion JSON-LD to bake")
    bake.add_argument("--sign-key", type=Path, metavar="FILE",
                      help="Multibase Ed25519 private key; defaults to $CRYPTO_PK")
    bake.add_argument("--no-sign", action="store_true", help="Do not sign, even if $CRYPTO_PK is set")
    bake.add_argument("--key-id", help="Signing key id, added to the JWS header")
    bake.add_argument("-o", "--overwrite", action="store_true",
                      help="Replace Open Badge data already present in the image")
    bake.set_defaults(func=cmd_bake)

    extract = subparsers.add_parser("extract", help="Print the Open Badge data baked into an image")
    extract.add_argument("image", type=Path)
    extract.set_defaults(func=cmd_extract)

    keygen = subparsers.add_parser("keygen", help="Generate an Ed25519 signing key pair")
    keygen.add_argument("private_out", type=Path, help="Where to write the private key")
    keygen.add_argument("--public-out", type=Path, help="Where to write the public key")
    keygen.set_defaults(func=cmd_keygen)

    assertion = subparsers.add_parser("assertion", help="Generate an Open Badge 2.0 assertion")
    assertion.add_argument("--id", required=True, help="Assertion IRI")
    assertion.add_argument("--badge", required=True, help="BadgeClass IRI")
    assertion.add_argument("--recipient", required=True, help="Recipient identity, e.g. an email address")
    assertion.add_argument("--identity-type", choices=IDENTITY_TYPES, default="email")
    assertion.add_argument("--plain", action="store_true", help="Do not hash the recipient identity")
    assertion.add_argument("--salt", help="Salt for hashing the recipient identity")
    assertion.add_argument("--issued-on", help="ISO 8601 timestamp; defaults to now")
    assertion.add_argument("--expires", help="ISO 8601 timestamp")
    assertion.add_argument("--image", help="Badge image IRI")
    assertion.add_argument("--evidence", action="append", help="Evidence IRI; may be repeated")
    assertion.add_argument("--narrative")
    assertion.add_argument("--signed", action="store_true", help="Use signed instead of hosted verification")
    assertion.add_argument("--creator", help="Signing key id, for signed verification")
    assertion.add_argument("-o", "--output", type=Path, help="Write to this file instead of stdout")
    assertion.set_defaults(func=cmd_assertion)

    badge_class = subparsers.add_parser("badge-class", help="Generate an Open Badge 2.0 BadgeClass")
    badge_class.add_argument("--id", required=True, help="BadgeClass IRI")
    badge_class.add_argument("--name", required=True)
    badge_class.add_argument("--description", required=True)
    badge_class.add_argument("--image", required=True, help="Badge image IRI")
    badge_class.add_argument("--criteria", help="Criteria IRI")
    badge_class.add_argument("--criteria-narrative", help="Embed the criteria with this narrative")
    badge_class.add_argument("--issuer", required=True, help="Issuer IRI")
    badge_class.add_argument("--tag", action="append", help="May be repeated")
    badge_class.add_argument("--alignment", action="append", help="Alignment IRI; may be repeated")
    badge_class.add_argument("-o", "--output", type=Path, help="Write to this file instead of stdout")
    badge_class.set_defaults(func=cmd_badge_class)

    issuer = subparsers.add_parser("issuer", help="Generate an Open Badge 2.0 Issuer profile")
    issuer.add_argument("--id", required=True, help="Issuer IRI")
    issuer.add_argument("--name")
    issuer.add_argument("--url")
    issuer.add_argument("--email")
    issuer.add_argument("--telephone")
    issuer.add_argument("--description")
    issuer.add_argument("--image", help="Issuer image IRI")
    issuer.add_argument("--public-key", metavar="IRI", help="CryptographicKey IRI, for signed badges")
    issuer.add_argument("--revocation-list", metavar="IRI")
    issuer.add_argument("-o", "--output", type=Path, help="Write to this file instead of stdout")
    issuer.set_defaults(func=cmd_issuer)

    key = subparsers.add_parser("key", help="Generate an Open Badge 2.0 CryptographicKey")
    key.add_argument("--id", required=True, help="CryptographicKey IRI")
    key.add_argument("--owner", required=True, help="Issuer IRI")
    public_key = key.add_mutually_exclusive_group(required=True)
    public_key.add_argument("--public-key", help="Multibase Ed25519 public key")
    public_key.add_argument("--sign-key", type=Path, metavar="FILE",
                            help="Multibase Ed25519 private key to take the public key from")
    key.add_argument("-o", "--output", type=Path, help="Write to this file instead of stdout")
    key.set_defaults(func=cmd_key)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(__version__ if args.quiet else f"obadgen {__version__}")
        return 0
    if not args.command:
        parser.print_help()
        return EXIT_FAILURE

    settings = Settings(verbosity=verbosity(args))
    setup_logging(settings.verbosity)

    try:
        return args.func(args, settings)
    except VerifyAlreadySet as e:
        logger.error("%s present: '%s', proposed: '%s'; use --overwrite to replace it",
                     e, e.present, e.proposed)
        return EXIT_CONFLICT
    except (PatchError, ValueError, OSError) as e:
        logger.error("%s", e)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
