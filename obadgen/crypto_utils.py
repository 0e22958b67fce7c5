import nacl.signing
import nacl.encoding
import multibase
import json
import base64
import os
from pathlib import Path
from typing import Dict, Any, Optional, Tuple, Union

from joserfc import jws
from joserfc.errors import BadSignatureError, JoseError
from joserfc.jwk import OKPKey

# DER header of an Ed25519 SubjectPublicKeyInfo (RFC 8410), followed by the 32 key bytes
ED25519_SPKI_PREFIX = bytes.fromhex("302a300506032b6570032100")
JWS_ALGORITHM = "EdDSA"


def generate_key_id(issuer_id: str, key_index: int = 1) -> str:
    """
    Generate a unique key identifier for a signing key.

    Args:
        issuer_id (str): The issuer's DID or URL identifier
        key_index (int): Sequential number for the key (default: 1)

    Returns:
        str: Unique key identifier in the format "{issuer_id}#key-{key_index}"

    Example:
        >>> generate_key_id("https://example.edu/issuers/565049", 1)
        'https://example.edu/issuers/565049#key-1'
    """
    return f"{issuer_id}#key-{key_index}"


def _multibase_str(data: bytes) -> str:
    return multibase.encode('base58btc', data).decode('utf-8')


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode('ascii')


def create_ed25519_keypair() -> Tuple[str, str]:
    """
    Create a cryptographically secure Ed25519 key pair for signing assertions.

    Uses PyNaCl (libsodium) to generate a new random Ed25519 signing key pair
    and encodes both keys in multibase format using base58btc encoding.

    Returns:
        Tuple[str, str]: A tuple containing (public_key_multibase, private_key_multibase)
            - public_key_multibase: Base58btc-encoded public key with 'z' prefix
            - private_key_multibase: Base58btc-encoded private key with 'z' prefix

    Note:
        The private key should be stored securely and never exposed in logs.
    """
    signing_key = nacl.signing.SigningKey.generate()

    private_key_bytes = signing_key.encode(encoder=nacl.encoding.RawEncoder)
    public_key_bytes = signing_key.verify_key.encode(encoder=nacl.encoding.RawEncoder)

    return _multibase_str(public_key_bytes), _multibase_str(private_key_bytes)


def _signing_key(private_key_multibase: str) -> nacl.signing.SigningKey:
    try:
        private_key_bytes = multibase.decode(private_key_multibase)
        return nacl.signing.SigningKey(private_key_bytes, encoder=nacl.encoding.RawEncoder)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Invalid Ed25519 private key: {e}") from e


def derive_public_key_from_private(private_key_multibase: str) -> str:
    """
    Derive the public key from an Ed25519 private key in multibase format.

    Args:
        private_key_multibase (str): Multibase-encoded (base58btc) Ed25519 private key

    Returns:
        str: Multibase-encoded (base58btc) Ed25519 public key with 'z' prefix

    Raises:
        ValueError: If the private key format is invalid
    """
    verify_key = _signing_key(private_key_multibase).verify_key
    return _multibase_str(verify_key.encode(encoder=nacl.encoding.RawEncoder))


def load_private_key(key_path: Union[str, Path]) -> str:
    """
    Load a multibase-encoded Ed25519 private key from a file.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the file does not contain a valid key.
    """
    private_key = Path(key_path).read_text(encoding='utf-8').strip()
    # fail early on garbage
    _signing_key(private_key)
    return private_key


def save_keypair(private_key_path: Union[str, Path], public_key_path: Union[str, Path] = None) -> Tuple[str, str]:
    """
    Generate a new key pair and store it, the private key readable by the owner only.

    Returns:
        Tuple[str, str]: (public_key_multibase, private_key_multibase)
    """
    public_key, private_key = create_ed25519_keypair()
    private_key_path = Path(private_key_path)
    private_key_path.write_text(private_key + "\n", encoding='utf-8')
    os.chmod(private_key_path, 0o600)
    if public_key_path:
        Path(public_key_path).write_text(public_key + "\n", encoding='utf-8')
    return public_key, private_key


def public_key_pem(public_key_multibase: str) -> str:
    """
    Convert a multibase Ed25519 public key to PEM (SubjectPublicKeyInfo), as used by
    the ``publicKeyPem`` of an Open Badge CryptographicKey.

    Raises:
        ValueError: If the key is not a multibase encoded 32 byte Ed25519 public key.
    """
    try:
        public_key_bytes = multibase.decode(public_key_multibase)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Invalid public key: {e}") from e
    if len(public_key_bytes) != 32:
        raise ValueError("Invalid public key: Ed25519 public keys are 32 bytes long")
    der = ED25519_SPKI_PREFIX + public_key_bytes
    return "-----BEGIN PUBLIC KEY-----\n" + base64.b64encode(der).decode('ascii') + "\n-----END PUBLIC KEY-----\n"


def _okp_key(public_key_bytes: bytes, private_key_bytes: bytes = None) -> OKPKey:
    """Imports raw Ed25519 key bytes as a joserfc OKP JWK."""
    jwk_dict = {"kty": "OKP", "crv": "Ed25519", "x": _b64url_encode(public_key_bytes)}
    if private_key_bytes:
        jwk_dict["d"] = _b64url_encode(private_key_bytes)
    return OKPKey.import_key(jwk_dict)


def sign_assertion(
    assertion: Union[str, Dict[str, Any]],
    private_key_multibase: str,
    key_id: Optional[str] = None
) -> str:
    """
    Sign an Open Badge assertion into a compact JWS.

    The result is the payload baked into images of badges using signed verification.

    Args:
        assertion (Union[str, Dict]): The assertion, as JSON string or dictionary
        private_key_multibase (str): Multibase-encoded (base58btc) Ed25519 private key
        key_id (str, optional): Id of the signing key, added to the header as 'kid'

    Returns:
        str: "<header>.<payload>.<signature>", each part base64url encoded

    Raises:
        ValueError: If the assertion is not valid JSON or the private key is invalid
    """
    if isinstance(assertion, str):
        try:
            assertion = json.loads(assertion)
        except json.JSONDecodeError as e:
            raise ValueError("assertion is not a valid JSON string") from e

    header = {"alg": JWS_ALGORITHM}
    if key_id:
        header["kid"] = key_id

    signing_key = _signing_key(private_key_multibase)
    key = _okp_key(
        signing_key.verify_key.encode(encoder=nacl.encoding.RawEncoder),
        signing_key.encode(encoder=nacl.encoding.RawEncoder)
    )
    payload = json.dumps(assertion, separators=(',', ':')).encode('utf-8')
    return jws.serialize_compact(header, payload, key, algorithms=[JWS_ALGORITHM])


def verify_signed_assertion(token: str, public_key_multibase: str) -> Dict[str, Any]:
    """
    Verify a compact JWS created by sign_assertion() and return the assertion.

    Raises:
        ValueError: If the token or the public key is malformed, or not signed with EdDSA
        joserfc.errors.BadSignatureError: If the signature does not match
    """
    try:
        key = _okp_key(multibase.decode(public_key_multibase))
    except (ValueError, TypeError, JoseError) as e:
        raise ValueError(f"Invalid Ed25519 public key: {e}") from e

    try:
        result = jws.deserialize_compact(token, key, algorithms=[JWS_ALGORITHM])
    except BadSignatureError:
        raise
    except (JoseError, ValueError) as e:
        raise ValueError(f"Not a valid compact JWS: {e}") from e

    return json.loads(result.payload)
