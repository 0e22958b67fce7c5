import hashlib
import json
from datetime import datetime, timezone
from typing import Dict, List, Any, Union

from obadgen.constants import OPENBADGES_V2_CONTEXT, IDENTITY_HASH_ALGORITHM

IDENTITY_TYPES = ("email", "url", "telephone")
VERIFICATION_TYPES = ("hosted", "signed")


def hash_identity(identity: str, salt: str = None) -> str:
    """
    Hashes a recipient identity the way Open Badge 2.0 IdentityObjects expect it.

    Args:
        identity (str): The plaintext identity, e.g. an email address.
        salt (str, optional): Salt appended to the identity before hashing.

    Returns:
        str: ``"sha256$"`` followed by the hex digest.

    Example:
        >>> hash_identity("recipient@email.com", "abcdefg123456789")[:7]
        'sha256$'
    """
    digest = hashlib.sha256((identity + (salt or "")).encode('utf-8')).hexdigest()
    return f"{IDENTITY_HASH_ALGORITHM}${digest}"


def build_identity(
    identity: str,
    identity_type: str = "email",
    hashed: bool = True,
    salt: str = None
) -> Dict[str, Any]:
    """
    Builds the IdentityObject naming the recipient of an assertion.

    Args:
        identity (str): Plaintext identity; hashed here if ``hashed`` is set.
        identity_type (str): One of "email", "url" or "telephone".
        hashed (bool): Whether to store the salted hash instead of the plaintext.
        salt (str, optional): Salt used for hashing.

    Returns:
        Dict: IdentityObject

    Raises:
        ValueError: If identity_type is not supported.
    """
    if identity_type not in IDENTITY_TYPES:
        raise ValueError(f"identity_type must be one of {IDENTITY_TYPES}, got '{identity_type}'")

    recipient = {
        "type": identity_type,
        "hashed": hashed,
        "identity": hash_identity(identity, salt) if hashed else identity
    }
    if hashed and salt:
        recipient["salt"] = salt
    return recipient


def build_verification(verification_type: str = "hosted", creator: str = None) -> Dict[str, Any]:
    """
    Builds the verification instructions of an assertion.

    Args:
        verification_type (str): "hosted" (dereference the assertion id) or "signed" (check the JWS).
        creator (str, optional): Id of the CryptographicKey used for signing; signed only.

    Returns:
        Dict: VerificationObject
    """
    if verification_type not in VERIFICATION_TYPES:
        raise ValueError(f"verification_type must be one of {VERIFICATION_TYPES}, got '{verification_type}'")

    verification = {"type": verification_type}
    if creator:
        if verification_type != "signed":
            raise ValueError("creator is only valid for signed verification")
        verification["creator"] = creator
    return verification


def build_assertion(
    assertion_id: str,
    badge: str,
    recipient: Dict[str, Any],
    verification: Dict[str, Any],
    issued_on: str,
    image: str = None,
    evidence: List[str] = None,
    narrative: str = None,
    expires: str = None
) -> str:
    """
    Builds an Open Badge 2.0 Assertion as a JSON-LD string.

    This is the document that gets baked into a badge image, either as is
    or wrapped into a JWS for signed verification.

    Args:
        assertion_id (str): IRI of the assertion; for hosted verification the URL it is published at,
            for signed verification preferably a 'urn:uuid:...'.
        badge (str): IRI of the BadgeClass.
        recipient (Dict): IdentityObject, see build_identity().
        verification (Dict): VerificationObject, see build_verification().
        issued_on (str): ISO 8601 timestamp of the award.
        image (str, optional): IRI of the (baked) badge image.
        evidence (List[str], optional): IRIs describing the work of the recipient.
        narrative (str, optional): Narrative connecting the evidence.
        expires (str, optional): ISO 8601 timestamp after which the badge is no longer valid.

    Returns:
        str: JSON-LD string representing the assertion.

    Example:
        assertion = build_assertion(
            assertion_id="https://example.org/assertions/123.json",
            badge="https://example.org/badges/reader.json",
            recipient=build_identity("recipient@email.com", salt="abcdefg123456789"),
            verification=build_verification("hosted"),
            issued_on="2022-06-17T23:59:59Z"
        )
    """
    assertion = {
        "@context": OPENBADGES_V2_CONTEXT,
        "type": "Assertion",
        "id": assertion_id,
        "recipient": recipient,
        "badge": badge,
        "verification": verification,
        "issuedOn": issued_on
    }

    # Add optional fields if provided
    if image:
        assertion["image"] = image
    if evidence:
        assertion["evidence"] = list(evidence)
    if narrative:
        assertion["narrative"] = narrative
    if expires:
        assertion["expires"] = expires

    return json.dumps(assertion, indent=2)


def build_criteria(criteria_id: str = None, narrative: str = None) -> Dict[str, Any]:
    """
    Builds the Criteria object of a BadgeClass.

    Args:
        criteria_id (str, optional): IRI of a page describing how to earn the badge.
        narrative (str, optional): Markdown description of the requirements.

    Returns:
        Dict: Criteria

    Raises:
        ValueError: If neither an id nor a narrative is given.
    """
    if not criteria_id and not narrative:
        raise ValueError("criteria need an id or a narrative")

    criteria = {"type": "Criteria"}
    if criteria_id:
        criteria["id"] = criteria_id
    if narrative:
        criteria["narrative"] = narrative
    return criteria


def build_badge_class(
    badge_id: str,
    name: str,
    description: str,
    image: str,
    criteria: Union[str, Dict[str, Any]],
    issuer: str,
    tags: List[str] = None,
    alignment: List[str] = None
) -> str:
    """
    Builds an Open Badge 2.0 BadgeClass as a JSON-LD string.

    Args:
        badge_id (str): IRI the BadgeClass is published at; assertions point to it with ``badge``.
        name (str): Name of the achievement.
        description (str): Short description of the achievement.
        image (str): IRI of the badge image.
        criteria (str or Dict): IRI of the criteria page, or a Criteria object from build_criteria().
        issuer (str): IRI of the Issuer profile.
        tags (List[str], optional): Tags describing the achievement.
        alignment (List[str], optional): IRIs of educational standards the badge aligns to.

    Returns:
        str: JSON-LD string representing the badge class.
    """
    badge_class = {
        "@context": OPENBADGES_V2_CONTEXT,
        "type": "BadgeClass",
        "id": badge_id,
        "name": name,
        "description": description,
        "image": image,
        "criteria": criteria,
        "issuer": issuer
    }

    if alignment:
        badge_class["alignment"] = list(alignment)
    if tags:
        badge_class["tags"] = list(tags)

    return json.dumps(badge_class, indent=2)


def build_issuer(
    issuer_id: str,
    name: str = None,
    url: str = None,
    email: str = None,
    public_key: str = None,
    description: str = None,
    image: str = None,
    telephone: str = None,
    verification: Dict[str, Any] = None,
    revocation_list: str = None
) -> str:
    """
    Builds an Open Badge 2.0 Issuer profile as a JSON-LD string.

    ``public_key`` is the IRI of the issuer's CryptographicKey (see
    build_cryptographic_key()); verifiers of signed assertions look it up there.
    Only the id is required, every other field is added when set.
    """
    issuer = {
        "@context": OPENBADGES_V2_CONTEXT,
        "type": "Issuer",
        "id": issuer_id
    }

    optional = {
        "name": name,
        "url": url,
        "telephone": telephone,
        "description": description,
        "image": image,
        "email": email,
        "publicKey": public_key,
        "verification": verification,
        "revocationList": revocation_list
    }
    issuer.update((key, value) for key, value in optional.items() if value)

    return json.dumps(issuer, indent=2)


def build_cryptographic_key(key_id: str, owner: str, public_key_pem: str) -> str:
    """
    Builds an Open Badge 2.0 CryptographicKey as a JSON-LD string.

    Args:
        key_id (str): IRI the key is published at; the ``creator`` of signed verifications.
        owner (str): IRI of the Issuer owning the key.
        public_key_pem (str): PEM encoded public key, see crypto_utils.public_key_pem().

    Returns:
        str: JSON-LD string representing the key.
    """
    return json.dumps({
        "@context": OPENBADGES_V2_CONTEXT,
        "type": "CryptographicKey",
        "id": key_id,
        "owner": owner,
        "publicKeyPem": public_key_pem
    }, indent=2)


def get_current_timestamp() -> str:
    """
    Get the current UTC timestamp in ISO 8601 format, with 'Z' suffix (e.g., "2025-07-15T14:30:00Z").
    """
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace('+00:00', 'Z')
