import json
import logging
from pathlib import Path

from obadgen import patcher
from obadgen.crypto_utils import load_private_key, sign_assertion
from obadgen.patcher import ImageType
from obadgen.settings import TRACE, Settings

logger = logging.getLogger(__name__)


def build_verify_payload(settings: Settings) -> str:
    """
    Builds the string to bake into the image.

    This is the hosted assertion URL if one is given. Otherwise it is the
    assertion document, signed into a compact JWS if a private key is available.

    Raises:
        ValueError: If neither a URL nor an assertion is given,
            or the assertion is not valid JSON.
        OSError: If the assertion or key file cannot be read.
    """
    if settings.verify_url:
        logger.debug("Baking hosted assertion URL '%s'", settings.verify_url)
        return settings.verify_url
    if not settings.assertion_loc:
        raise ValueError("Either a verify URL or an assertion file is required")

    assertion_json = Path(settings.assertion_loc).read_text(encoding="utf-8")
    try:
        assertion = json.loads(assertion_json)
    except json.JSONDecodeError as e:
        raise ValueError(f"Assertion '{settings.assertion_loc}' is not valid JSON: {e}") from e

    private_key = load_private_key(settings.sign_key_loc) if settings.sign_key_loc else settings.private_key
    if private_key:
        logger.info("Signing assertion '%s' ...", settings.assertion_loc)
        return sign_assertion(assertion, private_key, settings.key_id)

    logger.debug("Baking unsigned assertion '%s'", settings.assertion_loc)
    return json.dumps(assertion, separators=(",", ":"))


def run(settings: Settings) -> str:
    """
    Bakes the configured payload into the source image.

    Returns:
        str: The baked payload.
    """
    if not settings.source_image_loc or not settings.baked_loc:
        raise ValueError("Both a source image and an output location are required")
    # Reject unsupported images before reading anything
    image_type = ImageType.from_path(settings.source_image_loc)

    verify = build_verify_payload(settings)

    logger.info("Baking %s image '%s' into '%s' ...",
                image_type.name, settings.source_image_loc, settings.baked_loc)
    patcher.rewrite(settings.source_image_loc, settings.baked_loc, verify, settings.fail_if_verify_present)
    logger.log(TRACE, "Done.")
    return verify
