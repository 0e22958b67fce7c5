# obadgen/constants.py
# constants.py contains the constants shared by the baking core, the assertion builder and the command line,
# exceptions made for some environmental variables
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from a .env file in the working directory
dotenv_path = Path.cwd() / '.env'
load_dotenv(dotenv_path)

# Multibase (base58btc) encoded Ed25519 private key used to sign assertions
CRYPTO_PK = os.getenv("CRYPTO_PK", None)
LOG_LEVEL = os.getenv("OBADGEN_LOG_LEVEL", "info")

# Baking, see https://www.imsglobal.org/sites/default/files/Badges/OBv2p0Final/baking/index.html
OPENBADGES_KEYWORD = "openbadges"
OPENBADGES_NAMESPACE = "http://openbadges.org"
OPENBADGES_PREFIX = "openbadges"
ASSERTION_ELEMENT = "assertion"
VERIFY_ATTRIBUTE = "verify"
SVG_NAMESPACE = "http://www.w3.org/2000/svg"

# Open Badge 2.0 documents
OPENBADGES_V2_CONTEXT = "https://w3id.org/openbadges/v2"
IDENTITY_HASH_ALGORITHM = "sha256"
DT_PAST = "2022-06-17T23:59:59Z"
DT_FAR_FUTURE = "2099-06-30T23:59:59Z"
