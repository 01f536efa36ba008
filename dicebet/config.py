import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

DATABASE_URL = os.environ.get(
    "DICEBET_DATABASE_URL", f"sqlite:///{(BASE_DIR / 'dicebet.db').as_posix()}"
)
SECRET_KEY = os.environ.get("TOKEN_SECRET", "dev-secret")
ADMIN_SECRET = os.environ.get("ADMIN_SECRET", "adminpass")
OWNER_ACCOUNT = os.environ.get("DICEBET_OWNER", "deployer")
CONTRACT_ACCOUNT = os.environ.get("DICEBET_CONTRACT", "dice-contract")

# Amounts are in the smallest denomination (10^6 per unit).
UNIT = 1_000_000
MIN_BET = 1 * UNIT
MAX_BET = 100 * UNIT
HOUSE_EDGE_BPS = 300
BPS_DENOMINATOR = 10_000
PAYOUT_MULTIPLIER = 6
DIE_FACES = 6

TOKEN_TTL_SECONDS = 86400
