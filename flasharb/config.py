# flasharb/config.py
"""
Protocol Configuration
Fee and threshold constants, fixed per deployment.
Values can be overridden from an optional .env file at the project root.
"""

import os
from dotenv import load_dotenv
from pathlib import Path

# -----------------------------
# Load .env (optional)
# -----------------------------
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"

if ENV_PATH.exists():
    load_dotenv(ENV_PATH)


def _int_setting(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")


# -----------------------------
# Pool Fee (constant-product AMM)
# -----------------------------
POOL_FEE_NUMERATOR = _int_setting("POOL_FEE_NUMERATOR", 3)        # 0.3%
POOL_FEE_DENOMINATOR = _int_setting("POOL_FEE_DENOMINATOR", 1000)

if POOL_FEE_DENOMINATOR <= 0:
    raise RuntimeError("POOL_FEE_DENOMINATOR must be positive")
if not 0 <= POOL_FEE_NUMERATOR < POOL_FEE_DENOMINATOR:
    raise RuntimeError("POOL_FEE_NUMERATOR must be in [0, POOL_FEE_DENOMINATOR)")

# -----------------------------
# Flash Loan Configuration
# -----------------------------
FLASH_LOAN_FEE_BPS = _int_setting("FLASH_LOAN_FEE_BPS", 9)        # 0.09%

# -----------------------------
# Profitability
# -----------------------------
MIN_PROFIT_BPS = _int_setting("MIN_PROFIT_BPS", 100)              # 1.00% over repayment

if FLASH_LOAN_FEE_BPS < 0 or MIN_PROFIT_BPS < 0:
    raise RuntimeError("Basis-point settings must be non-negative")

BPS_DENOMINATOR = 10_000

# spot_price() fixed-point scale
PRICE_SCALE = 10 ** 18

# -----------------------------
# Logging
# -----------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR")  # unset -> console only
