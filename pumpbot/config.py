import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# RPC configuration
RPC_URL = os.getenv("RPC_URL", "https://api.mainnet-beta.solana.com")

# Wallet configuration (base58 encoded secret key)
PRIVATE_KEY_ENV = "PRIVATE_KEY"
PRIVATE_KEY = os.getenv(PRIVATE_KEY_ENV)

# Logging configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Default slippage tolerance (percentage)
DEFAULT_SLIPPAGE = float(os.getenv("DEFAULT_SLIPPAGE", "1"))

# Transaction confirmation: processed, confirmed or finalized
COMMITMENT = os.getenv("COMMITMENT", "confirmed")

# Retry settings for read queries
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
RETRY_DELAY = float(os.getenv("RETRY_DELAY", "1.0"))  # seconds

# Compute budget
COMPUTE_UNIT_LIMIT = int(os.getenv("COMPUTE_UNIT_LIMIT", "200000"))
PRIORITY_FEE_MICROLAMPORTS = int(os.getenv("PRIORITY_FEE_MICROLAMPORTS", "100000"))

# Volume bot settings
DEFAULT_DELAY_BETWEEN_TRADES = float(os.getenv("DEFAULT_DELAY_BETWEEN_TRADES", "2.0"))  # seconds
MAX_CYCLES = int(os.getenv("MAX_CYCLES", "1000"))  # safety limit
FEE_MARGIN_SOL = float(os.getenv("FEE_MARGIN_SOL", "0.01"))  # kept aside for network fees
VOLUME_SUCCESS_THRESHOLD = 0.95  # share of target that counts as a successful session

# Units
LAMPORTS_PER_SOL = 1_000_000_000
SOLANA_ADDRESS_MIN_LENGTH = 32
SOLANA_ADDRESS_MAX_LENGTH = 44
