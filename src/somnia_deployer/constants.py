"""Constants for the Somnia deployer.

ABI encoding selectors, gas parameters, timeouts and on-disk layout.
"""

# ABI Encoding Constants
ABI_SELECTOR_LENGTH = 4
ABI_WORD_LENGTH = 32
REVERT_SELECTOR = "0x08c379a0"  # Error(string)
PANIC_SELECTOR = "0x4e487b71"  # Panic(uint256)

# Gas Constants
GAS_MARGIN_PERCENT = 10  # added to every node estimate
MAX_FEE_MULTIPLIER = 2
MAX_CONTRACT_SIZE_BYTES = 24_576  # EIP-170

# Network Constants
RPC_TIMEOUT_SECONDS = 30
ESTIMATE_TIMEOUT_SECONDS = 30
SIMULATE_TIMEOUT_SECONDS = 30
RECEIPT_TIMEOUT_SECONDS = 60
RECEIPT_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_CONFIRMATIONS = 1

# Retry Constants
RPC_RETRY_ATTEMPTS = 3
RPC_RETRY_BASE_DELAY_MS = 1000

# Credential Constants
DEFAULT_DERIVATION_PATH = "m/44'/60'/0'/0/0"
MIN_PASSPHRASE_LENGTH = 8
OPENSSL_SALT_MAGIC = b"Salted__"
OPENSSL_SALT_PREFIX_B64 = "U2FsdGVkX1"  # base64 of "Salted__"

# Storage layout (relative to project directory)
STATE_DIR_NAME = ".somnia"
WALLET_FILE_NAME = "wallet.json"
DEPLOYMENTS_DIR_NAME = "deployments"

# Default constructor values
DEFAULT_DECIMALS = 18
DEFAULT_SUPPLY = 1_000_000
DEFAULT_UINT8 = 1
DEFAULT_NUMBER = 100
SYMBOL_LENGTH = 5

__all__ = [
    "ABI_SELECTOR_LENGTH",
    "ABI_WORD_LENGTH",
    "REVERT_SELECTOR",
    "PANIC_SELECTOR",
    "GAS_MARGIN_PERCENT",
    "MAX_FEE_MULTIPLIER",
    "MAX_CONTRACT_SIZE_BYTES",
    "RPC_TIMEOUT_SECONDS",
    "ESTIMATE_TIMEOUT_SECONDS",
    "SIMULATE_TIMEOUT_SECONDS",
    "RECEIPT_TIMEOUT_SECONDS",
    "RECEIPT_POLL_INTERVAL_SECONDS",
    "DEFAULT_CONFIRMATIONS",
    "RPC_RETRY_ATTEMPTS",
    "RPC_RETRY_BASE_DELAY_MS",
    "DEFAULT_DERIVATION_PATH",
    "MIN_PASSPHRASE_LENGTH",
    "OPENSSL_SALT_MAGIC",
    "OPENSSL_SALT_PREFIX_B64",
    "STATE_DIR_NAME",
    "WALLET_FILE_NAME",
    "DEPLOYMENTS_DIR_NAME",
    "DEFAULT_DECIMALS",
    "DEFAULT_SUPPLY",
    "DEFAULT_UINT8",
    "DEFAULT_NUMBER",
    "SYMBOL_LENGTH",
]
