"""Constants for the treasury payout relay."""

from decimal import Decimal

MAINNET_CHAIN_ID = 1

# Public endpoints first; keyed providers are appended from the environment.
PUBLIC_RPC_ENDPOINTS = (
    "https://ethereum-rpc.publicnode.com",
    "https://eth.llamarpc.com",
    "https://rpc.ankr.com/eth",
    "https://1rpc.io/eth",
    "https://cloudflare-eth.com",
)
INFURA_RPC_TEMPLATE = "https://mainnet.infura.io/v3/{key}"
ALCHEMY_RPC_TEMPLATE = "https://eth-mainnet.g.alchemy.com/v2/{key}"

# Plain value transfers always consume exactly 21000 gas
TRANSFER_GAS_LIMIT = 21_000
DEFAULT_GAS_PRICE_GWEI = 30

FEE_RESERVE_ETH = Decimal("0.001")
OPERATING_GAS_MIN_ETH = Decimal("0.002")
DEFAULT_PRINCIPAL_ETH = 10.0

# Display-currency conversion, not a market quote
DEFAULT_USD_RATE = 3450.0

EXPLORER_TX_URL = "https://etherscan.io/tx/{tx_hash}"

ADDRESS_LENGTH = 42
ADDRESS_PREFIX = "0x"
