
"""
config
"""

import os
from dotenv import load_dotenv

load_dotenv()

# ============================================
# TRADING WALLET
# ============================================
# Only this server-held wallet may auto-sign; every other wallet goes through
# the external signer channel.
TRADING_WALLET_PRIVATE_KEY = os.getenv('TRADING_WALLET_PRIVATE_KEY') or os.getenv('PRIVATE_KEY', '')

# ============================================
# RPC CONFIGURATION
# ============================================
HELIUS_API_KEY = os.getenv('HELIUS_API') or os.getenv('HELIUS_API_KEY', '')
if HELIUS_API_KEY:
    _DEFAULT_RPC = f'https://mainnet.helius-rpc.com/?api-key={HELIUS_API_KEY}'
else:
    _DEFAULT_RPC = 'https://api.mainnet-beta.solana.com'
RPC_ENDPOINT = os.getenv('RPC_URL') or os.getenv('RPC_ENDPOINT') or _DEFAULT_RPC
RPC_TIMEOUT = float(os.getenv('RPC_TIMEOUT', '30'))

# ============================================
# VENUES
# ============================================
JUPITER_API_URL = os.getenv('JUPITER_API_URL', 'https://quote-api.jup.ag/v6')
PUMPPORTAL_API_URL = os.getenv('PUMPPORTAL_API_URL', 'https://pumpportal.fun/api/trade-local')
PUMPFUN_COIN_API_URL = os.getenv('PUMPFUN_COIN_API_URL', 'https://frontend-api-v3.pump.fun/coins')

PUMPPORTAL_PRIORITY_FEE = float(os.getenv('PUMPPORTAL_PRIORITY_FEE', '0.001'))
PUMPPORTAL_MIN_BUY_SLIPPAGE_PCT = 5
PUMPPORTAL_MIN_SELL_SLIPPAGE_PCT = 15
VENUE_TIMEOUT = 10

# ============================================
# JITO BLOCK ENGINE
# ============================================
JITO_ENABLED = os.getenv('JITO_ENABLED', 'true').lower() == 'true'

JITO_ENDPOINTS = [
    "https://mainnet.block-engine.jito.wtf/api/v1/transactions",
    "https://ny.mainnet.block-engine.jito.wtf/api/v1/transactions",
    "https://amsterdam.mainnet.block-engine.jito.wtf/api/v1/transactions",
    "https://frankfurt.mainnet.block-engine.jito.wtf/api/v1/transactions",
    "https://tokyo.mainnet.block-engine.jito.wtf/api/v1/transactions",
    "https://slc.mainnet.block-engine.jito.wtf/api/v1/transactions",
]

JITO_REQUEST_TIMEOUT = 5
RELAY_PASSES = 2
RELAY_RETRY_DELAY = 1.0
RELAY_SETTLE_DELAY = 3.0

CONFIRM_TIMEOUT = 30
CONFIRM_POLL_INTERVAL = 1.0

# ============================================
# TOKENS
# ============================================
SOL_MINT = "So11111111111111111111111111111111111111112"
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"
SOL_DECIMALS = 9
DEFAULT_TOKEN_DECIMALS = 6

# Used to express USD liquidity in SOL terms
APPROX_SOL_PRICE_USD = float(os.getenv('APPROX_SOL_PRICE_USD', '200.0'))

# ============================================
# AUTO TRADER
# ============================================
MONITOR_INTERVAL = int(os.getenv('MONITOR_INTERVAL', '30'))
DEDUP_WINDOW = int(os.getenv('DEDUP_WINDOW', '30'))
MIN_TRADE_INTERVAL = int(os.getenv('MIN_TRADE_INTERVAL', '30'))
COOLDOWN_DURATION = int(os.getenv('COOLDOWN_MINUTES', '20')) * 60
AUTO_TRADE_ON_START = os.getenv('AUTO_TRADE_ON_START', 'false').lower() == 'true'

DEFAULT_BUY_SLIPPAGE_BPS = 100
DEFAULT_SELL_SLIPPAGE_BPS = 500
AUTO_SELL_MIN_SLIPPAGE_BPS = 300
INSTANT_SELL_SLIPPAGE_BPS = 6000
INSTANT_SELL_MAX_SLIPPAGE_BPS = 8000

PRICE_FEED_TIMEOUT = 5

# Applied when a wallet's own filter is disabled
BASELINE_GATE_ENABLED = os.getenv('BASELINE_GATE_ENABLED', 'true').lower() == 'true'
BASELINE_MIN_MARKET_CAP = float(os.getenv('BASELINE_MIN_MARKET_CAP', '20000'))
BASELINE_MAX_MARKET_CAP = float(os.getenv('BASELINE_MAX_MARKET_CAP', '500000'))
BASELINE_MIN_LIQUIDITY_USD = float(os.getenv('BASELINE_MIN_LIQUIDITY_USD', '1000'))

# ============================================
# LIQUIDATION
# ============================================
BATCH_SELL_SIZE = 3
BATCH_SELL_DELAY = 2.0
SELL_ALL_SPACING = 0.5

HOLDINGS_CACHE_TTL = 15 * 60
HOLDINGS_MAX_ATTEMPTS = 3
HOLDINGS_RETRY_DELAYS = [3, 6]

# ============================================
# TELEGRAM
# ============================================
TELEGRAM_BOT_TOKEN = os.getenv('TELEGRAM_BOT_TOKEN')
TELEGRAM_CHAT_ID = os.getenv('TELEGRAM_CHAT_ID')

# ============================================
# TRADE LOG / API
# ============================================
TRADE_LOG_CSV = os.getenv('TRADE_LOG_CSV', 'data/trades.csv')
API_HOST = os.getenv('API_HOST', '0.0.0.0')
PORT = int(os.getenv('PORT', '10000'))

# ============================================
# LOGGING
# ============================================
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
