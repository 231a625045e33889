"""Solana program, token and endpoint constants."""

from datetime import datetime, timezone

WHIRLPOOL_PROGRAM_ID = "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc"
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"
TOKEN_PROGRAM_IDS = frozenset({TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID})

DEFAULT_HELIUS_RPC_URL = "https://mainnet.helius-rpc.com"
DEFAULT_HELIUS_API_URL = "https://api.helius.xyz"
DEFAULT_COINGECKO_API_URL = "https://api.coingecko.com/api/v3"

WSOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"
BONK_MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
MSOL_MINT = "mSoLzYCxHdYgdzU16g5QSh3i5K3z3KZK7ytfqcJm7So"
WETH_WORMHOLE_MINT = "7vfCXTUXx5WJV5JADk17DUJ4ksgau7utNKj4b963voxs"
JUP_MINT = "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN"

# token mint -> CoinGecko coin id
PRICE_FEED_IDS: dict[str, str] = {
    WSOL_MINT: "solana",
    USDC_MINT: "usd-coin",
    USDT_MINT: "tether",
    BONK_MINT: "bonk",
    MSOL_MINT: "msol",
    WETH_WORMHOLE_MINT: "ethereum-wormhole",
    JUP_MINT: "jupiter-exchange-solana",
}

LAMPORTS_PER_SOL = 1_000_000_000
SOL_DECIMALS = 9

# Whirlpool instruction names per operation kind; a transaction matches a kind
# when one of its instructions to the program carries one of these
# Anchor discriminators.
WHIRLPOOL_INSTRUCTIONS: dict[str, tuple[str, ...]] = {
    "OPEN_POSITION": (
        "open_position",
        "open_position_with_metadata",
        "open_position_with_token_extensions",
    ),
    "INCREASE_LIQUIDITY": ("increase_liquidity", "increase_liquidity_v2"),
    "DECREASE_LIQUIDITY": ("decrease_liquidity", "decrease_liquidity_v2"),
    "COLLECT_FEES": ("collect_fees", "collect_fees_v2"),
}

EARLIEST_UTC = datetime(1970, 1, 1, tzinfo=timezone.utc)

SECONDS_PER_DAY = 86_400
DAYS_PER_YEAR = 365

# token mint -> display symbol
TOKEN_SYMBOLS: dict[str, str] = {
    WSOL_MINT: "SOL",
    USDC_MINT: "USDC",
    USDT_MINT: "USDT",
    BONK_MINT: "BONK",
    MSOL_MINT: "mSOL",
    WETH_WORMHOLE_MINT: "ETH",
    JUP_MINT: "JUP",
}
