"""Token symbols, mint addresses and decimals shared by the swap clients."""

NATIVE_TOKEN = "SOL"

TOKEN_MINTS: dict[str, str] = {
    "SOL": "So11111111111111111111111111111111111111112",
    "USDC": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
    "JUP": "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN",
}

TOKEN_DECIMALS: dict[str, int] = {"SOL": 9, "USDC": 6, "JUP": 6}
