"""Native token denominations and the minimal ERC-20 ABI."""

ETHER = 10**18  # wei per native unit
GWEI = 10**9  # wei per gwei

U64_MAX = 2**64 - 1
U128_MAX = 2**128 - 1

# Minimal ERC-20 ABI for on-chain metadata calls
ERC20_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "symbol",
        "outputs": [{"name": "", "type": "string"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "name",
        "outputs": [{"name": "", "type": "string"}],
        "type": "function",
    },
]
