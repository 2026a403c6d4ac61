"""Minimal ABIs for the read-only USPD contract calls the gateway makes."""

STABILIZER_NFT_ABI: list[dict] = [
    {
        "inputs": [],
        "name": "lowestUnallocatedId",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "name": "positions",
        "outputs": [
            {"internalType": "uint256", "name": "minCollateralRatio", "type": "uint256"},
            {"internalType": "uint256", "name": "prevUnallocated", "type": "uint256"},
            {"internalType": "uint256", "name": "nextUnallocated", "type": "uint256"},
            {"internalType": "uint256", "name": "prevAllocated", "type": "uint256"},
            {"internalType": "uint256", "name": "nextAllocated", "type": "uint256"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "name": "stabilizerEscrows",
        "outputs": [{"internalType": "address", "name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "name": "positionEscrows",
        "outputs": [{"internalType": "address", "name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "stETH",
        "outputs": [{"internalType": "address", "name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
]

STABILIZER_ESCROW_ABI: list[dict] = [
    {
        "inputs": [],
        "name": "unallocatedStETH",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

POSITION_ESCROW_ABI: list[dict] = [
    {
        "inputs": [],
        "name": "backedPoolShares",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

ERC20_MIN_ABI: list[dict] = [
    {
        "inputs": [{"internalType": "address", "name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "totalSupply",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

# PoolSharesConversionRate
RATE_CONTRACT_ABI: list[dict] = [
    {
        "inputs": [],
        "name": "getYieldFactor",
        "outputs": [{"internalType": "uint256", "name": "yieldFactor", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

# OvercollateralizationReporter
REPORTER_ABI: list[dict] = [
    {
        "inputs": [],
        "name": "totalEthEquivalentAtLastSnapshot",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]
