from typing import Literal

# type aliases for clarity
EthereumAddress = str
HexDigest = str
CSVColumn = Literal[
    "id",
    "merkle_root",
    "total_rewards",
    "claim_count",
    "claims",
    "metadata",
    "created_at",
]
