"""
Read-only access to the MerkleDistributor contract.

Used for reconciliation (claimed events, recorded roots) and to stamp block numbers
into metadata. Nothing here is needed to publish a distribution.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from web3 import Web3

from distributor.env import distributor_address, rpc_url
from distributor.merkle import to_hex
from distributor.models.Redemption import RedemptionEvent

logger = logging.getLogger(__name__)

MERKLE_DISTRIBUTOR_ABI: list[dict[str, Any]] = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": False, "name": "index", "type": "uint256"},
            {"indexed": False, "name": "account", "type": "address"},
            {"indexed": False, "name": "amount", "type": "uint256"},
        ],
        "name": "Claimed",
        "type": "event",
    },
    {
        "inputs": [{"name": "distributionId", "type": "uint256"}],
        "name": "getDistributionInfo",
        "outputs": [
            {"name": "root", "type": "bytes32"},
            {"name": "totalTokens", "type": "uint256"},
            {"name": "totalClaimed", "type": "uint256"},
            {"name": "timestamp", "type": "uint256"},
            {"name": "finalized", "type": "bool"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "distributionId", "type": "uint256"},
            {"name": "index", "type": "uint256"},
        ],
        "name": "isClaimed",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function",
    },
]


class LedgerClient:
    """
    :param `w3`: a connected Web3 instance
    :param `address`: the MerkleDistributor contract
    """

    def __init__(self, w3: Web3, address: str):
        self.w3 = w3
        self.contract = w3.eth.contract(
            address=Web3.to_checksum_address(address), abi=MERKLE_DISTRIBUTOR_ABI
        )
        self._timestamps: dict[int, datetime] = {}

    @staticmethod
    def from_env(timeout: int = 15) -> "LedgerClient":
        w3 = Web3(Web3.HTTPProvider(rpc_url(), request_kwargs={"timeout": timeout}))
        return LedgerClient(w3, distributor_address())

    def block_number(self) -> int:
        return self.w3.eth.block_number

    def block_timestamp(self, block: int) -> datetime:
        if block not in self._timestamps:
            timestamp = self.w3.eth.get_block(block)["timestamp"]
            self._timestamps[block] = datetime.fromtimestamp(timestamp, tz=timezone.utc)
        return self._timestamps[block]

    def distribution_root(self, distribution_id: int) -> str:
        root, *_ = self.contract.functions.getDistributionInfo(distribution_id).call()
        return to_hex(bytes(root))

    def is_claimed(self, distribution_id: int, index: int) -> bool:
        return self.contract.functions.isClaimed(distribution_id, index).call()

    def claimed_events(
        self,
        distribution_id: int,
        from_block: int = 0,
        to_block: Optional[int] = None,
    ) -> list[RedemptionEvent]:
        """
        Claimed logs in a block range. The event does not carry the distribution id,
        so the caller chooses which distribution the range belongs to.
        """
        to_block = self.block_number() if to_block is None else to_block
        logs = self.contract.events.Claimed.get_logs(
            from_block=from_block, to_block=to_block
        )
        events = [
            RedemptionEvent(
                distributionId=distribution_id,
                index=log["args"]["index"],
                account=log["args"]["account"],
                amount=log["args"]["amount"],
                timestamp=self.block_timestamp(log["blockNumber"]),
                transactionHash=to_hex(bytes(log["transactionHash"])),
            )
            for log in logs
        ]
        logger.info(
            f"Found {len(events)} Claimed events between blocks {from_block} and {to_block}"
        )
        return events
