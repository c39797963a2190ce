from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, field_validator

from distributor.errors import BadConfigException, InvalidClaim
from distributor.leaf import normalize_account
from distributor.models.Distribution import DistributionMetadata
from distributor.models.types import EthereumAddress


class ERROR_MESSAGES:
    DUPLICATE_EXCLUDED = "Passed Duplicate Excluded Addresses"
    BAD_EXCLUDED = "Excluded address is not valid"
    NEGATIVE_BLOCK = "Block number cannot be negative"
    NEGATIVE_ID = "Distribution id cannot be negative"


class InputConfig(BaseModel):
    """
    User supplied parameters for one publication round
    :param `source`: human readable description of where the entitlements were computed
    :param `claims_file`: csv (`account,amount`) or json file of entitlements
    :param `excluded_addresses`: protocol wallets and contracts that never receive a claim
    :param `block_number`: reference block for the snapshot, recorded in metadata only
    """

    source: str
    claims_file: str
    chain_id: int = 1
    block_number: Optional[int] = None
    excluded_addresses: list[EthereumAddress] = []
    note: Optional[str] = None

    @field_validator("excluded_addresses", mode="before")
    @classmethod
    def normalize_excluded(cls, addresses: Any) -> list[str]:
        try:
            normalized = [normalize_account(a) for a in addresses]
        except InvalidClaim as e:
            raise BadConfigException(f"{ERROR_MESSAGES.BAD_EXCLUDED}: {e}")
        if len(set(normalized)) != len(normalized):
            raise BadConfigException(ERROR_MESSAGES.DUPLICATE_EXCLUDED)
        return normalized

    @field_validator("block_number")
    @classmethod
    def validate_block(cls, block: Optional[int]) -> Optional[int]:
        if block is not None and block < 0:
            raise BadConfigException(ERROR_MESSAGES.NEGATIVE_BLOCK)
        return block


class Config(InputConfig):
    """Input config plus the values fixed when the round is created"""

    distribution_id: int
    generated: datetime

    @field_validator("distribution_id")
    @classmethod
    def validate_id(cls, distribution_id: int) -> int:
        if distribution_id < 0:
            raise BadConfigException(ERROR_MESSAGES.NEGATIVE_ID)
        return distribution_id

    @property
    def excluded(self) -> set[str]:
        return set(self.excluded_addresses)

    def distribution_metadata(self) -> DistributionMetadata:
        return DistributionMetadata(
            generated=self.generated,
            source=self.source,
            excludedAddresses=self.excluded_addresses,
            blockNumber=self.block_number,
            chainId=self.chain_id,
            note=self.note,
        )
