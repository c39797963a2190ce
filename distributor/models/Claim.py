from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from distributor.leaf import check_uint256, normalize_account
from distributor.merkle import from_hex, to_hex
from distributor.models.types import EthereumAddress, HexDigest


class Claim(BaseModel):
    """
    One recipient's entitlement within a distribution
    :param `index`: dense, zero based position of the claim. Also the leaf position in the tree.
    :param `account`: recipient, stored in lowercase hex
    :param `amount`: rewards in the token's smallest unit. Serialized as a string.
    """

    index: int = Field(frozen=True)
    account: EthereumAddress = Field(frozen=True)
    amount: int = Field(frozen=True)

    @field_validator("index", mode="before")
    @classmethod
    def check_index(cls, index: Any) -> int:
        return check_uint256(index, "index")

    @field_validator("account", mode="before")
    @classmethod
    def normalize(cls, account: Any) -> str:
        return normalize_account(account)

    @field_validator("amount", mode="before")
    @classmethod
    def check_amount(cls, amount: Any) -> int:
        return check_uint256(amount, "amount")

    @field_serializer("amount", when_used="json")
    def serialize_amount(self, amount: int) -> str:
        return str(amount)


class ClaimRecord(Claim):
    """
    A published claim. Everything committed to by the merkle root is frozen,
    `claimed` and `claimedAt` are the redemption overlay.
    """

    model_config = ConfigDict(validate_assignment=True)

    proof: tuple[HexDigest, ...] = Field(frozen=True)
    claimed: bool = False
    claimedAt: Optional[datetime] = None

    @field_validator("proof", mode="before")
    @classmethod
    def check_proof(cls, proof: Any) -> tuple[str, ...]:
        if isinstance(proof, (str, bytes)):
            raise ValueError("Proof must be a list of digests")
        return tuple(to_hex(from_hex(p)) for p in proof)

    @staticmethod
    def from_claim(claim: Claim, proof: list[str]) -> "ClaimRecord":
        return ClaimRecord(**claim.model_dump(), proof=proof)

    def to_claim(self) -> Claim:
        return Claim(index=self.index, account=self.account, amount=self.amount)
