from __future__ import annotations

from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    field_serializer,
    field_validator,
    model_validator,
)

from distributor.errors import InvalidClaim, UnknownClaimant
from distributor.leaf import HASH_CONVENTION, leaf_digest, normalize_account
from distributor.merkle import MerkleTree, from_hex, to_hex
from distributor.models.Claim import ClaimRecord
from distributor.models.types import EthereumAddress, HexDigest


class DistributionMetadata(BaseModel):
    """
    Descriptive fields attached to a distribution. Nothing here is committed to by the root.
    Unknown keys are kept as-is so older exports survive a round trip.
    :param `generated`: when the claim set was computed
    :param `source`: where the entitlements came from
    :param `excludedAddresses`: accounts removed before indices were assigned
    :param `blockNumber`: reference block, informational only
    :param `hashConvention`: leaf and pair hashing scheme the proofs were built with
    """

    model_config = ConfigDict(extra="allow")

    generated: Optional[datetime] = None
    source: str = ""
    excludedAddresses: list[EthereumAddress] = []
    blockNumber: Optional[int] = None
    chainId: Optional[int] = None
    hashConvention: str = HASH_CONVENTION
    note: Optional[str] = None

    @field_validator("excludedAddresses", mode="before")
    @classmethod
    def normalize_excluded(cls, addresses: Any) -> list[str]:
        try:
            return [normalize_account(a) for a in addresses]
        except InvalidClaim as e:
            raise ValueError(str(e)) from e


class DistributionDocument(BaseModel):
    """
    The published unit of a reward round.
    `merkleRoot`, `totalRewards`, `claims` and `createdAt` cannot be reassigned, `claims`
    is a read-only mapping once validated, and the committed fields of every ClaimRecord
    are frozen. Only the claimed overlay changes.
    """

    id: int = Field(frozen=True, ge=0)
    merkleRoot: HexDigest = Field(frozen=True)
    totalRewards: int = Field(frozen=True, ge=0)
    claims: dict[EthereumAddress, ClaimRecord] = Field(frozen=True)
    metadata: DistributionMetadata = Field(default_factory=DistributionMetadata)
    createdAt: datetime = Field(frozen=True)

    @field_validator("merkleRoot", mode="before")
    @classmethod
    def normalize_root(cls, root: Any) -> str:
        return to_hex(from_hex(root))

    @field_validator("totalRewards", mode="before")
    @classmethod
    def parse_total(cls, total: Any) -> int:
        if isinstance(total, str):
            return int(total)
        return total

    @model_validator(mode="after")
    def check_claims(self) -> DistributionDocument:
        for key, record in self.claims.items():
            if key != record.account:
                raise ValueError(
                    f"Claims key {key} does not match record account {record.account}"
                )
        total = sum(r.amount for r in self.claims.values())
        if total != self.totalRewards:
            raise ValueError(
                f"totalRewards {self.totalRewards} does not equal sum of claims {total}"
            )
        indices = sorted(r.index for r in self.claims.values())
        if indices != list(range(len(indices))):
            raise ValueError("Claim indices must be unique and contiguous from 0")

        # no claims can be added or removed after publication
        self.__dict__["claims"] = MappingProxyType(dict(self.claims))
        return self

    @field_serializer("totalRewards", when_used="json")
    def serialize_total(self, total: int) -> str:
        return str(total)

    @field_serializer("claims", mode="wrap")
    def serialize_claims(
        self, claims: Mapping[str, ClaimRecord], handler: SerializerFunctionWrapHandler
    ) -> dict[str, Any]:
        return handler(dict(claims))

    def claim_for(self, account: str) -> ClaimRecord:
        try:
            key = normalize_account(account)
        except InvalidClaim as e:
            raise UnknownClaimant(f"{account!r} is not a valid claimant") from e
        if key not in self.claims:
            raise UnknownClaimant(f"{key} has no claim in distribution {self.id}")
        return self.claims[key]

    def records(self) -> list[ClaimRecord]:
        """Claim records in index order"""
        return sorted(self.claims.values(), key=lambda r: r.index)

    def leaves(self) -> list[bytes]:
        return [leaf_digest(r) for r in self.records()]

    def recompute_root(self) -> str:
        return MerkleTree.build(self.leaves()).hex_root

    @property
    def claimed_total(self) -> int:
        return sum(r.amount for r in self.claims.values() if r.claimed)

    @property
    def unclaimed_total(self) -> int:
        return self.totalRewards - self.claimed_total

    def claim_summary(self) -> dict[str, int]:
        claimed = len([r for r in self.claims.values() if r.claimed])
        return {
            "claims": len(self.claims),
            "claimed": claimed,
            "unclaimed": len(self.claims) - claimed,
            "claimedAmount": self.claimed_total,
            "unclaimedAmount": self.unclaimed_total,
        }
