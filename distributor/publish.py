"""
Publication pipeline: entitlements -> claims -> leaves -> tree -> DistributionDocument.

Publication is a single batch step. Either every claim validates and a complete
document is returned, or an exception is raised and nothing is produced.
"""
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from distributor.errors import DuplicateAccount, DuplicateIndex, InvalidClaim
from distributor.leaf import leaf_digest, normalize_account
from distributor.merkle import MerkleTree
from distributor.models.Claim import Claim, ClaimRecord
from distributor.models.Distribution import DistributionDocument, DistributionMetadata

logger = logging.getLogger(__name__)


def build_claims(
    entitlements: Iterable[tuple[str, int]], excluded: Iterable[str] = ()
) -> list[Claim]:
    """
    Assign indices to `(account, amount)` rows in input order.
    Excluded accounts and zero amounts are dropped before indices are assigned,
    so the resulting indices stay dense.
    :param `entitlements`: rows of account and amount in the token's smallest unit
    :param `excluded`: accounts that must never receive a claim
    """
    excluded_accounts = {normalize_account(e) for e in excluded}
    seen: set[str] = set()
    claims: list[Claim] = []
    for account, amount in entitlements:
        key = normalize_account(account)
        if key in seen:
            raise DuplicateAccount(f"{key} appears more than once in the entitlements")
        seen.add(key)
        if key in excluded_accounts:
            logger.info(f"Skipping excluded address {key}")
            continue
        claim = Claim(index=len(claims), account=key, amount=amount)
        if claim.amount == 0:
            continue
        claims.append(claim)
    return claims


def validate_claims(claims: Iterable[Claim]) -> list[Claim]:
    """
    Check the claim set invariants and return the claims sorted by index.
    Indices and accounts must be unique, and indices must run from 0 without gaps.
    """
    indices: set[int] = set()
    accounts: set[str] = set()
    ordered = []
    for claim in claims:
        if claim.index in indices:
            raise DuplicateIndex(f"Index {claim.index} is used by more than one claim")
        if claim.account in accounts:
            raise DuplicateAccount(f"{claim.account} has more than one claim")
        indices.add(claim.index)
        accounts.add(claim.account)
        ordered.append(claim)

    ordered.sort(key=lambda c: c.index)
    for position, claim in enumerate(ordered):
        if claim.index != position:
            raise InvalidClaim(
                f"Claim indices must be contiguous from 0, missing index {position}"
            )
    return ordered


def publish(
    claims: Iterable[Claim],
    distribution_id: int,
    metadata: Optional[DistributionMetadata] = None,
    created_at: Optional[datetime] = None,
) -> DistributionDocument:
    """
    Build the merkle tree for a claim set and return the complete distribution.
    :param `claims`: every claim of the round, indices assigned
    :param `distribution_id`: id the document will be recorded under, never reused
    :param `metadata`: descriptive fields, not committed to by the root
    """
    ordered = validate_claims(claims)
    leaves = [leaf_digest(c) for c in ordered]
    tree = MerkleTree.build(leaves)

    # python ints are arbitrary precision, the total is exact
    total_rewards = sum(c.amount for c in ordered)

    records = {
        c.account: ClaimRecord.from_claim(c, tree.hex_proof(c.index)) for c in ordered
    }

    if not records:
        logger.warning(f"Distribution {distribution_id} has no claims")

    document = DistributionDocument(
        id=distribution_id,
        merkleRoot=tree.hex_root,
        totalRewards=total_rewards,
        claims=records,
        metadata=metadata or DistributionMetadata(),
        createdAt=created_at or datetime.now(timezone.utc),
    )
    logger.info(
        f"Published distribution {distribution_id}: root={document.merkleRoot} "
        f"claims={len(records)} totalRewards={total_rewards}"
    )
    return document
