"""
Merges on-chain redemptions into the claimed overlay of published distributions.

Each claim moves from unclaimed to claimed exactly once. Applying a redemption is
idempotent: the first observed timestamp is kept and repeats are no-ops, so events
can be delivered more than once and in any order.
"""
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Iterable, Union

from distributor.errors import (
    MissingDistributionException,
    RootMismatch,
    StoreTimeoutError,
    UnknownClaimant,
)
from distributor.leaf import normalize_account
from distributor.merkle import from_hex
from distributor.models.DB import DistributionStore
from distributor.models.Distribution import DistributionDocument
from distributor.models.Redemption import RedemptionEvent

if TYPE_CHECKING:
    from distributor.ledger import LedgerClient

logger = logging.getLogger(__name__)

LOCK_STRIPES = 64


def apply_redemption(
    document: DistributionDocument, account: str, redeemed_at: datetime
) -> DistributionDocument:
    """
    Returns a copy of `document` with the claim of `account` marked as claimed.
    Never creates a claim: an account outside the claim set raises `UnknownClaimant`.
    """
    record = document.claim_for(account)

    # pass by reference can cause errors, so we allocate a new document
    new_document = DistributionDocument.model_validate(document.model_dump())
    if record.claimed:
        return new_document

    new_record = new_document.claims[record.account]
    new_record.claimed = True
    new_record.claimedAt = redeemed_at
    return new_document


def verify_root(
    document: DistributionDocument, expected_root: Union[str, bytes]
) -> bool:
    """Rebuild the tree from the claim set and compare to the root recorded on-chain"""
    try:
        expected = from_hex(expected_root)
    except ValueError:
        logger.error(f"Expected root {expected_root!r} is not a 32 byte digest")
        return False

    recomputed = from_hex(document.recompute_root())
    if recomputed != expected:
        logger.error(
            f"Distribution {document.id} hashes to 0x{recomputed.hex()} "
            f"but the expected root is 0x{expected.hex()}"
        )
        return False
    return True


def assert_root(document: DistributionDocument, expected_root: Union[str, bytes]) -> None:
    if not verify_root(document, expected_root):
        raise RootMismatch(
            f"Distribution {document.id} does not hash to the expected root {expected_root!r}"
        )


@dataclass
class ReconcileReport:
    """Outcome of applying a batch of redemption events"""

    applied: list[RedemptionEvent] = field(default_factory=list)
    duplicates: list[RedemptionEvent] = field(default_factory=list)
    failed: list[tuple[RedemptionEvent, Exception]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return len(self.failed) == 0

    def summary(self) -> dict[str, int]:
        return {
            "applied": len(self.applied),
            "duplicates": len(self.duplicates),
            "failed": len(self.failed),
        }


class Reconciler:
    """
    Applies redemptions to documents held in a `DistributionStore`.
    Redemptions for the same account are serialized by a lock picked from a fixed
    pool by hashing `(distribution_id, account)`, so the pool never grows.
    """

    def __init__(self, store: DistributionStore):
        self.store = store
        self._locks = [threading.Lock() for _ in range(LOCK_STRIPES)]

    def _lock_for(self, distribution_id: int, account: str) -> threading.Lock:
        return self._locks[hash((distribution_id, account)) % len(self._locks)]

    def redeem(self, distribution_id: int, account: str, redeemed_at: datetime) -> bool:
        """
        Record a redemption. Returns True if the claim changed state, False if it
        was already claimed. Safe to retry after a `StoreTimeoutError`.
        """
        key = normalize_account(account)
        with self._lock_for(distribution_id, key):
            document = self.store.get_distribution(distribution_id)
            # raises UnknownClaimant before anything is written
            record = document.claim_for(key)
            if record.claimed:
                logger.debug(
                    f"{key} already claimed in distribution {distribution_id} at {record.claimedAt}"
                )
                return False
            return self.store.mark_claimed(distribution_id, key, redeemed_at)

    def apply_event(self, event: RedemptionEvent) -> bool:
        document = self.store.get_distribution(event.distributionId)
        record = document.claim_for(event.account)
        if record.amount != event.amount:
            logger.warning(
                f"Redemption of {event.amount} by {event.account} does not match "
                f"the claim amount {record.amount} in distribution {event.distributionId}"
            )
        return self.redeem(event.distributionId, event.account, event.timestamp)

    def apply_events(self, events: Iterable[RedemptionEvent]) -> ReconcileReport:
        """
        Apply every event. One failing event never blocks the others, failures are
        collected in the report for the caller to surface.
        """
        report = ReconcileReport()
        for event in events:
            try:
                changed = self.apply_event(event)
            except (UnknownClaimant, MissingDistributionException, StoreTimeoutError) as e:
                logger.warning(
                    f"Could not apply redemption by {event.account} "
                    f"to distribution {event.distributionId}: {e}"
                )
                report.failed.append((event, e))
                continue
            if changed:
                report.applied.append(event)
            else:
                report.duplicates.append(event)
        logger.info(f"Reconciled redemptions: {report.summary()}")
        return report

    def verify_against_ledger(self, distribution_id: int, ledger: "LedgerClient") -> bool:
        document = self.store.get_distribution(distribution_id)
        return verify_root(document, ledger.distribution_root(distribution_id))
