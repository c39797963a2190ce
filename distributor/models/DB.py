import logging
import os
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from tinydb import TinyDB, where

from distributor.env import PATHS, STORE_TIMEOUT_SECONDS
from distributor.errors import (
    DistributionExistsError,
    MissingDistributionException,
    StoreTimeoutError,
    UnknownClaimant,
)
from distributor.leaf import normalize_account
from distributor.models.Distribution import DistributionDocument

logger = logging.getLogger(__name__)

DISTRIBUTIONS_TABLE = "distributions"


class DistributionStore(TinyDB):
    """
    Durable record of every published distribution, keyed by distribution id.
    Documents are only ever inserted once, afterwards only the claimed overlay is updated.
    All reads and writes are serialized by a lock that is acquired with a timeout,
    a `StoreTimeoutError` means the operation did not start and can be retried.
    """

    timeout: float

    def __init__(
        self,
        path: str = PATHS.DB,
        drop=False,
        timeout: float = STORE_TIMEOUT_SECONDS,
        **kwargs,
    ):
        self.timeout = timeout
        self._lock = threading.RLock()

        # check if the directory exists
        create_dirs = self.exists(path) == False
        super().__init__(
            path,
            indent=4,
            create_dirs=create_dirs,
            **kwargs,
        )

        if drop:
            self.drop_tables()

    @staticmethod
    def exists(path: str):
        return os.path.exists(path)

    @property
    def distributions(self):
        return self.table(DISTRIBUTIONS_TABLE)

    @contextmanager
    def locked(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self.timeout):
            raise StoreTimeoutError(f"Could not lock the store within {self.timeout}s")
        try:
            yield
        finally:
            self._lock.release()

    def next_distribution_id(self) -> int:
        with self.locked():
            ids = [d["id"] for d in self.distributions.all()]
        return max(ids) + 1 if ids else 1

    def insert_distribution(self, document: DistributionDocument) -> None:
        with self.locked():
            if self.distributions.contains(where("id") == document.id):
                raise DistributionExistsError(
                    f"Distribution {document.id} already exists and cannot be rewritten"
                )
            self.distributions.insert(document.model_dump(mode="json"))
        logger.info(f"Stored distribution {document.id} with root {document.merkleRoot}")

    def get_distribution(self, distribution_id: int) -> DistributionDocument:
        with self.locked():
            record = self.distributions.get(where("id") == distribution_id)
        if record is None:
            raise MissingDistributionException(f"Distribution {distribution_id} not found")
        return DistributionDocument.model_validate(dict(record))

    def all_distributions(self) -> list[DistributionDocument]:
        with self.locked():
            records = self.distributions.all()
        documents = [DistributionDocument.model_validate(dict(r)) for r in records]
        return sorted(documents, key=lambda d: d.id)

    def latest_distribution(self) -> Optional[DistributionDocument]:
        documents = self.all_distributions()
        return documents[-1] if documents else None

    def mark_claimed(
        self, distribution_id: int, account: str, claimed_at: datetime
    ) -> bool:
        """
        Compare-and-set on the claimed flag of one claim.
        Returns True if the claim moved to claimed, False if it was already claimed.
        """
        key = normalize_account(account)
        with self.locked():
            record = self.distributions.get(where("id") == distribution_id)
            if record is None:
                raise MissingDistributionException(
                    f"Distribution {distribution_id} not found"
                )
            claim = record["claims"].get(key)
            if claim is None:
                raise UnknownClaimant(
                    f"{key} has no claim in distribution {distribution_id}"
                )
            if claim["claimed"]:
                return False

            def set_claimed(doc):
                doc["claims"][key]["claimed"] = True
                doc["claims"][key]["claimedAt"] = claimed_at.isoformat()

            self.distributions.update(set_claimed, where("id") == distribution_id)
        return True
