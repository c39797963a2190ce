from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, field_serializer, field_validator

from distributor.leaf import check_uint256, normalize_account
from distributor.models.types import EthereumAddress


class RedemptionEvent(BaseModel):
    """
    A claim observed on-chain. Delivery is at-least-once and unordered,
    so the same event may be seen more than once.
    """

    distributionId: int
    account: EthereumAddress
    amount: int
    timestamp: datetime
    index: Optional[int] = None
    transactionHash: Optional[str] = None

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
