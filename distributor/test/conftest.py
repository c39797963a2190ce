from datetime import datetime, timezone

import pytest

from distributor.models import (
    Claim,
    DistributionDocument,
    DistributionMetadata,
    DistributionStore,
)
from distributor.publish import publish

CREATED_AT = datetime(2025, 12, 14, 3, 55, 13, tzinfo=timezone.utc)


def make_address(i: int) -> str:
    return "0x" + "c" * 8 + f"{i + 1:032x}"


def make_claims(n: int) -> list[Claim]:
    return [
        Claim(index=i, account=make_address(i), amount=(i + 1) * 1_000_000)
        for i in range(n)
    ]


def make_document(n: int, distribution_id: int = 1, **metadata) -> DistributionDocument:
    return publish(
        make_claims(n),
        distribution_id,
        DistributionMetadata(source="test fixture", **metadata),
        CREATED_AT,
    )


@pytest.fixture()
def ADDRESSES():
    return [
        "0x9bc33f6155eFAcc290c3C50E9B5b24b668562732",
        "0xfDe38ad4bBbeC867e6cb4Bb31FbFB2074c959A83",
        "0x8BB4C0b502f869af3B25166930507a6E8c3038D4",
        "0x7Ac54A0406FA2B465E0D57C66597BE83A4b149fC",
        "0xdeA708968f8dd520f5e2F0aB6785F28c98521ca8",
    ]


@pytest.fixture()
def ACCOUNT_A():
    return "0x" + "aa" * 19 + "01"


@pytest.fixture()
def ACCOUNT_B():
    return "0x" + "bb" * 19 + "02"


@pytest.fixture()
def two_claims(ACCOUNT_A, ACCOUNT_B) -> list[Claim]:
    return [
        Claim(index=0, account=ACCOUNT_A, amount=100),
        Claim(index=1, account=ACCOUNT_B, amount=250),
    ]


@pytest.fixture()
def document(two_claims) -> DistributionDocument:
    return publish(two_claims, 1, DistributionMetadata(source="fixture"), CREATED_AT)


@pytest.fixture()
def store(tmp_path) -> DistributionStore:
    db = DistributionStore(str(tmp_path / "db" / "distributor-db.json"), timeout=1)
    yield db
    db.close()
