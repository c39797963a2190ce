import json

import pytest
from datetime import datetime, timezone

from distributor.config import create_conf, load_conf, read_entitlements, save_conf
from distributor.errors import BadConfigException
from distributor.leaf import HASH_CONVENTION
from distributor.models import Config, InputConfig
from distributor.models.Config import ERROR_MESSAGES

GENERATED = datetime(2025, 12, 14, tzinfo=timezone.utc)


@pytest.fixture
def input_config(ADDRESSES) -> InputConfig:
    return InputConfig(
        source="holder snapshot",
        claims_file="entitlements.csv",
        block_number=40117383,
        excluded_addresses=ADDRESSES[:2],
    )


def test_excluded_addresses_are_normalized(input_config, ADDRESSES):
    assert input_config.excluded_addresses == [a.lower() for a in ADDRESSES[:2]]


def test_duplicate_excluded_addresses(input_config, ADDRESSES):
    dct = input_config.model_dump()
    dct["excluded_addresses"] = [ADDRESSES[0], ADDRESSES[0].lower()]

    with pytest.raises(BadConfigException, match=ERROR_MESSAGES.DUPLICATE_EXCLUDED):
        InputConfig(**dct)


def test_invalid_excluded_address(input_config):
    dct = input_config.model_dump()
    dct["excluded_addresses"] = ["0x1"]

    with pytest.raises(BadConfigException, match=ERROR_MESSAGES.BAD_EXCLUDED):
        InputConfig(**dct)


def test_negative_block(input_config):
    dct = input_config.model_dump()
    dct["block_number"] = -1

    with pytest.raises(BadConfigException, match=ERROR_MESSAGES.NEGATIVE_BLOCK):
        InputConfig(**dct)


def test_negative_distribution_id(input_config):
    with pytest.raises(BadConfigException, match=ERROR_MESSAGES.NEGATIVE_ID):
        Config(**input_config.model_dump(), distribution_id=-1, generated=GENERATED)


def test_distribution_metadata(input_config, ADDRESSES):
    conf = Config(**input_config.model_dump(), distribution_id=3, generated=GENERATED)
    metadata = conf.distribution_metadata()

    assert conf.excluded == {a.lower() for a in ADDRESSES[:2]}
    assert metadata.generated == GENERATED
    assert metadata.source == "holder snapshot"
    assert metadata.blockNumber == 40117383
    assert metadata.chainId == 1
    assert metadata.hashConvention == HASH_CONVENTION


def test_create_save_load_conf(tmp_path, input_config):
    path = tmp_path / "input.json"
    path.write_text(input_config.model_dump_json())

    conf = create_conf(str(path), 7, GENERATED)
    save_conf(conf, str(tmp_path / "distribution-7"))

    assert conf.distribution_id == 7
    assert load_conf(str(tmp_path / "distribution-7")) == conf


def test_read_entitlements_csv(tmp_path, ADDRESSES):
    path = tmp_path / "entitlements.csv"
    path.write_text(f"account,amount\n{ADDRESSES[0]},100\n{ADDRESSES[1]},250\n")

    assert read_entitlements(str(path)) == [(ADDRESSES[0], "100"), (ADDRESSES[1], "250")]


def test_read_entitlements_csv_needs_header(tmp_path, ADDRESSES):
    path = tmp_path / "entitlements.csv"
    path.write_text(f"{ADDRESSES[0]},100\n")

    with pytest.raises(BadConfigException):
        read_entitlements(str(path))


def test_read_entitlements_json(tmp_path, ADDRESSES):
    as_dict = tmp_path / "dict.json"
    as_dict.write_text(json.dumps({ADDRESSES[0]: 100, ADDRESSES[1]: "250"}))
    as_list = tmp_path / "list.json"
    as_list.write_text(
        json.dumps(
            [
                {"account": ADDRESSES[0], "amount": 100},
                {"account": ADDRESSES[1], "amount": "250"},
            ]
        )
    )

    expected = [(ADDRESSES[0], "100"), (ADDRESSES[1], "250")]
    assert read_entitlements(str(as_dict)) == expected
    assert read_entitlements(str(as_list)) == expected


def test_read_entitlements_unknown_format(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text('"just a string"')

    with pytest.raises(BadConfigException):
        read_entitlements(str(path))
