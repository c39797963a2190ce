import csv
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from distributor.errors import BadConfigException
from distributor.models import Config, InputConfig


def create_conf(path: str, distribution_id: int, generated: Optional[datetime] = None) -> Config:
    """Generates the round config from the user's input file"""
    base_config = InputConfig.model_validate_json(Path(path).read_text())

    return Config(
        distribution_id=distribution_id,
        generated=generated or datetime.now(timezone.utc),
        **base_config.model_dump(),
    )


def load_conf(config_path: str) -> Config:
    """Loads an existing config from file"""
    return Config.model_validate_json(
        Path(f"{config_path}/distribution-conf.json").read_text()
    )


def save_conf(conf: Config, config_path: str) -> None:
    Path(config_path).mkdir(parents=True, exist_ok=True)
    with open(f"{config_path}/distribution-conf.json", "w+") as j:
        j.write(conf.model_dump_json(indent=4))


def read_entitlements(path: str) -> list[tuple[str, str]]:
    """
    Reads `(account, amount)` rows in file order. Accepts:
    - csv with an `account,amount` header
    - json list of `{"account": ..., "amount": ...}`
    - json object of `{account: amount}`
    """
    if path.endswith(".csv"):
        with open(path, newline="") as f:
            reader = csv.DictReader(f)
            if not reader.fieldnames or not {"account", "amount"} <= set(reader.fieldnames):
                raise BadConfigException(f"{path} must have an account,amount header")
            return [(row["account"], row["amount"]) for row in reader]

    with open(path) as j:
        data = json.load(j)
    if isinstance(data, dict):
        return [(account, str(amount)) for account, amount in data.items()]
    if isinstance(data, list):
        return [(row["account"], str(row["amount"])) for row in data]
    raise BadConfigException(f"Unrecognised entitlements format in {path}")
