import json, csv
from pathlib import Path
from dataclasses import dataclass
from typing import Any

from distributor import codec
from distributor.env import PATHS
from distributor.models.Distribution import DistributionDocument


@dataclass
class Writer:
    """Writes the artifacts of one distribution under `reports/distribution-<id>`"""

    distribution_id: int
    root: str = PATHS.REPORTS

    @property
    def path(self) -> str:
        return f"{self.root}/distribution-{self.distribution_id}"

    @property
    def csv_path(self) -> str:
        return f"{self.path}/csv"

    @property
    def json_path(self) -> str:
        return f"{self.path}/json"

    @staticmethod
    def flatten_json(data: Any, prefix: str = "") -> dict[str, Any]:
        """Nested dicts and lists become flat `parent_child` and `parent_0` keys"""
        if isinstance(data, dict):
            items = data.items()
        elif isinstance(data, (list, tuple)):
            items = enumerate(data)
        else:
            return {prefix: data}

        out: dict[str, Any] = {}
        for key, value in items:
            out.update(Writer.flatten_json(value, f"{prefix}_{key}" if prefix else str(key)))
        return out

    @staticmethod
    def write_csv(data: list[dict[str, Any]], path: str, fieldnames: list[str]) -> None:
        with open(path, "w+", newline="") as f:
            writer = csv.DictWriter(
                f, delimiter=",", fieldnames=fieldnames, extrasaction="ignore"
            )
            writer.writeheader()
            writer.writerows(data)

    # create the directory in the reports folder for csv and json if it doesn't exist
    def _create_dir(self) -> None:
        Path(self.path).mkdir(parents=True, exist_ok=True)
        Path(self.csv_path).mkdir(parents=True, exist_ok=True)
        Path(self.json_path).mkdir(parents=True, exist_ok=True)

    def to_csv(self, data: list[dict[str, Any]], name: str, fieldnames: list[str]) -> None:
        self._create_dir()
        self.write_csv(data, f"{self.csv_path}/{name}.csv", fieldnames)

    def to_json(self, data: Any, name: str) -> None:
        self._create_dir()
        with open(f"{self.json_path}/{name}.json", "w") as f:
            json.dump(data, f, indent=4)

    def to_csv_and_json(self, data: list[dict[str, Any]], name: str) -> None:
        csv_data = [self.flatten_json(d) for d in data]
        # proofs differ in length, so the header is the union of every row's keys
        keys = list(dict.fromkeys(k for row in csv_data for k in row))
        self.to_json(data, name)
        self.to_csv(csv_data, name, keys)

    def write_interchange(self, document: DistributionDocument) -> str:
        """The single row export that can be re-imported with `codec.from_text`"""
        self._create_dir()
        path = f"{self.path}/distribution-{document.id}.csv"
        with open(path, "w", newline="") as f:
            f.write(codec.to_text(document))
        return path

    def write_document(self, document: DistributionDocument) -> None:
        self._create_dir()
        with open(f"{self.path}/distribution-{document.id}.json", "w") as f:
            f.write(codec.to_json(document))

        claims = [
            {
                "index": r.index,
                "account": r.account,
                "amount": str(r.amount),
                "claimed": r.claimed,
                "claimedAt": r.claimedAt.isoformat() if r.claimedAt else "",
                "proof": list(r.proof),
            }
            for r in document.records()
        ]
        self.to_csv_and_json(claims, "claims")
        self.to_json(
            {
                "id": document.id,
                "merkleRoot": document.merkleRoot,
                "totalRewards": str(document.totalRewards),
                **document.claim_summary(),
            },
            "summary",
        )

    def write_all(self, document: DistributionDocument) -> None:
        self.write_interchange(document)
        self.write_document(document)
