"""
Text interchange for distribution documents.

Tabular form: one CSV record per distribution with the header

    id,merkle_root,total_rewards,claim_count,claims,metadata,created_at

`claims` and `metadata` are compact JSON embedded in a single CSV field.
Escaping follows RFC 4180: a field containing a comma, a double quote, CR or LF
is wrapped in double quotes and every double quote inside it is doubled.
The embedded JSON always contains quotes, so those two fields are always quoted.

Reading never splits on delimiters by hand. The csv module runs in strict mode so
an unterminated quoted field is an error, the embedded JSON is fully re-parsed,
and the recovered claim count and total are checked against the declared ones.
Any failure raises `CorruptDocument`; a partial document is never returned.
"""
import csv
import io
import json
import logging
from typing import Any, Iterable, Optional

from distributor.errors import CorruptDocument, InvalidClaim, RootMismatch
from distributor.models.Distribution import DistributionDocument
from distributor.models.types import CSVColumn

logger = logging.getLogger(__name__)

HEADER: list[CSVColumn] = [
    "id",
    "merkle_root",
    "total_rewards",
    "claim_count",
    "claims",
    "metadata",
    "created_at",
]


class InterchangeDialect(csv.Dialect):
    delimiter = ","
    quotechar = '"'
    doublequote = True
    skipinitialspace = False
    lineterminator = "\n"
    quoting = csv.QUOTE_MINIMAL
    strict = True


def _compact(data: Any) -> str:
    return json.dumps(data, separators=(",", ":"))


def _reject_duplicate_keys(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in pairs:
        if key in out:
            raise CorruptDocument(f"Duplicate key {key!r} in embedded JSON")
        out[key] = value
    return out


def _load_json(payload: str, field: str) -> Any:
    try:
        return json.loads(payload, object_pairs_hook=_reject_duplicate_keys)
    except json.JSONDecodeError as e:
        raise CorruptDocument(
            f"The {field} field is not complete JSON ({e.msg} at char {e.pos} of {len(payload)}), "
            "it is likely truncated"
        ) from e


def _to_row(document: DistributionDocument) -> list[str]:
    data = document.model_dump(mode="json")
    claims = {r.account: r.model_dump(mode="json") for r in document.records()}
    return [
        str(document.id),
        document.merkleRoot,
        str(document.totalRewards),
        str(len(claims)),
        _compact(claims),
        _compact(data["metadata"]),
        data["createdAt"],
    ]


def _validate(data: dict[str, Any]) -> DistributionDocument:
    try:
        return DistributionDocument.model_validate(data)
    except (ValueError, TypeError, InvalidClaim) as e:
        raise CorruptDocument(f"Distribution failed validation: {e}") from e


def check_integrity(
    document: DistributionDocument,
    declared_count: Optional[int] = None,
    verify_root: bool = False,
) -> DistributionDocument:
    """
    Confirm nothing was lost or altered in transit.
    :param `declared_count`: number of claims the source said it contained
    :param `verify_root`: rebuild the tree from the recovered claims and compare roots
    """
    if declared_count is not None and declared_count != len(document.claims):
        raise CorruptDocument(
            f"Distribution {document.id} declares {declared_count} claims "
            f"but {len(document.claims)} were recovered"
        )

    total = sum(r.amount for r in document.claims.values())
    if total != document.totalRewards:
        raise CorruptDocument(
            f"Distribution {document.id} total {document.totalRewards} does not match claims total {total}"
        )

    if verify_root:
        recomputed = document.recompute_root()
        if recomputed != document.merkleRoot:
            logger.error(
                f"Root mismatch for distribution {document.id}: "
                f"recorded {document.merkleRoot}, recomputed {recomputed}"
            )
            raise RootMismatch(
                f"Distribution {document.id} records root {document.merkleRoot} "
                f"but its claims hash to {recomputed}"
            )
    return document


def _from_row(row: list[str], verify_root: bool) -> DistributionDocument:
    if len(row) != len(HEADER):
        raise CorruptDocument(
            f"Expected {len(HEADER)} columns but found {len(row)}, the row is damaged"
        )
    fields = dict(zip(HEADER, row))

    claims = _load_json(fields["claims"], "claims")
    metadata = _load_json(fields["metadata"], "metadata")
    if not isinstance(claims, dict) or not isinstance(metadata, dict):
        raise CorruptDocument("The claims and metadata fields must be JSON objects")

    try:
        declared_count = int(fields["claim_count"])
    except ValueError as e:
        raise CorruptDocument(f"Bad claim_count {fields['claim_count']!r}") from e

    document = _validate(
        {
            "id": fields["id"],
            "merkleRoot": fields["merkle_root"],
            "totalRewards": fields["total_rewards"],
            "claims": claims,
            "metadata": metadata,
            "createdAt": fields["created_at"],
        }
    )
    return check_integrity(document, declared_count, verify_root)


def to_text_many(documents: Iterable[DistributionDocument]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, dialect=InterchangeDialect)
    writer.writerow(HEADER)
    for document in sorted(documents, key=lambda d: d.id):
        writer.writerow(_to_row(document))
    return buffer.getvalue()


def to_text(document: DistributionDocument) -> str:
    return to_text_many([document])


def _reader(text: str):
    # the claims column carries every proof, so a single field can be most of the file
    if csv.field_size_limit() <= len(text):
        csv.field_size_limit(len(text) + 1)
    return csv.reader(io.StringIO(text, newline=""), dialect=InterchangeDialect)


def from_text_many(text: str, verify_root: bool = False) -> list[DistributionDocument]:
    reader = _reader(text)
    try:
        rows = [row for row in reader if row]
    except csv.Error as e:
        raise CorruptDocument(
            f"Could not parse the CSV near line {reader.line_num}: {e}"
        ) from e

    if not rows or rows[0] != HEADER:
        raise CorruptDocument(f"Missing or unexpected header, expected {','.join(HEADER)}")

    documents = [_from_row(row, verify_root) for row in rows[1:]]
    ids = [d.id for d in documents]
    if len(set(ids)) != len(ids):
        raise CorruptDocument("The same distribution id appears more than once")
    return documents


def from_text(text: str, verify_root: bool = False) -> DistributionDocument:
    documents = from_text_many(text, verify_root)
    if len(documents) != 1:
        raise CorruptDocument(f"Expected one distribution, found {len(documents)}")
    return documents[0]


def to_json(document: DistributionDocument) -> str:
    return document.model_dump_json(indent=4)


def from_json(text: str, verify_root: bool = False) -> DistributionDocument:
    data = _load_json(text, "document")
    if not isinstance(data, dict):
        raise CorruptDocument("A distribution must be a JSON object")
    return check_integrity(_validate(data), verify_root=verify_root)
