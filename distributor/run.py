import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import fire

from distributor import codec
from distributor.config import create_conf, read_entitlements, save_conf
from distributor.env import PATHS
from distributor.ledger import LedgerClient
from distributor.models import DistributionStore, Writer
from distributor.publish import build_claims, publish as publish_claims
from distributor.reconcile import Reconciler, verify_root
from distributor.utils import format_units, yes_or_no


def _hex_arg(value, width: int) -> str:
    # fire parses 0x prefixed arguments as int literals
    if isinstance(value, int):
        return f"0x{value:0{width}x}"
    return value


def publish(config: str, yes: bool = False, db: str = PATHS.DB, decimals: int = 8):
    """
    Build a new distribution from the entitlements named in `config` and store it
    under the next free distribution id.
    """
    store = DistributionStore(db)
    distribution_id = store.next_distribution_id()
    conf = create_conf(config, distribution_id)

    entitlements = read_entitlements(conf.claims_file)
    claims = build_claims(entitlements, conf.excluded)
    document = publish_claims(
        claims, distribution_id, conf.distribution_metadata(), conf.generated
    )

    print(f"🌳 Merkle root: {document.merkleRoot}")
    print(
        f"📈 Total rewards: {format_units(document.totalRewards, decimals)} "
        f"for {len(document.claims)} holders"
    )
    if not yes and not yes_or_no(f"Store this as distribution {distribution_id}?"):
        print("🛑 Nothing was stored")
        return

    writer = Writer(distribution_id)
    store.insert_distribution(document)
    save_conf(conf, writer.path)
    writer.write_all(document)
    print(f"🚀🚀🚀 Stored distribution {distribution_id}, artifacts in {writer.path}")
    return document.merkleRoot


def export(distribution_id: int, db: str = PATHS.DB):
    """Write the interchange csv and the json document for a stored distribution"""
    store = DistributionStore(db)
    document = store.get_distribution(distribution_id)
    writer = Writer(distribution_id)
    writer.write_all(document)
    print(f"💾 Exported distribution {distribution_id} to {writer.path}")


def import_csv(path: str, verify_root: bool = True, db: str = PATHS.DB):
    """Load distributions from an interchange csv backup into the store"""
    store = DistributionStore(db)
    documents = codec.from_text_many(Path(path).read_text(), verify_root=verify_root)
    for document in documents:
        store.insert_distribution(document)
        print(f"✅ Imported distribution {document.id} with {len(document.claims)} claims")


def redeem(distribution_id: int, account: str, timestamp: Optional[str] = None, db: str = PATHS.DB):
    """Manually mark one claim as redeemed"""
    redeemed_at = (
        datetime.fromisoformat(timestamp) if timestamp else datetime.now(timezone.utc)
    )
    account = _hex_arg(account, 40)
    changed = Reconciler(DistributionStore(db)).redeem(distribution_id, account, redeemed_at)
    if changed:
        print(f"📌 Marked {account} as claimed at {redeemed_at.isoformat()}")
    else:
        print(f"👌 {account} was already claimed")


def reconcile(
    distribution_id: int,
    from_block: int = 0,
    to_block: Optional[int] = None,
    db: str = PATHS.DB,
):
    """Pull Claimed events from the distributor contract and apply them"""
    ledger = LedgerClient.from_env()
    reconciler = Reconciler(DistributionStore(db))
    if not reconciler.verify_against_ledger(distribution_id, ledger):
        print(f"❌ Distribution {distribution_id} does not match the on-chain root")
        return

    events = ledger.claimed_events(distribution_id, from_block, to_block)
    report = reconciler.apply_events(events)
    print(f"📊 {report.summary()}")
    for event, error in report.failed:
        print(f"⚠️  {event.account}: {error}")


def verify(distribution_id: int, root: Optional[str] = None, db: str = PATHS.DB):
    """Compare a stored distribution with `root`, or with the root recorded on-chain"""
    document = DistributionStore(db).get_distribution(distribution_id)
    expected = _hex_arg(root, 64) or LedgerClient.from_env().distribution_root(distribution_id)
    if verify_root(document, expected):
        print(f"✅ Distribution {distribution_id} matches {expected}")
        return True
    print(f"❌ Distribution {distribution_id} does not match {expected}")
    return False


def show(distribution_id: int, db: str = PATHS.DB):
    document = DistributionStore(db).get_distribution(distribution_id)
    print(f"Distribution {document.id} created {document.createdAt.isoformat()}")
    print(f"  root: {document.merkleRoot}")
    print(f"  totalRewards: {document.totalRewards}")
    for key, value in document.claim_summary().items():
        print(f"  {key}: {value}")


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    fire.Fire(
        {
            "publish": publish,
            "export": export,
            "import_csv": import_csv,
            "redeem": redeem,
            "reconcile": reconcile,
            "verify": verify,
            "show": show,
        }
    )
