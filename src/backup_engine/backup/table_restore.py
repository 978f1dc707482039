"""Dependency-ordered table restore.

Replays table datasets from an opened archive into the live database in
``plan.table_order`` (parents before children).  Each batch is a single
upsert keyed on ``plan.primary_key`` with overwrite-on-conflict, so a
repeated restore converges to the same rows instead of duplicating them.

Failures stay inside their unit: a failed batch adds one
``"Batch <index>: <message>"`` entry to its table and the next batch runs;
an unparseable dataset yields ``restored=0`` with one error.  Tables never
abort each other.  Batches commit independently -- there is no
cross-table transaction.

Usage:
    from backup_engine.backup.table_restore import restore_tables

    details = await restore_tables(adapter, archive, plan)
    details["profiles"].restored
"""

import logging

from backup_engine.adapters.base import DatabaseClient
from backup_engine.backup.archive import Archive
from backup_engine.backup.models import RestorePlan, TableResult
from backup_engine.errors import DatasetError

logger = logging.getLogger(__name__)


def split_batches(rows: list[dict], batch_size: int) -> list[list[dict]]:
    """Split rows into consecutive batches of at most ``batch_size``.

    Example:
        >>> [len(b) for b in split_batches([{}] * 101, 100)]
        [100, 1]
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    return [rows[i:i + batch_size] for i in range(0, len(rows), batch_size)]


async def restore_table(
    adapter: DatabaseClient,
    table: str,
    rows: list[dict],
    plan: RestorePlan,
) -> TableResult:
    """Upsert one table's rows batch by batch.

    Args:
        adapter: Live database adapter.
        table: Table name.
        rows: Row dicts from the archive.
        plan: Supplies ``batch_size`` and ``primary_key``.

    Returns:
        ``TableResult`` with the number of rows in successful batches and
        one error string per failed batch.
    """
    result = TableResult()
    for index, batch in enumerate(split_batches(rows, plan.batch_size)):
        try:
            await adapter.upsert(table, batch, on_conflict=plan.primary_key)
        except Exception as e:
            result.errors.append(f"Batch {index}: {e}")
            logger.warning(f"{table} batch {index} failed: {e}")
        else:
            result.restored += len(batch)
    return result


async def restore_tables(
    adapter: DatabaseClient,
    archive: Archive,
    plan: RestorePlan,
) -> dict[str, TableResult]:
    """Restore every table of ``plan.table_order`` from ``archive``.

    Tables are processed strictly one after another.  Tables the archive
    does not carry report ``restored=0`` with no errors; tables present in
    the archive but missing from the plan are not restored.

    Returns:
        Mapping of table name to ``TableResult`` in restore order.
    """
    details: dict[str, TableResult] = {}

    for table in plan.table_order:
        try:
            rows = archive.load_table(table)
        except DatasetError as e:
            details[table] = TableResult(restored=0, errors=[str(e)])
            logger.warning(f"{table}: dataset skipped: {e}")
            continue

        if not rows:
            details[table] = TableResult()
            continue

        details[table] = await restore_table(adapter, table, rows, plan)
        logger.info(f"{table}: {details[table].restored}/{len(rows)} rows restored")

    ignored = sorted(set(archive.table_names()) - set(plan.table_order))
    if ignored:
        logger.warning(f"Tables not in restore order were ignored: {', '.join(ignored)}")

    return details
