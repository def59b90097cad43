from collections import defaultdict

from pos_edge.handlers import require_scope, has_rows
from pos_edge.models import Table
from pos_edge.sync_manager import ReadThrough, read_through, bulk_insert, row_from_payload, serialize_model


def _load_tables(store_id):
    tables = Table.query.filter(
        Table.store_id == store_id,
        Table.deleted_at.is_(None)
    ).order_by(Table.name.asc()).all()

    # A table is merged into at most one other, so this is a forest
    merged = defaultdict(list)
    for table in tables:
        if table.merged_into_id:
            merged[table.merged_into_id].append(table.id)

    result = []
    for table in tables:
        data = serialize_model(table)
        data['mergedTableIds'] = merged.get(table.id, [])
        result.append(data)
    return result


def _store_tables(records, store_id):
    bulk_insert(Table, [
        row_from_payload(Table, record, storeId=record.get('storeId') or store_id)
        for record in records
    ])
    return []


def get_tables(ctx, store_id):
    invalid = require_scope(store_id, 'Store ID')
    if invalid:
        return invalid

    plan = ReadThrough(
        'tables',
        is_cached=lambda scope: has_rows(Table, Table.store_id, scope),
        fetch=ctx.remote.get_tables,
        store=_store_tables,
        load=_load_tables,
    )
    return read_through(plan, store_id)
