from pos_edge.handlers import require_scope, has_rows
from pos_edge.models import Store
from pos_edge.sync_manager import ReadThrough, read_through, bulk_insert, row_from_payload, serialize_model


def _load_stores(organization_id):
    stores = Store.query.filter(
        Store.organization_id == organization_id,
        Store.deleted_at.is_(None)
    ).order_by(Store.name.asc()).all()
    return [serialize_model(store) for store in stores]


def _store_stores(records, organization_id):
    bulk_insert(Store, [
        row_from_payload(Store, record, organizationId=record.get('organizationId') or organization_id)
        for record in records
    ])
    return []


def get_stores(ctx, organization_id):
    invalid = require_scope(organization_id, 'Organization ID')
    if invalid:
        return invalid

    plan = ReadThrough(
        'stores',
        is_cached=lambda org: has_rows(Store, Store.organization_id, org),
        fetch=ctx.remote.get_stores,
        store=_store_stores,
        load=_load_stores,
    )
    return read_through(plan, organization_id)
