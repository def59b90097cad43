from pos_edge import db
from pos_edge.handlers import require_scope, has_rows
from pos_edge.models import Employee, InventoryItem
from pos_edge.sync_manager import ReadThrough, read_through, bulk_insert, row_from_payload, serialize_model


def _load_inventory(store_id):
    rows = db.session.query(InventoryItem, Employee.first_name, Employee.last_name).outerjoin(
        Employee, InventoryItem.created_by_id == Employee.id
    ).filter(
        InventoryItem.store_id == store_id,
        InventoryItem.deleted_at.is_(None)
    ).order_by(InventoryItem.name.asc()).all()

    items = []
    for item, first_name, last_name in rows:
        data = serialize_model(item)
        # Name of the employee who created the item
        data['createdBy'] = f'{first_name} {last_name}' if first_name or last_name else None
        items.append(data)
    return items


def _store_inventory(records, store_id):
    bulk_insert(InventoryItem, [
        row_from_payload(InventoryItem, record, storeId=record.get('storeId') or store_id)
        for record in records
    ])
    return []


def get_inventory(ctx, store_id):
    invalid = require_scope(store_id, 'Store ID')
    if invalid:
        return invalid

    plan = ReadThrough(
        'inventory',
        is_cached=lambda scope: has_rows(InventoryItem, InventoryItem.store_id, scope),
        fetch=ctx.remote.get_inventory,
        store=_store_inventory,
        load=_load_inventory,
    )
    return read_through(plan, store_id)
