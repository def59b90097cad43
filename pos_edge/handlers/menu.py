import json
import logging
from collections import defaultdict
from functools import partial

from pos_edge import db
from pos_edge.handlers import is_blank, require_scope, has_rows
from pos_edge.models import Addon, Category, Dish, DishInventory, Employee, InventoryItem, utcnow
from pos_edge.results import Result, FailureKind
from pos_edge.sync_manager import (
    ReadThrough, read_through, write_back, soft_delete, fan_out,
    bulk_insert, insert_each, row_from_payload, serialize_model
)

logger = logging.getLogger(__name__)


# ============================================================================
# CATEGORIES
# ============================================================================

def _load_categories(store_id):
    categories = Category.query.filter(
        Category.store_id == store_id,
        Category.deleted_at.is_(None)
    ).order_by(Category.category_index.asc(), Category.name.asc()).all()
    return [serialize_model(category) for category in categories]


def _store_categories(records, store_id):
    bulk_insert(Category, [
        row_from_payload(Category, record, storeId=record.get('storeId') or store_id)
        for record in records
    ])
    return []


def get_categories(ctx, store_id):
    invalid = require_scope(store_id, 'Store ID')
    if invalid:
        return invalid

    plan = ReadThrough(
        'categories',
        is_cached=lambda scope: has_rows(Category, Category.store_id, scope),
        fetch=ctx.remote.get_categories,
        store=_store_categories,
        load=_load_categories,
    )
    return read_through(plan, store_id)


def delete_category(ctx, category_id):
    if is_blank(category_id):
        return Result.fail(FailureKind.VALIDATION, 'Category ID is required')

    return write_back(
        ctx, 'Category', category_id,
        apply_local=lambda: soft_delete(Category, category_id),
        operation='category.delete',
        message='Category deleted successfully',
    )


def update_category_status(ctx, params):
    params = params if isinstance(params, dict) else {}
    category_id = params.get('categoryId')
    new_status = params.get('newStatus')

    if is_blank(category_id) or not isinstance(new_status, bool):
        return Result.fail(FailureKind.VALIDATION, 'Category ID and valid status are required')

    def apply_local():
        return Category.query.filter(
            Category.id == category_id,
            Category.deleted_at.is_(None)
        ).update({Category.status: new_status, Category.updated_at: utcnow()},
                 synchronize_session=False)

    label = 'active' if new_status else 'inactive'
    return write_back(
        ctx, 'Category', category_id,
        apply_local=apply_local,
        operation='category.status',
        message=f'Category status updated to {label}',
        payload={'status': new_status},
    )


# ============================================================================
# DISHES
# ============================================================================

def _link_quantity(value):
    try:
        quantity = float(value)
    except (TypeError, ValueError):
        return 1
    return quantity if quantity > 0 else 1


def _decode_addons_column(raw):
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return []
    return value if isinstance(value, list) else []


def _store_dish_children(ctx, dish_ids, store_id):
    """Fetch inventory links and addons for each dish, then insert them."""
    logger.info(f"Fetching addons and inventory for {len(dish_ids)} dishes in {store_id}")
    calls = {}
    for dish_id in dish_ids:
        calls[f'dishInventory/{dish_id}'] = partial(ctx.remote.get_dish_inventory, dish_id)
        calls[f'addon/{dish_id}'] = partial(ctx.remote.get_dish_addons, dish_id)

    results, errors = fan_out(ctx, calls)

    for dish_id in dish_ids:
        links = results.get(f'dishInventory/{dish_id}')
        if links is not None:
            if isinstance(links, list):
                rows = [
                    row_from_payload(DishInventory, link, dishId=dish_id,
                                     quantity=_link_quantity(link.get('quantity')))
                    for link in links if isinstance(link, dict)
                ]
                errors.extend(insert_each(DishInventory, rows, 'dish inventory'))
            else:
                errors.append(f'dishInventory/{dish_id}: invalid response')

        addons = results.get(f'addon/{dish_id}')
        if addons is not None:
            if isinstance(addons, list):
                rows = [
                    row_from_payload(Addon, addon, dishId=dish_id,
                                     storeId=addon.get('storeId') or store_id)
                    for addon in addons if isinstance(addon, dict)
                ]
                errors.extend(insert_each(Addon, rows, 'addon'))
            else:
                errors.append(f'addon/{dish_id}: invalid response')

    return errors


def _dish_children(dish_ids):
    addons_by_dish = defaultdict(list)
    inventory_by_dish = defaultdict(list)
    if not dish_ids:
        return addons_by_dish, inventory_by_dish

    addons = Addon.query.filter(
        Addon.dish_id.in_(dish_ids),
        Addon.deleted_at.is_(None)
    ).order_by(Addon.name.asc()).all()
    for addon in addons:
        addons_by_dish[addon.dish_id].append(serialize_model(addon))

    links = db.session.query(DishInventory, InventoryItem.name).outerjoin(
        InventoryItem, DishInventory.inventory_item_id == InventoryItem.id
    ).filter(DishInventory.dish_id.in_(dish_ids)).all()
    for link, item_name in links:
        data = serialize_model(link)
        data['name'] = item_name
        inventory_by_dish[link.dish_id].append(data)

    return addons_by_dish, inventory_by_dish


def _load_dishes(store_id):
    rows = db.session.query(
        Dish, Employee.first_name, Employee.last_name, Category.name
    ).outerjoin(
        Employee, Dish.employee_id == Employee.id
    ).outerjoin(
        Category, Dish.category_id == Category.id
    ).filter(
        Dish.store_id == store_id,
        Dish.deleted_at.is_(None)
    ).order_by(Dish.name.asc()).all()

    addons_by_dish, inventory_by_dish = _dish_children([dish.id for dish, _, _, _ in rows])

    dishes = []
    for dish, first_name, last_name, category_name in rows:
        data = serialize_model(dish)
        data['addOns'] = _decode_addons_column(dish.add_ons)
        data['createdBy'] = f'{first_name} {last_name}' if first_name and last_name else None
        data['categoryName'] = category_name or None
        data['addons'] = addons_by_dish.get(dish.id, [])
        data['inventory'] = inventory_by_dish.get(dish.id, [])
        dishes.append(data)
    return dishes


def get_dishes(ctx, store_id):
    invalid = require_scope(store_id, 'Store ID')
    if invalid:
        return invalid

    def store(records, scope):
        rows = [row_from_payload(Dish, record, storeId=record.get('storeId') or scope)
                for record in records]
        bulk_insert(Dish, rows)
        return _store_dish_children(ctx, [row['id'] for row in rows if row.get('id')], scope)

    plan = ReadThrough(
        'dishes',
        is_cached=lambda scope: has_rows(Dish, Dish.store_id, scope),
        fetch=ctx.remote.get_dishes,
        store=store,
        load=_load_dishes,
    )
    return read_through(plan, store_id)


def delete_dish(ctx, dish_id):
    if is_blank(dish_id):
        return Result.fail(FailureKind.VALIDATION, 'Dish ID is required')

    return write_back(
        ctx, 'Dish', dish_id,
        apply_local=lambda: soft_delete(Dish, dish_id),
        operation='dish.delete',
        message='Dish deleted successfully',
    )


# ============================================================================
# ADDONS
# ============================================================================

def _load_store_addons(store_id):
    rows = db.session.query(Addon, Dish.name).outerjoin(
        Dish, Addon.dish_id == Dish.id
    ).filter(
        Addon.store_id == store_id,
        Addon.deleted_at.is_(None)
    ).order_by(Addon.name.asc()).all()

    addons = []
    for addon, dish_name in rows:
        data = serialize_model(addon)
        data['dishName'] = dish_name
        addons.append(data)
    return addons


def _store_addons(records, store_id):
    bulk_insert(Addon, [
        row_from_payload(Addon, record, storeId=record.get('storeId') or store_id)
        for record in records
    ])
    return []


def get_addons_by_store(ctx, store_id):
    invalid = require_scope(store_id, 'Store ID')
    if invalid:
        return invalid

    plan = ReadThrough(
        'addons',
        is_cached=lambda scope: has_rows(Addon, Addon.store_id, scope),
        fetch=ctx.remote.get_store_addons,
        store=_store_addons,
        load=_load_store_addons,
    )
    return read_through(plan, store_id)


def delete_addon(ctx, addon_id):
    if is_blank(addon_id):
        return Result.fail(FailureKind.VALIDATION, 'Addon ID is required')

    return write_back(
        ctx, 'Addon', addon_id,
        apply_local=lambda: soft_delete(Addon, addon_id),
        operation='addon.delete',
        message='Addon deleted successfully',
    )
