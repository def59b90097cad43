"""
Customers and their orders.

Orders arrive from ``/order/get/{storeId}`` with their items inline
(``OrderItems``, each with ``OrderItemAddons``), so unlike dishes no follow-up request
per parent is needed. Order-item add-ons keep the name and price captured when
the order was placed.
"""

import logging
from collections import defaultdict

from pos_edge import db
from pos_edge.handlers import require_scope, has_rows
from pos_edge.models import Customer, Dish, Employee, Order, OrderItem, OrderItemAddon
from pos_edge.sync_manager import (
    ReadThrough, read_through, bulk_insert, insert_each, row_from_payload, serialize_model
)

logger = logging.getLogger(__name__)


# ============================================================================
# ORDERS
# ============================================================================

def _children(record, *keys):
    for key in keys:
        value = record.get(key)
        if value is not None:
            return [child for child in value if isinstance(child, dict)] if isinstance(value, list) else []
    return []


def _order_items_of(record):
    return _children(record, 'OrderItems', 'orderItems', 'items')


def _item_addons_of(item):
    return _children(item, 'OrderItemAddons', 'addons', 'orderItemAddons')


def _addon_snapshot(item_id, addon):
    # The included addon wins for the name, the flat fields for id and price
    source = addon.get('addon') if isinstance(addon.get('addon'), dict) else {}
    return row_from_payload(
        OrderItemAddon, addon,
        orderItemId=item_id,
        addonId=addon.get('addonId') or source.get('id'),
        addonName=source.get('name') or addon.get('addonName'),
        addonPrice=addon.get('addonPrice') if addon.get('addonPrice') is not None else source.get('price'),
    )


def _store_orders(records, store_id):
    bulk_insert(Order, [
        row_from_payload(Order, record, storeId=record.get('storeId') or store_id)
        for record in records
    ])

    errors = []
    for record in records:
        items = _order_items_of(record)
        if not items:
            continue
        errors.extend(insert_each(OrderItem, [
            row_from_payload(OrderItem, item, orderId=record.get('id')) for item in items
        ], 'order item'))

        for item in items:
            addon_rows = [_addon_snapshot(item.get('id'), addon) for addon in _item_addons_of(item)]
            errors.extend(insert_each(OrderItemAddon, addon_rows, 'order item addon'))
    return errors


def _order_items(order_ids):
    items_by_order = defaultdict(list)
    if not order_ids:
        return items_by_order

    rows = db.session.query(OrderItem, Dish.name).outerjoin(
        Dish, OrderItem.dish_id == Dish.id
    ).filter(OrderItem.order_id.in_(order_ids)).all()

    addons_by_item = defaultdict(list)
    item_ids = [item.id for item, _ in rows]
    if item_ids:
        for addon in OrderItemAddon.query.filter(OrderItemAddon.order_item_id.in_(item_ids)).all():
            addons_by_item[addon.order_item_id].append(serialize_model(addon))

    for item, dish_name in rows:
        data = serialize_model(item)
        data['dishName'] = dish_name
        data['addons'] = addons_by_item.get(item.id, [])
        items_by_order[item.order_id].append(data)
    return items_by_order


def _load_orders(store_id):
    rows = db.session.query(Order, Customer.name, Employee).outerjoin(
        Customer, Order.customer_id == Customer.id
    ).outerjoin(
        Employee, Order.created_by == Employee.id
    ).filter(
        Order.store_id == store_id,
        Order.deleted_at.is_(None)
    ).order_by(Order.created_at.desc()).all()

    items_by_order = _order_items([order.id for order, _, _ in rows])

    orders = []
    for order, customer_name, employee in rows:
        data = serialize_model(order)
        data['customerName'] = customer_name
        data['createdByName'] = (employee.get_full_name() or None) if employee else None
        data['items'] = items_by_order.get(order.id, [])
        orders.append(data)
    return orders


def _orders_plan(ctx):
    return ReadThrough(
        'orders',
        is_cached=lambda scope: has_rows(Order, Order.store_id, scope),
        fetch=ctx.remote.get_orders,
        store=_store_orders,
        load=_load_orders,
    )


def get_orders(ctx, store_id):
    invalid = require_scope(store_id, 'Store ID')
    if invalid:
        return invalid
    return read_through(_orders_plan(ctx), store_id)


# ============================================================================
# CUSTOMERS
# ============================================================================

def _customers_loader(with_orders):
    def load(store_id):
        # Runs after the customer rows are stored, so customerName resolves
        orders_by_customer = defaultdict(list)
        for order in (_load_orders(store_id) if with_orders else []):
            if order.get('customerId'):
                orders_by_customer[order['customerId']].append(order)

        customers = Customer.query.filter(
            Customer.store_id == store_id,
            Customer.deleted_at.is_(None)
        ).order_by(Customer.name.asc()).all()

        result = []
        for customer in customers:
            data = serialize_model(customer)
            data['orders'] = orders_by_customer.get(customer.id, [])
            data['orderCount'] = len(data['orders'])
            result.append(data)
        return result
    return load


def _store_customers(records, store_id):
    bulk_insert(Customer, [
        row_from_payload(Customer, record, storeId=record.get('storeId') or store_id)
        for record in records
    ])
    return []


def get_customers(ctx, store_id):
    invalid = require_scope(store_id, 'Store ID')
    if invalid:
        return invalid

    orders = read_through(_orders_plan(ctx), store_id)
    if not orders.success:
        logger.warning(f"Orders unavailable for {store_id}, returning customers without orders")

    plan = ReadThrough(
        'customers',
        is_cached=lambda scope: has_rows(Customer, Customer.store_id, scope),
        fetch=ctx.remote.get_customers,
        store=_store_customers,
        load=_customers_loader(orders.success),
    )
    return read_through(plan, store_id)
