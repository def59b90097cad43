"""Customers with their orders, order items and item add-on snapshots."""

from pos_edge import db
from pos_edge.handlers.customers import get_customers, get_orders
from pos_edge.models import Addon, Customer, Dish, Employee, Order, OrderItem, OrderItemAddon
from pos_edge.remote_api import RemoteApiError

ORDERS = [
    {
        'id': 'o1', 'storeId': 'S1', 'customerId': 'cu1', 'status': 'completed', 'amount': 20,
        'createdAt': '2024-04-01T10:00:00Z',
        'orderItems': [
            {'id': 'oi1', 'dishId': 'd1', 'quantity': 2, 'price': 9,
             'addons': [{'id': 'oia1', 'addonId': 'a1', 'addonName': 'Chili oil', 'addonPrice': 1}]},
        ],
    },
    {'id': 'o2', 'storeId': 'S1', 'status': 'pending', 'amount': 5, 'createdAt': '2024-04-02T10:00:00Z'},
]

CUSTOMERS = [
    {'id': 'cu1', 'storeId': 'S1', 'name': 'Maya', 'phone': '555-0100'},
    {'id': 'cu2', 'storeId': 'S1', 'name': 'Zed'},
]


class TestOrders:

    def test_cold_read_stores_inline_children(self, ctx, remote, add_rows):
        add_rows(Dish(id='d1', name='Ramen', store_id='S1'))
        remote.respond('get_orders', ORDERS)

        orders = get_orders(ctx, 'S1').data

        assert [o['id'] for o in orders] == ['o2', 'o1']
        items = orders[1]['items']
        assert items[0]['dishName'] == 'Ramen'
        assert items[0]['addons'][0]['addonName'] == 'Chili oil'
        assert orders[0]['items'] == []
        assert OrderItem.query.count() == 1

    def test_addon_snapshot_survives_addon_changes(self, ctx, remote, add_rows):
        add_rows(Addon(id='a1', name='Chili oil', price=1, store_id='S1'))
        remote.respond('get_orders', ORDERS)
        get_orders(ctx, 'S1')

        addon = db.session.get(Addon, 'a1')
        addon.name = 'Chili crisp'
        addon.price = 3
        add_rows(addon)

        snapshot = get_orders(ctx, 'S1').data[1]['items'][0]['addons'][0]
        assert (snapshot['addonName'], snapshot['addonPrice']) == ('Chili oil', 1)

    def test_nested_addon_source_is_flattened(self, ctx, remote):
        remote.respond('get_orders', [{
            'id': 'o1', 'storeId': 'S1',
            'orderItems': [{'id': 'oi1', 'addons': [
                {'id': 'oia1', 'addon': {'id': 'a9', 'name': 'Nori', 'price': 0.5}}
            ]}],
        }])
        get_orders(ctx, 'S1')
        snapshot = db.session.get(OrderItemAddon, 'oia1')
        assert (snapshot.addon_id, snapshot.addon_name, snapshot.addon_price) == ('a9', 'Nori', 0.5)

    def test_included_associations_are_stored(self, ctx, remote, add_rows):
        add_rows(Dish(id='d1', name='Ramen', store_id='S1'))
        remote.respond('get_orders', [{
            'id': 'o1', 'storeId': 'S1', 'notes': 'No onions',
            'OrderItems': [{
                'id': 'oi1', 'dishId': 'd1', 'quantity': 1, 'price': 9,
                'OrderItemAddons': [
                    {'id': 'oia1', 'addonId': 'a1', 'addonName': 'Eggs', 'addon': {'name': 'Egg'},
                     'addonPrice': 1.5},
                    {'id': 'oia2', 'addonId': 'a2', 'addonName': 'Corn', 'addonPrice': 0.5},
                ],
            }],
        }])

        order = get_orders(ctx, 'S1').data[0]

        assert order['notes'] == 'No onions'
        item = order['items'][0]
        assert item['dishName'] == 'Ramen'
        assert sorted(a['addonName'] for a in item['addons']) == ['Corn', 'Egg']
        assert OrderItemAddon.query.count() == 2

    def test_created_by_name(self, ctx, remote, add_rows):
        add_rows(Employee(id='e1', store_id='S1', first_name='Ana', last_name='Lima'))
        remote.respond('get_orders', [
            {'id': 'o1', 'storeId': 'S1', 'createdBy': 'e1', 'createdAt': '2024-04-02T10:00:00Z'},
            {'id': 'o2', 'storeId': 'S1', 'createdBy': 'e404', 'createdAt': '2024-04-01T10:00:00Z'},
        ])

        orders = {o['id']: o for o in get_orders(ctx, 'S1').data}

        assert orders['o1']['createdBy'] == 'e1'
        assert orders['o1']['createdByName'] == 'Ana Lima'
        assert orders['o2']['createdByName'] is None


class TestCustomers:

    def test_customers_carry_their_orders(self, ctx, remote):
        remote.respond('get_orders', ORDERS)
        remote.respond('get_customers', CUSTOMERS)

        customers = {c['id']: c for c in get_customers(ctx, 'S1').data}

        assert customers['cu1']['orderCount'] == 1
        assert customers['cu1']['orders'][0]['id'] == 'o1'
        assert customers['cu1']['orders'][0]['customerName'] == 'Maya'
        assert customers['cu2']['orders'] == []
        assert Customer.query.count() == 2
        assert Order.query.count() == 2

    def test_orders_failure_still_lists_customers(self, ctx, remote):
        remote.respond('get_orders', RemoteApiError('unreachable'))
        remote.respond('get_customers', CUSTOMERS)

        customers = get_customers(ctx, 'S1').data

        assert [c['orderCount'] for c in customers] == [0, 0]

    def test_second_read_is_local(self, ctx, remote):
        remote.respond('get_orders', ORDERS)
        remote.respond('get_customers', CUSTOMERS)
        first = get_customers(ctx, 'S1')
        second = get_customers(ctx, 'S1')
        assert first.data == second.data
        assert len(remote.calls_to('get_customers')) == 1
        assert len(remote.calls_to('get_orders')) == 1
