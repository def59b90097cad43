"""Dishes with their add-ons and inventory links, and store add-ons."""

from pos_edge.handlers.menu import get_dishes, delete_dish, get_addons_by_store, delete_addon
from pos_edge.models import Addon, Category, Dish, DishInventory, Employee, InventoryItem
from pos_edge.remote_api import RemoteApiError
from pos_edge.results import FailureKind

DISHES = [
    {'id': 'd1', 'name': 'Ramen', 'price': 12.5, 'storeId': 'S1', 'categoryId': 'c1',
     'employeeId': 'e1', 'addOns': ['extra egg']},
    {'id': 'd2', 'name': 'Gyoza', 'price': 6, 'storeId': 'S1'},
]


def _seed_references(add_rows):
    add_rows(Category(id='c1', name='Mains', store_id='S1'),
             Employee(id='e1', store_id='S1', first_name='Ana', last_name='Lima'),
             InventoryItem(id='i1', store_id='S1', name='Noodles'))


class TestGetDishes:

    def test_cold_read_fetches_children_per_dish(self, ctx, remote, add_rows):
        _seed_references(add_rows)
        remote.respond('get_dishes', DISHES)
        remote.respond('get_dish_inventory', lambda dish_id: [
            {'id': f'di-{dish_id}', 'inventoryItemId': 'i1', 'quantity': '0'}
        ] if dish_id == 'd1' else [])
        remote.respond('get_dish_addons', lambda dish_id: [
            {'id': f'a-{dish_id}', 'name': 'Chili oil', 'price': 1}
        ])

        result = get_dishes(ctx, 'S1')

        assert result.success and not result.partial
        dishes = {d['id']: d for d in result.data}
        ramen = dishes['d1']
        assert ramen['categoryName'] == 'Mains'
        assert ramen['createdBy'] == 'Ana Lima'
        assert ramen['addOns'] == ['extra egg']
        assert [a['id'] for a in ramen['addons']] == ['a-d1']
        assert ramen['inventory'][0]['name'] == 'Noodles'
        assert ramen['inventory'][0]['quantity'] == 1
        assert dishes['d2']['createdBy'] is None
        assert dishes['d2']['categoryName'] is None
        assert dishes['d2']['inventory'] == []
        assert sorted(remote.calls_to('get_dish_inventory')) == [['d1'], ['d2']]
        assert sorted(remote.calls_to('get_dish_addons')) == [['d1'], ['d2']]

    def test_child_failures_do_not_fail_the_read(self, ctx, remote):
        remote.respond('get_dishes', DISHES)
        remote.respond('get_dish_inventory', RemoteApiError('timed out'))
        remote.respond('get_dish_addons', lambda dish_id: [
            {'id': 'a1', 'name': 'Chili oil'},
            {'id': 'a2'},
        ])

        result = get_dishes(ctx, 'S1')

        assert result.success
        assert result.failure is FailureKind.PARTIAL_INSERT
        assert Dish.query.count() == 2
        assert DishInventory.query.count() == 0
        assert [a.id for a in Addon.query.all()] == ['a1']
        assert any('dishInventory/d1' in e for e in result.errors)
        assert any("'a2'" in e for e in result.errors)

    def test_cached_dishes_skip_children(self, ctx, remote, add_rows):
        add_rows(Dish(id='d1', name='Ramen', store_id='S1'))
        result = get_dishes(ctx, 'S1')
        assert [d['id'] for d in result.data] == ['d1']
        assert remote.calls == []


class TestDeleteDish:

    def test_delete(self, ctx, remote, add_rows):
        add_rows(Dish(id='d1', name='Ramen', store_id='S1'))
        result = delete_dish(ctx, 'd1')
        assert result.message == 'Dish deleted successfully'
        assert remote.calls_to('delete_dish') == [['d1']]
        assert get_dishes(ctx, 'S1').data == []

    def test_not_found(self, ctx, remote):
        assert delete_dish(ctx, 'd9').message == 'Dish not found locally'
        assert remote.calls == []


class TestStoreAddons:

    def test_cold_read_adds_dish_name(self, ctx, remote, add_rows):
        add_rows(Dish(id='d1', name='Ramen', store_id='S1'))
        remote.respond('get_store_addons', [
            {'id': 'a1', 'name': 'Chili oil', 'dishId': 'd1', 'storeId': 'S1'},
            {'id': 'a2', 'name': 'Nori', 'storeId': 'S1'},
        ])

        addons = {a['id']: a for a in get_addons_by_store(ctx, 'S1').data}

        assert addons['a1']['dishName'] == 'Ramen'
        assert addons['a2']['dishName'] is None

    def test_deleted_addons_are_hidden(self, ctx, remote, add_rows):
        add_rows(Addon(id='a1', name='Chili oil', store_id='S1'),
                 Addon(id='a2', name='Nori', store_id='S1'))

        result = delete_addon(ctx, 'a1')

        assert result.message == 'Addon deleted successfully'
        assert [a['id'] for a in get_addons_by_store(ctx, 'S1').data] == ['a2']
        assert remote.calls_to('delete_addon') == [['a1']]

    def test_delete_validation(self, ctx):
        assert delete_addon(ctx, '  ').message == 'Addon ID is required'
