"""Stores, inventory and tables."""

from pos_edge import db
from pos_edge.handlers.inventory import get_inventory
from pos_edge.handlers.stores import get_stores
from pos_edge.handlers.tables import get_tables
from pos_edge.models import Employee, Store, Table
from pos_edge.results import FailureKind


class TestStores:

    def test_scoped_by_organization(self, ctx, remote):
        remote.respond('get_stores', [
            {'id': 'S1', 'name': 'Downtown'},
            {'id': 'S2', 'name': 'Airport', 'taxRate': 5},
        ])

        stores = get_stores(ctx, 'O1').data

        assert [s['name'] for s in stores] == ['Airport', 'Downtown']
        assert {s['organizationId'] for s in stores} == {'O1'}
        assert remote.calls_to('get_stores') == [['O1']]
        assert Store.query.count() == 2

    def test_missing_organization(self, ctx, remote):
        result = get_stores(ctx, None)
        assert result.failure is FailureKind.VALIDATION
        assert result.message == 'Organization ID is required'
        assert remote.calls == []


class TestInventory:

    def test_created_by_name(self, ctx, remote, add_rows):
        add_rows(Employee(id='e1', store_id='S1', first_name='Ana', last_name='Lima'))
        remote.respond('get_inventory', [
            {'id': 'i1', 'name': 'Noodles', 'quantity': 40, 'createdById': 'e1'},
            {'id': 'i2', 'name': 'Eggs', 'quantity': 12},
        ])

        items = {i['id']: i for i in get_inventory(ctx, 'S1').data}

        assert items['i1']['createdBy'] == 'Ana Lima'
        assert items['i2']['createdBy'] is None
        assert items['i2']['storeId'] == 'S1'


class TestTables:

    def test_merged_table_ids(self, ctx, remote):
        remote.respond('get_tables', [
            {'id': 't1', 'name': 'T1', 'chairs': 4},
            {'id': 't2', 'name': 'T2', 'mergedIntoId': 't1'},
            {'id': 't3', 'name': 'T3', 'mergedIntoId': 't1'},
            {'id': 't4', 'name': 'T4', 'reservationTime': '2024-05-01T19:30:00Z'},
        ])

        tables = {t['id']: t for t in get_tables(ctx, 'S1').data}

        assert sorted(tables['t1']['mergedTableIds']) == ['t2', 't3']
        assert tables['t2']['mergedTableIds'] == []
        assert tables['t4']['reservationTime'] == '2024-05-01T19:30:00+00:00'
        assert db.session.get(Table, 't2').merged_into.id == 't1'

    def test_hit_is_local(self, ctx, remote, add_rows):
        add_rows(Table(id='t1', name='T1', store_id='S1'))
        assert [t['id'] for t in get_tables(ctx, 'S1').data] == ['t1']
        assert remote.calls == []
