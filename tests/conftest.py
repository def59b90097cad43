"""Pytest configuration and fixtures."""

import pytest

from config import TestingConfig
from pos_edge import create_app, db, socketio
from pos_edge.session_store import MemorySessionStore


class FakeRemote:
    """Stands in for RemoteApiClient; records every call.

    ``responses`` maps a method name to the value it returns. A value that is
    an exception is raised instead, and a callable is called with the method's
    arguments.
    """

    def __init__(self):
        self.responses = {}
        self.calls = []

    def respond(self, method, value):
        self.responses[method] = value

    def calls_to(self, method):
        return [args for name, *args in self.calls if name == method]

    def _answer(self, method, default, *args):
        self.calls.append((method, *args))
        value = self.responses.get(method, default)
        if callable(value) and not isinstance(value, type):
            value = value(*args)
        if isinstance(value, Exception):
            raise value
        return value

    def get_stores(self, organization_id):
        return self._answer('get_stores', [], organization_id)

    def get_roles(self, store_id):
        return self._answer('get_roles', [], store_id)

    def get_employees(self, store_id):
        return self._answer('get_employees', [], store_id)

    def login(self, email, pin):
        return self._answer('login', None, email, pin)

    def get_categories(self, store_id):
        return self._answer('get_categories', [], store_id)

    def delete_category(self, category_id):
        return self._answer('delete_category', {}, category_id)

    def update_category_status(self, category_id, status):
        return self._answer('update_category_status', {}, category_id, status)

    def get_inventory(self, store_id):
        return self._answer('get_inventory', [], store_id)

    def get_dishes(self, store_id):
        return self._answer('get_dishes', [], store_id)

    def delete_dish(self, dish_id):
        return self._answer('delete_dish', {}, dish_id)

    def get_dish_inventory(self, dish_id):
        return self._answer('get_dish_inventory', [], dish_id)

    def get_dish_addons(self, dish_id):
        return self._answer('get_dish_addons', [], dish_id)

    def get_store_addons(self, store_id):
        return self._answer('get_store_addons', [], store_id)

    def delete_addon(self, addon_id):
        return self._answer('delete_addon', {}, addon_id)

    def get_customers(self, store_id):
        return self._answer('get_customers', [], store_id)

    def get_orders(self, store_id):
        return self._answer('get_orders', [], store_id)

    def get_tables(self, store_id):
        return self._answer('get_tables', [], store_id)


class FakeProbe:

    def __init__(self, online=True):
        self.online = online
        self.checks = 0

    def is_online(self):
        self.checks += 1
        return self.online


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def probe():
    return FakeProbe()


@pytest.fixture
def session_store():
    return MemorySessionStore()


@pytest.fixture
def app(remote, probe, session_store):
    """Application on a fresh in-memory cache, with an app context pushed."""
    app = create_app(TestingConfig, remote=remote, probe=probe, session_store=session_store)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    return app.extensions['pos_edge']


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def socket_client(app):
    client = socketio.test_client(app)
    yield client
    if client.is_connected():
        client.disconnect()


@pytest.fixture
def add_rows(app):
    """Insert model instances straight into the cache."""
    def add(*rows):
        db.session.add_all(rows)
        db.session.commit()
        return rows
    return add
