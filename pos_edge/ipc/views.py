"""
Process-boundary operations.

Each operation is reachable two ways:
- Socket.IO event ``<name>``; the acknowledgement carries the return value
- ``POST /ipc/<name>`` with the argument as the JSON body

Read operations return a plain list, everything else a
``{success, message, id?, data?}`` envelope. Nothing raises to the caller.
"""

import logging

from flask import request, jsonify

from pos_edge import db, socketio
from pos_edge.ipc import ipc
from pos_edge.handlers import stores, staff, menu, inventory, customers, tables, outbox
from pos_edge.results import Result, FailureKind
from pos_edge.sync_manager import get_sync_context

logger = logging.getLogger(__name__)

COLLECTION = 'collection'
ENVELOPE = 'envelope'


# ============================================================================
# OPERATION REGISTRY - name -> (handler, rendering, takes argument)
# ============================================================================

OPERATIONS = {
    'getStores': (stores.get_stores, COLLECTION, True),
    'getEmployeesByStore': (staff.get_employees_by_store, COLLECTION, True),
    'getEmployees': (staff.get_employees, COLLECTION, True),
    'getRoles': (staff.get_roles, COLLECTION, True),
    'getCategories': (menu.get_categories, COLLECTION, True),
    'getInventory': (inventory.get_inventory, COLLECTION, True),
    'getDishes': (menu.get_dishes, COLLECTION, True),
    'getAddonsByStoreId': (menu.get_addons_by_store, COLLECTION, True),
    'getCustomers': (customers.get_customers, COLLECTION, True),
    'getOrders': (customers.get_orders, COLLECTION, True),
    'getProfile': (staff.get_profile, ENVELOPE, True),
    'getTables': (tables.get_tables, COLLECTION, True),
    'getEmployeeData': (staff.get_employee_data, ENVELOPE, False),
    'employeeLogin': (staff.employee_login, ENVELOPE, True),
    'logoutEmployee': (staff.logout_employee, ENVELOPE, False),
    'deleteCategory': (menu.delete_category, ENVELOPE, True),
    'updateCategoryStatus': (menu.update_category_status, ENVELOPE, True),
    'deleteDish': (menu.delete_dish, ENVELOPE, True),
    'deleteAddons': (menu.delete_addon, ENVELOPE, True),
    'syncEmployees': (staff.sync_employees, ENVELOPE, True),
    'flushPendingSync': (outbox.flush_pending_sync, ENVELOPE, False),
    'getSyncStatus': (outbox.get_sync_status, ENVELOPE, False),
}


def dispatch(name, arg=None):
    """Run one operation and render its result for the caller."""
    handler, rendering, takes_arg = OPERATIONS[name]
    try:
        ctx = get_sync_context()
        result = handler(ctx, arg) if takes_arg else handler(ctx)
    except Exception as e:
        db.session.rollback()
        logger.exception(f"Operation {name} failed: {e}")
        result = Result.fail(FailureKind.STORAGE, f'Error running {name}')

    if rendering == COLLECTION:
        if not result.success:
            logger.warning(f"{name} returned no data: {result.message}")
        return result.collection()
    return result.envelope()


def _unknown_operation(name):
    return {'success': False, 'message': f'Unknown operation: {name}'}


# ============================================================================
# HTTP
# ============================================================================

@ipc.route('/<operation>', methods=['POST'])
def invoke(operation):
    if operation not in OPERATIONS:
        return jsonify(_unknown_operation(operation)), 404
    return jsonify(dispatch(operation, request.get_json(silent=True)))


@ipc.route('/operations', methods=['GET'])
def list_operations():
    return jsonify({'success': True, 'data': sorted(OPERATIONS.keys())})


# ============================================================================
# SOCKET.IO
# ============================================================================

def _event_handler(name):
    def handler(arg=None):
        return dispatch(name, arg)
    handler.__name__ = f'on_{name}'
    return handler


for _name in OPERATIONS:
    socketio.on_event(_name, _event_handler(_name))


@socketio.on('*')
def unknown_event(event, *args):
    logger.warning(f"Unknown Socket.IO event: {event}")
    return _unknown_operation(event)
