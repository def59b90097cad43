import logging
import re

import pytz

from pos_edge import db
from pos_edge.handlers import is_blank, require_scope, has_rows
from pos_edge.models import Employee, Role, Store
from pos_edge.remote_api import RemoteApiError
from pos_edge.results import Result, FailureKind
from pos_edge.sync_manager import (
    ReadThrough, read_through, bulk_insert, bulk_upsert, row_from_payload, serialize_model
)

logger = logging.getLogger(__name__)

PIN_PATTERN = re.compile(r'^\d{4,6}$')
DISPLAY_FORMAT = '%Y-%m-%d %H:%M:%S'


def _get_timezone(name):
    try:
        return pytz.timezone(name or 'UTC')
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown timezone {name}, falling back to UTC")
        return pytz.UTC


def format_local_time(utc_datetime, tz_name):
    """Render a naive UTC timestamp in the workstation timezone."""
    if not utc_datetime:
        return None
    if utc_datetime.tzinfo is None:
        utc_datetime = pytz.UTC.localize(utc_datetime)
    return utc_datetime.astimezone(_get_timezone(tz_name)).strftime(DISPLAY_FORMAT)


# ============================================================================
# ROLES
# ============================================================================

def _load_roles(store_id):
    roles = Role.query.filter(
        Role.store_id == store_id,
        Role.deleted_at.is_(None)
    ).order_by(Role.name.asc()).all()
    return [serialize_model(role) for role in roles]


def _role_rows(records, store_id):
    return [row_from_payload(Role, record, storeId=record.get('storeId') or store_id)
            for record in records]


def _store_roles(records, store_id):
    bulk_insert(Role, _role_rows(records, store_id))
    return []


def _roles_plan(ctx):
    return ReadThrough(
        'roles',
        is_cached=lambda store_id: has_rows(Role, Role.store_id, store_id),
        fetch=ctx.remote.get_roles,
        store=_store_roles,
        load=_load_roles,
    )


def get_roles(ctx, store_id):
    invalid = require_scope(store_id, 'Store ID')
    if invalid:
        return invalid
    return read_through(_roles_plan(ctx), store_id)


# ============================================================================
# EMPLOYEES
# ============================================================================

def _employee_rows(store_id):
    return db.session.query(Employee, Role.name).outerjoin(
        Role, Employee.role_id == Role.id
    ).filter(
        Employee.store_id == store_id,
        Employee.deleted_at.is_(None)
    ).order_by(Employee.first_name.asc(), Employee.last_name.asc()).all()


def _load_employees(store_id):
    employees = []
    for employee, role_name in _employee_rows(store_id):
        data = serialize_model(employee)
        data['roleName'] = role_name
        data['name'] = employee.get_full_name()
        employees.append(data)
    return employees


def _display_loader(tz_name):
    def load(store_id):
        employees = []
        for employee, role_name in _employee_rows(store_id):
            employees.append({
                'id': employee.id,
                'name': employee.get_full_name(),
                'role': role_name or 'Unknown Role',
                'image': employee.avatar_path,
                'isAdmin': (role_name or '').lower() == 'admin',
                'storeId': employee.store_id,
                'email': employee.email,
                'phone': employee.phone,
                'address': employee.address,
                'createdAt': format_local_time(employee.created_at, tz_name),
                'updatedAt': format_local_time(employee.updated_at, tz_name),
                'deletedAt': format_local_time(employee.deleted_at, tz_name),
                'lastLogin': format_local_time(employee.last_login, tz_name),
            })
        return employees
    return load


def _employee_payload_rows(records, store_id):
    return [row_from_payload(Employee, record, storeId=record.get('storeId') or store_id)
            for record in records]


def _store_employees(records, store_id):
    bulk_insert(Employee, _employee_payload_rows(records, store_id))
    return []


def _employees_plan(ctx, load):
    return ReadThrough(
        'employees',
        is_cached=lambda store_id: has_rows(Employee, Employee.store_id, store_id),
        fetch=ctx.remote.get_employees,
        store=_store_employees,
        load=load,
    )


def get_employees(ctx, store_id):
    invalid = require_scope(store_id, 'Store ID')
    if invalid:
        return invalid
    return read_through(_employees_plan(ctx, _load_employees), store_id)


def get_employees_by_store(ctx, store_id):
    """Employees in the shape the staff screen renders (role name joined in)."""
    invalid = require_scope(store_id, 'Store ID')
    if invalid:
        return invalid

    roles = read_through(_roles_plan(ctx), store_id)
    if not roles.success:
        logger.error(f"Roles unavailable for {store_id}, cannot list employees: {roles.message}")
        return Result.fail(roles.failure, roles.message, data=[])

    return read_through(_employees_plan(ctx, _display_loader(ctx.timezone)), store_id)


def sync_employees(ctx, store_id):
    """Force a refresh of roles and employees from the remote API."""
    invalid = require_scope(store_id, 'Store ID')
    if invalid:
        return Result.fail(FailureKind.VALIDATION, invalid.message)

    if not ctx.probe.is_online():
        return Result.fail(FailureKind.REMOTE_UNREACHABLE, 'Cannot sync employees while offline')

    try:
        roles = ctx.remote.get_roles(store_id)
        employees = ctx.remote.get_employees(store_id)
    except RemoteApiError as e:
        logger.error(f"Employee sync failed for {store_id}: {e.message}")
        return Result.fail(FailureKind.REMOTE_UNREACHABLE, e.message)

    if not isinstance(roles, list) or not isinstance(employees, list):
        logger.error(f"Invalid employee sync response for {store_id}")
        return Result.fail(FailureKind.MALFORMED_REMOTE, 'Invalid response from server')

    try:
        bulk_upsert(Role, _role_rows(roles, store_id))
        bulk_upsert(Employee, _employee_payload_rows(employees, store_id))
    except Exception as e:
        logger.error(f"Could not store synced employees for {store_id}: {e}")
        return Result.fail(FailureKind.STORAGE, 'Failed to save employees locally')

    logger.info(f"Synced {len(roles)} roles and {len(employees)} employees for {store_id}")
    return Result.ok({'roles': len(roles), 'employees': len(employees)},
                     message=f'Synced {len(employees)} employees')


# ============================================================================
# LOGIN / SESSION
# ============================================================================

def employee_login(ctx, credentials):
    credentials = credentials if isinstance(credentials, dict) else {}
    email = credentials.get('email')
    pin = credentials.get('pin')
    pin = str(pin) if pin is not None else ''

    if is_blank(email) or not pin:
        return Result.fail(FailureKind.VALIDATION, 'Email and PIN are required')
    if not PIN_PATTERN.match(pin):
        return Result.fail(FailureKind.VALIDATION, 'PIN must be 4 to 6 digits')

    try:
        employee = ctx.remote.login(email.strip(), pin)
    except RemoteApiError as e:
        logger.error(f"Employee login failed for {email}: {e.message}")
        message = e.payload.get('message') if isinstance(e.payload, dict) else None
        kind = FailureKind.REJECTED if e.status_code else FailureKind.REMOTE_UNREACHABLE
        return Result.fail(kind, message or 'An error occurred during login.')

    if not employee:
        return Result.fail(FailureKind.MALFORMED_REMOTE, 'An error occurred during login.')

    ctx.session.set(employee)
    logger.info(f"Employee {email} logged in")
    return Result.ok(employee, message='Login successful')


def logout_employee(ctx):
    ctx.session.clear()
    return Result.ok(message='Logged out successfully')


def _session_employee(ctx):
    blob = ctx.session.get()
    if isinstance(blob, dict) and isinstance(blob.get('employee'), dict):
        return blob['employee']
    return blob


def get_employee_data(ctx):
    employee = ctx.session.get()
    if not employee:
        return Result.fail(FailureKind.NOT_AUTHENTICATED, 'No employee logged in')
    return Result.ok(employee)


def get_profile(ctx, employee_id):
    if is_blank(employee_id):
        return Result.fail(FailureKind.VALIDATION, 'Employee ID is required')

    row = db.session.query(Employee, Role.name, Store.name).outerjoin(
        Role, Employee.role_id == Role.id
    ).outerjoin(
        Store, Employee.store_id == Store.id
    ).filter(Employee.id == employee_id).first()

    if row is not None:
        employee, role_name, store_name = row
        profile = serialize_model(employee)
        profile.update({
            'name': employee.get_full_name(),
            'roleName': role_name,
            'storeName': store_name,
            'isAdmin': (role_name or '').lower() == 'admin',
        })
        return Result.ok(profile)

    session_employee = _session_employee(ctx)
    if isinstance(session_employee, dict) and session_employee.get('id') == employee_id:
        return Result.ok(session_employee)

    return Result.fail(FailureKind.LOCAL_MISS, 'Employee not found locally')
