from datetime import datetime, timezone
from pos_edge import db

# Table and column names mirror the remote API payloads so that caches already
# deployed on workstations keep working; Python attributes stay snake_case.


def utcnow():
    """Naive UTC timestamp, the format every DateTime column is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Store(db.Model):
    __tablename__ = 'stores'

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    logo = db.Column(db.String(256))
    tax_rate = db.Column('taxRate', db.Float, default=0)
    organization_id = db.Column('organizationId', db.String(64), index=True, nullable=False)
    created_at = db.Column('createdAt', db.DateTime)
    updated_at = db.Column('updatedAt', db.DateTime)
    deleted_at = db.Column('deletedAt', db.DateTime)

    def __repr__(self):
        return f'<Store {self.name} (Org: {self.organization_id})>'


class Role(db.Model):
    __tablename__ = 'roles'

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    store_id = db.Column('storeId', db.String(64), db.ForeignKey('stores.id'), index=True)

    # Capability flags, stored as 0/1
    user_management = db.Column('userManagement', db.Boolean(), default=False)
    order_management = db.Column('orderManagement', db.Boolean(), default=False)
    inventory_management = db.Column('inventoryManagement', db.Boolean(), default=False)
    report_management = db.Column('reportManagement', db.Boolean(), default=False)
    menu_management = db.Column('menuManagement', db.Boolean(), default=False)
    setting_management = db.Column('settingManagement', db.Boolean(), default=False)
    role_management = db.Column('roleManagement', db.Boolean(), default=False)

    created_at = db.Column('createdAt', db.DateTime)
    updated_at = db.Column('updatedAt', db.DateTime)
    deleted_at = db.Column('deletedAt', db.DateTime)

    employees = db.relationship('Employee', backref='role', lazy='dynamic')

    def __repr__(self):
        return f'<Role {self.name} (Store: {self.store_id})>'


class Employee(db.Model):
    __tablename__ = 'employees'

    id = db.Column(db.String(64), primary_key=True)
    store_id = db.Column('storeId', db.String(64), db.ForeignKey('stores.id'), index=True)
    role_id = db.Column('roleId', db.String(64), db.ForeignKey('roles.id'))
    first_name = db.Column('firstName', db.String(64))
    last_name = db.Column('lastName', db.String(64))
    email = db.Column(db.String(128), index=True)
    phone = db.Column(db.String(32))
    address = db.Column(db.Text)
    avatar_path = db.Column('avatarPath', db.String(256))
    last_login = db.Column('lastLogin', db.DateTime)
    created_at = db.Column('createdAt', db.DateTime)
    updated_at = db.Column('updatedAt', db.DateTime)
    deleted_at = db.Column('deletedAt', db.DateTime)

    def get_full_name(self):
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def __repr__(self):
        return f'<Employee {self.email} (Store: {self.store_id})>'


class Category(db.Model):
    __tablename__ = 'categories'
    __table_args__ = (db.UniqueConstraint('storeId', 'name', name='uq_category_store_name'),)

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    store_id = db.Column('storeId', db.String(64), db.ForeignKey('stores.id'), index=True)
    status = db.Column(db.Boolean(), default=True, nullable=False)
    category_index = db.Column('categoryIndex', db.Integer, default=0)
    created_at = db.Column('createdAt', db.DateTime)
    updated_at = db.Column('updatedAt', db.DateTime)
    deleted_at = db.Column('deletedAt', db.DateTime)

    dishes = db.relationship('Dish', backref='category', lazy='dynamic')

    def __repr__(self):
        return f'<Category {self.name} (Store: {self.store_id})>'


class Dish(db.Model):
    __tablename__ = 'Dish'

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    rating = db.Column(db.Float)
    add_ons = db.Column('addOns', db.Text, default='[]')
    bowls = db.Column(db.Integer, default=1)
    persons = db.Column(db.Integer, default=1)
    price = db.Column(db.Float, nullable=False, default=0)
    image_url = db.Column('imageUrl', db.String(256))
    item_details = db.Column('itemDetails', db.Text)
    store_id = db.Column('storeId', db.String(64), db.ForeignKey('stores.id'), index=True)
    employee_id = db.Column('employeeId', db.String(64), db.ForeignKey('employees.id'))
    category_id = db.Column('categoryId', db.String(64), db.ForeignKey('categories.id'))
    created_at = db.Column('createdAt', db.DateTime)
    updated_at = db.Column('updatedAt', db.DateTime)
    deleted_at = db.Column('deletedAt', db.DateTime)

    addons = db.relationship('Addon', backref='dish', lazy='dynamic')
    inventory_links = db.relationship('DishInventory', backref='dish', lazy='dynamic')

    def __repr__(self):
        return f'<Dish {self.name} (Store: {self.store_id})>'


class Addon(db.Model):
    __tablename__ = 'addons'

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    price = db.Column(db.Float, default=0)
    dish_id = db.Column('dishId', db.String(64), db.ForeignKey('Dish.id'), index=True)
    store_id = db.Column('storeId', db.String(64), db.ForeignKey('stores.id'), index=True)
    created_at = db.Column('createdAt', db.DateTime)
    updated_at = db.Column('updatedAt', db.DateTime)
    deleted_at = db.Column('deletedAt', db.DateTime)

    def __repr__(self):
        return f'<Addon {self.name} (Dish: {self.dish_id})>'


class DishInventory(db.Model):
    __tablename__ = 'DishInventory'

    id = db.Column(db.String(64), primary_key=True)
    dish_id = db.Column('dishId', db.String(64), db.ForeignKey('Dish.id'), index=True)
    inventory_item_id = db.Column('inventoryItemId', db.String(64), db.ForeignKey('inventory.id'))
    quantity = db.Column(db.Float, default=1, nullable=False)
    default_selected = db.Column('defaultSelected', db.Boolean(), default=False)

    def __repr__(self):
        return f'<DishInventory {self.dish_id} -> {self.inventory_item_id}>'


class InventoryItem(db.Model):
    __tablename__ = 'inventory'

    id = db.Column(db.String(64), primary_key=True)
    store_id = db.Column('storeId', db.String(64), db.ForeignKey('stores.id'), index=True)
    name = db.Column(db.String(128), nullable=False)
    quantity = db.Column(db.Float, default=0)
    threshold = db.Column(db.Float)
    supplier = db.Column(db.String(128))
    created_by_id = db.Column('createdById', db.String(64), db.ForeignKey('employees.id'))
    created_at = db.Column('createdAt', db.DateTime)
    updated_at = db.Column('updatedAt', db.DateTime)
    deleted_at = db.Column('deletedAt', db.DateTime)

    def __repr__(self):
        return f'<InventoryItem {self.name} (Store: {self.store_id})>'


class Customer(db.Model):
    __tablename__ = 'customers'

    id = db.Column(db.String(64), primary_key=True)
    store_id = db.Column('storeId', db.String(64), db.ForeignKey('stores.id'), index=True)
    name = db.Column(db.String(128))
    phone = db.Column(db.String(32), index=True)
    email = db.Column(db.String(128))
    address = db.Column(db.Text)
    created_at = db.Column('createdAt', db.DateTime)
    updated_at = db.Column('updatedAt', db.DateTime)
    deleted_at = db.Column('deletedAt', db.DateTime)

    orders = db.relationship('Order', backref='customer', lazy='dynamic')

    def __repr__(self):
        return f'<Customer {self.name} (Store: {self.store_id})>'


class Order(db.Model):
    __tablename__ = 'orders'

    id = db.Column(db.String(64), primary_key=True)
    store_id = db.Column('storeId', db.String(64), db.ForeignKey('stores.id'), index=True)
    customer_id = db.Column('customerId', db.String(64), db.ForeignKey('customers.id'), index=True)
    table_id = db.Column('tableId', db.String(64), db.ForeignKey('tables.id'))
    order_type = db.Column('orderType', db.String(32))
    status = db.Column(db.String(32))
    delivery_status = db.Column('deliveryStatus', db.String(32))
    payment_status = db.Column('paymentStatus', db.String(32))
    amount = db.Column(db.Float, default=0)
    assigned_staff = db.Column('assignedStaff', db.String(64))
    notes = db.Column(db.Text)
    created_by = db.Column('createdBy', db.String(64), db.ForeignKey('employees.id'))
    created_at = db.Column('createdAt', db.DateTime)
    updated_at = db.Column('updatedAt', db.DateTime)
    deleted_at = db.Column('deletedAt', db.DateTime)

    items = db.relationship('OrderItem', backref='order', lazy='dynamic')

    def __repr__(self):
        return f'<Order {self.id} (Store: {self.store_id})>'


class OrderItem(db.Model):
    __tablename__ = 'order_items'

    id = db.Column(db.String(64), primary_key=True)
    order_id = db.Column('orderId', db.String(64), db.ForeignKey('orders.id'), index=True)
    dish_id = db.Column('dishId', db.String(64), db.ForeignKey('Dish.id'))
    quantity = db.Column(db.Integer, default=1)
    price = db.Column(db.Float, default=0)

    addons = db.relationship('OrderItemAddon', backref='order_item', lazy='dynamic')

    def __repr__(self):
        return f'<OrderItem {self.id} (Order: {self.order_id})>'


class OrderItemAddon(db.Model):
    __tablename__ = 'order_item_addons'

    id = db.Column(db.String(64), primary_key=True)
    order_item_id = db.Column('orderItemId', db.String(64), db.ForeignKey('order_items.id'), index=True)
    addon_id = db.Column('addonId', db.String(64), db.ForeignKey('addons.id'))
    # Snapshot at order time, never joined back to addons
    addon_name = db.Column('addonName', db.String(128))
    addon_price = db.Column('addonPrice', db.Float, default=0)

    def __repr__(self):
        return f'<OrderItemAddon {self.addon_name} (Item: {self.order_item_id})>'


class Table(db.Model):
    __tablename__ = 'tables'

    id = db.Column(db.String(64), primary_key=True)
    store_id = db.Column('storeId', db.String(64), db.ForeignKey('stores.id'), index=True)
    name = db.Column(db.String(64), nullable=False)
    chairs = db.Column(db.Integer, default=0)
    status = db.Column(db.String(32))
    customer_name = db.Column('customerName', db.String(128))
    reservation_name = db.Column('reservationName', db.String(128))
    reservation_time = db.Column('reservationTime', db.DateTime)
    merged_into_id = db.Column('mergedIntoId', db.String(64), db.ForeignKey('tables.id'))
    created_at = db.Column('createdAt', db.DateTime)
    updated_at = db.Column('updatedAt', db.DateTime)
    deleted_at = db.Column('deletedAt', db.DateTime)

    merged_tables = db.relationship('Table', backref=db.backref('merged_into', remote_side=[id]), lazy='dynamic')

    def __repr__(self):
        return f'<Table {self.name} (Store: {self.store_id})>'


class PendingSync(db.Model):
    """Remote mutation that still has to be replayed against the API."""
    __tablename__ = 'pending_sync'

    id = db.Column(db.Integer, primary_key=True)
    operation = db.Column(db.String(64), nullable=False)
    entity_id = db.Column('entityId', db.String(64), nullable=False)
    payload = db.Column(db.Text)
    attempts = db.Column(db.Integer, default=0, nullable=False)
    last_error = db.Column('lastError', db.Text)
    dead_at = db.Column('deadAt', db.DateTime, index=True)
    created_at = db.Column('createdAt', db.DateTime, default=utcnow)

    def __repr__(self):
        return f'<PendingSync {self.operation} {self.entity_id} (attempts: {self.attempts})>'
