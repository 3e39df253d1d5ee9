# Overview: All capability definitions organized by category.
# Each capability is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "canManageInventory",
        "Manage Inventory",
        "Create and edit categories and products, restock products",
        PermissionCategory.INVENTORY,
    ),
    (
        "canDeleteItems",
        "Delete Items",
        "Delete categories, products, suppliers and orders",
        PermissionCategory.INVENTORY,
    ),
]


# -- SUPPLIERS --

SUPPLIER_PERMISSIONS = [
    (
        "canManageSuppliers",
        "Manage Suppliers",
        "Create and edit suppliers",
        PermissionCategory.SUPPLIERS,
    ),
]


# -- ORDERS --

ORDER_PERMISSIONS = [
    (
        "canManageOrders",
        "Manage Orders",
        "Create orders, edit them and change their status (completion deducts stock)",
        PermissionCategory.ORDERS,
    ),
]


# -- REPORTS --

REPORT_PERMISSIONS = [
    (
        "canViewReports",
        "View Reports",
        "Access the dashboard, sales and inventory valuation reports",
        PermissionCategory.REPORTS,
    ),
]


# -- USERS --

USER_PERMISSIONS = [
    (
        "canManageUsers",
        "Manage Users",
        "Change user roles",
        PermissionCategory.USERS,
    ),
]


# -- SYSTEM --

SYSTEM_PERMISSIONS = [
    (
        "canManageSettings",
        "Manage Settings",
        "Change application settings",
        PermissionCategory.SYSTEM,
    ),
]


# Combined list of all capabilities (preserves original ordering)
PERMISSION_DEFINITIONS = (
    INVENTORY_PERMISSIONS
    + SUPPLIER_PERMISSIONS
    + ORDER_PERMISSIONS
    + REPORT_PERMISSIONS
    + USER_PERMISSIONS
    + SYSTEM_PERMISSIONS
)
