# Overview: Default capability grants per role.

DEFAULT_ROLE_PERMISSIONS = {
    "admin": [
        # Admin gets ALL capabilities
        "canManageUsers",
        "canManageInventory",
        "canManageSuppliers",
        "canManageOrders",
        "canViewReports",
        "canManageSettings",
        "canDeleteItems",
    ],
    "manager": [
        "canManageInventory",
        "canManageSuppliers",
        "canManageOrders",
        "canViewReports",
        "canDeleteItems",
    ],
    "staff": [
        "canManageInventory",
        "canManageOrders",
    ],
}

DEFAULT_ROLE = "staff"
