# Overview: Capability category constants for grouping related capabilities.


class PermissionCategory:
    """Capability categories for organization and UI display."""
    INVENTORY = "INVENTORY"
    SUPPLIERS = "SUPPLIERS"
    ORDERS = "ORDERS"
    REPORTS = "REPORTS"
    USERS = "USERS"
    SYSTEM = "SYSTEM"
