"""Inventory adapter registry — stock reservation release."""

from dispatch.settings import get_settings

_inventory_instance = None


def get_inventory():
    """Return the configured inventory adapter (singleton)."""
    global _inventory_instance
    if _inventory_instance is None:
        adapter = get_settings().inventory_adapter
        if adapter == "fake":
            from dispatch.inventory.fake_adapter import FakeInventory

            _inventory_instance = FakeInventory()
        else:
            raise ValueError(f"Unknown inventory adapter: {adapter}")
    return _inventory_instance


def reset_inventory():
    global _inventory_instance
    _inventory_instance = None
