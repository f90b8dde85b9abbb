"""Notifier adapter registry — pluggable push/SMS integration."""

from dispatch.settings import get_settings

_notifier_instance = None


def get_notifier():
    """Return the configured notifier adapter (singleton).

    Uses FakeNotifier by default; select another adapter with
    DISPATCH_NOTIFIER_ADAPTER.
    """
    global _notifier_instance
    if _notifier_instance is None:
        adapter = get_settings().notifier_adapter
        if adapter == "fake":
            from dispatch.notifier.fake_adapter import FakeNotifier

            _notifier_instance = FakeNotifier()
        else:
            raise ValueError(f"Unknown notifier adapter: {adapter}")
    return _notifier_instance


def reset_notifier():
    """Reset the notifier singleton (useful for testing)."""
    global _notifier_instance
    _notifier_instance = None
