"""Default reconciliation scheduler for the running application.

Schedulers are plain objects and tests build their own; this registry only
holds the one the web application starts and the exposed operations use
when no scheduler is passed in.
"""

_scheduler_instance = None


def get_scheduler():
    """Return the application's scheduler, creating an unstarted one on first use."""
    global _scheduler_instance
    if _scheduler_instance is None:
        from dispatch.assignment.scheduler import ReconciliationScheduler
        from dispatch.domain import dispatch

        _scheduler_instance = ReconciliationScheduler(domain=dispatch)
    return _scheduler_instance


def set_scheduler(scheduler) -> None:
    global _scheduler_instance
    _scheduler_instance = scheduler


def reset_scheduler():
    """Stop and forget the application's scheduler (useful for testing)."""
    global _scheduler_instance
    if _scheduler_instance is not None:
        _scheduler_instance.stop()
    _scheduler_instance = None
