import threading
import time
from typing import Callable, Optional

import schedule

from infrastructure.logging import get_module_logger
from infrastructure.persistence.property_store import PropertyStore
from infrastructure.services.providers import get_property_store, get_settings
from modules.membership import (
    PAYMENT_CHECK_HANDLER,
    MembershipService,
    PollingBackoffController,
    ScheduleTriggerScheduler,
    create_membership_service,
)

logger = get_module_logger()


def safe_run(job: Callable) -> Callable:
    def wrapper(*args, **kwargs):
        try:
            job(*args, **kwargs)
        except Exception as e:  # pylint: disable=broad-except
            logger.error(
                "scheduled_job_failed",
                job=getattr(job, "__name__", repr(job)),
                error=str(e),
            )

    return wrapper


def init(
    service: Optional[MembershipService] = None,
    scheduler: Optional[schedule.Scheduler] = None,
    properties: Optional[PropertyStore] = None,
) -> PollingBackoffController:
    """Register the membership jobs and return the payment poller."""
    logger.info("scheduled_tasks_initializing")
    settings = get_settings().membership
    scheduler = scheduler or schedule.default_scheduler
    service = service or create_membership_service()
    properties = properties or get_property_store()

    handlers = {}
    triggers = ScheduleTriggerScheduler(scheduler, handlers)
    poller = service.payment_poller(properties, triggers)
    handlers[PAYMENT_CHECK_HANDLER] = safe_run(poller.check)

    scheduler.every().day.at(settings.expiry_check_time).do(
        safe_run(service.check_expiries)
    )
    scheduler.every(settings.submission_watch_minutes).minutes.do(
        safe_run(poller.wake_if_changed)
    )
    scheduler.every(5).minutes.do(safe_run(scheduler_heartbeat))
    return poller


def scheduler_heartbeat():
    logger.info("scheduler_heartbeat", at=time.ctime())


def run_continuously(interval=1, scheduler: Optional[schedule.Scheduler] = None):
    """Continuously run, while executing pending jobs at each
    elapsed time interval.
    @return cease_continuous_run: threading. Event which can
    be set to cease continuous run. Missed jobs are not run
    repeatedly: a job due every minute runs once per interval
    even when the interval is an hour.
    """
    scheduler = scheduler or schedule.default_scheduler
    cease_continuous_run = threading.Event()

    class ScheduleThread(threading.Thread):
        @classmethod
        def run(cls):
            while not cease_continuous_run.is_set():
                scheduler.run_pending()
                time.sleep(interval)

    continuous_thread = ScheduleThread()
    continuous_thread.start()
    return cease_continuous_run
