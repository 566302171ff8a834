import time

from dotenv import load_dotenv

load_dotenv()

from infrastructure.logging import configure_logging, get_module_logger  # noqa: E402
from infrastructure.services.providers import get_settings  # noqa: E402
from jobs import scheduled_tasks  # noqa: E402

logger = get_module_logger()


def main():
    """Start the membership scheduler and block until interrupted."""
    configure_logging()
    settings = get_settings()
    logger.info(
        "application_startup",
        domain=settings.membership.domain,
        production=settings.is_production,
    )

    poller = scheduled_tasks.init()
    # Pick up submissions that arrived while the service was down.
    poller.wake_if_changed()
    stop_run_continuously = scheduled_tasks.run_continuously()

    try:
        while True:
            time.sleep(60)
    except KeyboardInterrupt:
        logger.info("application_shutdown")
        stop_run_continuously.set()


if __name__ == "__main__":
    main()
