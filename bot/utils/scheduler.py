import logging
import schedule
import threading

logger = logging.getLogger(__name__)


def run_on_schedule(event: callable, interval: int) -> tuple[callable, callable]:
    """Run a single event on a schedule."""
    return run_batch_on_schedule((event, interval))


def run_batch_on_schedule(*args) -> tuple[callable, callable]:
    """Run a batch of events on a schedule, each on its own thread."""
    scheduler_thread_pool: list[tuple[threading.Thread, callable, threading.Event]] = []

    for arg in args:
        event, interval = arg

        scheduler = schedule.Scheduler()
        scheduler.every(interval).seconds.do(event)

        # Create an event to control the scheduler thread
        stop_event = threading.Event()

        def run_schedule(scheduler=scheduler, stop_event=stop_event):
            while not stop_event.is_set():
                scheduler.run_pending()
                stop_event.wait(1)

        scheduler_thread = threading.Thread(target=run_schedule)
        scheduler_thread.daemon = True
        scheduler_thread.name = event.__name__
        scheduler_thread_pool.append((scheduler_thread, event, stop_event))

    def start_schedule():
        """Start the scheduler threads."""
        for scheduler_thread, event, stop_event in scheduler_thread_pool:
            if not scheduler_thread.is_alive():
                scheduler_thread.start()
                logger.info(f"Started scheduler thread {scheduler_thread.name}")

    def stop_schedule():
        """Stop the scheduler threads."""
        for scheduler_thread, event, stop_event in scheduler_thread_pool:
            stop_event.set()
            if scheduler_thread.is_alive():
                scheduler_thread.join()
            logger.info(f"Stopped scheduler thread {scheduler_thread.name}")

    return start_schedule, stop_schedule
