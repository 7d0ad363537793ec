"""
Helpers shared by Celery tasks.
"""

import asyncio
import concurrent.futures


def run_async(coro):
    """
    Run async coroutine, handling both event loop and no event loop scenarios.

    - Production (Celery worker with no event loop) - uses asyncio.run()
    - Tests / eager mode (an event loop is already running) - runs the
      coroutine on a fresh loop in a worker thread
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
        future = executor.submit(asyncio.run, coro)
        return future.result()
