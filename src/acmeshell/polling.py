"""Status polling with a bounded number of tries."""
import logging
import threading
import time
from typing import Callable
from typing import Container
from typing import NamedTuple
from typing import Optional

from acmeshell import constants
from acmeshell import errors

logger = logging.getLogger(__name__)


class PollResult(NamedTuple):
    """Outcome of `poll_until`.

    :ivar bool matched: Whether the target status was observed.
    :ivar str status: Last status fetched, ``None`` if polling was
        cancelled before the first fetch.
    :ivar int tries: Number of fetches made.
    :ivar bool cancelled: Whether polling stopped because it was cancelled.

    """
    matched: bool
    status: Optional[str]
    tries: int
    cancelled: bool = False


def poll_until(fetch_status: Callable[[], str], target_status: str,
               max_tries: int = constants.DEFAULT_POLL_TRIES,
               interval: float = constants.DEFAULT_POLL_INTERVAL,
               cancel: Optional[threading.Event] = None,
               final_statuses: Container[str] = ()) -> PollResult:
    """Fetch a status until it equals ``target_status``.

    The first fetch happens immediately; each further fetch, up to
    ``max_tries`` in total, is preceded by a sleep of ``interval`` seconds.
    Running out of tries is not an error, the result just says the target
    was not reached. Polling also stops early, unmatched, once a status in
    ``final_statuses`` other than the target is seen. Errors raised by
    ``fetch_status`` propagate.

    :param fetch_status: Returns the current status.
    :param str target_status: Status to wait for.
    :param int max_tries: Maximum number of fetches, at least 1.
    :param float interval: Seconds to wait between fetches.
    :param threading.Event cancel: Set it to stop polling, interrupting
        any sleep in progress.
    :param final_statuses: Statuses that can never change to the target.

    :raises .ConfigurationError: if ``max_tries`` is less than 1.

    """
    if max_tries < 1:
        raise errors.ConfigurationError(
            f'max_tries must be at least 1, got {max_tries}')
    if interval < 0:
        raise errors.ConfigurationError(
            f'interval must not be negative, got {interval}')

    status: Optional[str] = None
    for tries in range(1, max_tries + 1):
        if tries > 1 and _wait(interval, cancel):
            logger.debug('Polling cancelled after %d tries', tries - 1)
            return PollResult(False, status, tries - 1, cancelled=True)
        if cancel is not None and cancel.is_set():
            return PollResult(False, status, tries - 1, cancelled=True)
        status = fetch_status()
        logger.debug('Poll %d/%d: status %r, waiting for %r',
                     tries, max_tries, status, target_status)
        if status == target_status:
            return PollResult(True, status, tries)
        if status in final_statuses:
            logger.debug('Status %r is final, giving up on %r', status, target_status)
            return PollResult(False, status, tries)
    return PollResult(False, status, max_tries)


def _wait(interval: float, cancel: Optional[threading.Event]) -> bool:
    """Sleep for ``interval``; return whether polling was cancelled."""
    if cancel is None:
        time.sleep(interval)
        return False
    return cancel.wait(interval)
