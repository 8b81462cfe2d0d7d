"""Confirmation service — what the purchaser sees after the Stripe redirect.

The browser redirect and the checkout.session.completed webhook race each
other with no ordering guarantee, and they never talk to each other: the
webhook writes program_access, this flow reads it. The flow waits a grace
period and checks once; there is no retry loop. If the grant is not there
yet the purchaser gets a clear message and a reload starts a fresh flow.

State machine (success, already_has_access and error are terminal):

    entry -> (no program_id)          -> error
    entry -> (has_access)             -> already_has_access
    entry -> loading -> grace period -> status check
    status check True                 -> success
    status check False / raised       -> error
    no answer within timeout          -> error

The grace period and status check run on a daemon thread. A check still
running at the timeout is abandoned: its answer is never read and it does
not delay interpreter shutdown.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)

LOADING = "loading"
SUCCESS = "success"
ALREADY_HAS_ACCESS = "already_has_access"
ERROR = "error"

TERMINAL_STATES = (SUCCESS, ALREADY_HAS_ACCESS, ERROR)

MISSING_PROGRAM_MESSAGE = "Missing program ID, so the payment status cannot be checked."
NOT_FOUND_MESSAGE = (
    "We could not find your payment yet. The payment confirmation may still "
    "be processing, so try again in a moment. If you were charged, please "
    "contact support."
)
TIMEOUT_MESSAGE = (
    "Checking your payment took too long. The payment confirmation may still "
    "be processing, so reload this page to try again."
)
CHECK_FAILED_MESSAGE = (
    "Could not check the payment status ({reason}). Reload this page to try "
    "again, and contact support if you were charged."
)


@dataclass
class ConfirmationResult:
    state: str
    message: str = ""

    @property
    def is_terminal(self):
        return self.state in TERMINAL_STATES


class ConfirmationFlow:
    """One confirmation attempt per page view.

    Args:
        has_access:    callable(program_id) -> bool, the entry check.
        check_status:  callable(program_id, session_id) -> bool, the
                       status check made once after the grace period.
        grace_period:  seconds to wait before the status check.
        timeout:       hard upper bound (seconds) on the grace period plus
                       status check together.
        sleep:         injectable for tests.
    """

    def __init__(self, has_access: Callable[[str], bool],
                 check_status: Callable[[str, Optional[str]], bool],
                 grace_period: float = 2.0, timeout: float = 30.0,
                 sleep: Callable[[float], None] = time.sleep):
        self._has_access = has_access
        self._check_status = check_status
        self.grace_period = grace_period
        self.timeout = timeout
        self._sleep = sleep

        self._lock = threading.Lock()
        self._result = ConfirmationResult(LOADING)
        self._attempted = False
        self._disposed = False

    @property
    def result(self):
        return self._result

    @property
    def attempted(self):
        return self._attempted

    def dispose(self):
        """Stop accepting state updates (the page went away)."""
        with self._lock:
            self._disposed = True

    def _resolve(self, state, message=""):
        with self._lock:
            if self._disposed:
                logger.debug(f"Discarding {state} result after dispose")
                return
            if self._result.is_terminal:
                return
            self._result = ConfirmationResult(state, message)

    def run(self, program_id, session_id=None):
        """Drive the flow to a terminal state and return the result.

        Only the first call does any work; later calls (re-renders) return
        the result already reached. A disposed flow does nothing.
        """
        if self._disposed:
            logger.debug("Confirmation flow disposed, not running")
            return self._result

        if self._attempted or self._result.is_terminal:
            logger.info("Confirmation already attempted, skipping")
            return self._result

        if not program_id:
            logger.warning("Payment confirmation without program ID")
            self._resolve(ERROR, MISSING_PROGRAM_MESSAGE)
            return self._result

        if self._entry_has_access(program_id):
            logger.info(f"User already has access to program {program_id}")
            self._resolve(ALREADY_HAS_ACCESS)
            return self._result

        self._attempted = True
        self._verify_once(program_id, session_id)
        return self._result

    def _entry_has_access(self, program_id):
        try:
            return bool(self._has_access(program_id))
        except Exception as e:
            # An unanswered entry check is not a "no"; the status check decides.
            logger.warning(f"Entry access check failed for program {program_id}: {e}")
            return False

    def _wait_then_check(self, program_id, session_id, outcome, done):
        try:
            if self.grace_period > 0:
                self._sleep(self.grace_period)
            outcome["confirmed"] = bool(self._check_status(program_id, session_id))
        except Exception as e:
            outcome["error"] = e
        finally:
            done.set()

    def _verify_once(self, program_id, session_id):
        logger.info(f"Checking payment status for program {program_id} (session {session_id})")

        outcome = {}
        done = threading.Event()
        # Daemon: a check that never answers must not hold up process exit
        worker = threading.Thread(
            target=self._wait_then_check,
            args=(program_id, session_id, outcome, done),
            daemon=True,
        )
        worker.start()

        if not done.wait(self.timeout):
            logger.error(f"Payment status check timed out after {self.timeout}s")
            self._resolve(ERROR, TIMEOUT_MESSAGE)
            return

        if "error" in outcome:
            e = outcome["error"]
            logger.error(f"Payment status check failed: {e}")
            self._resolve(ERROR, CHECK_FAILED_MESSAGE.format(reason=e))
        elif outcome.get("confirmed"):
            logger.info(f"Payment confirmed for program {program_id}")
            self._resolve(SUCCESS)
        else:
            logger.info(f"No access for program {program_id} yet, webhook may still be processing")
            self._resolve(ERROR, NOT_FOUND_MESSAGE)
