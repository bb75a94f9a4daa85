"""Request lifecycle state machine.

The transport is authoritative for a request's state once it has been
submitted: a reported ``state`` overwrites the record's state verbatim.
Engines that report only ``completed``/``body``/``error`` get their state
inferred. On top of that the client enforces its own deadline, which the
transport never sees.

=============  =========  ==============================================
State          Terminal   Meaning
=============  =========  ==============================================
Init           no         submitted, not yet dispatched
Sending        no         request in flight
Receiving      no         response arriving
Idle           no         transport reports inactivity without completion
Complete       yes        success, response available
Error          yes        failure, error detail available
Timeout        yes        exceeded the configured timeout
Cancelled      yes        cancelled by the caller
Acknowledged   yes        terminal result already delivered and consumed
=============  =========  ==============================================
"""

from __future__ import annotations

import logging

from pollcurl.models import RequestRecord, RequestState, StatusReport

logger = logging.getLogger(__name__)

TERMINAL_STATES = frozenset(
    {
        RequestState.COMPLETE,
        RequestState.ERROR,
        RequestState.TIMEOUT,
        RequestState.CANCELLED,
        RequestState.ACKNOWLEDGED,
    }
)

FAILURE_STATES = frozenset(
    {RequestState.ERROR, RequestState.TIMEOUT, RequestState.CANCELLED}
)

TIMEOUT_MESSAGE = "Request timed out"


def is_terminal(state: RequestState) -> bool:
    """Return ``True`` when no further transition can follow *state*."""
    return state in TERMINAL_STATES


def infer_state(report: StatusReport, current: RequestState) -> RequestState:
    """Derive a state from a report that carries no ``state`` field."""
    if report.completed:
        return RequestState.ERROR if report.error else RequestState.COMPLETE
    if report.body is not None:
        return RequestState.RECEIVING
    return current


def apply_status(record: RequestRecord, report: StatusReport) -> RequestState:
    """Transition *record* according to one status report.

    Copies ``status``/``headers``/``error`` onto the record and returns the
    new state. A state string the client does not know is treated as a
    transport error so the record always holds a valid state.
    """
    if report.state is not None:
        try:
            new_state = RequestState(report.state)
        except ValueError:
            logger.warning(
                "Request %s: transport reported unknown state %r", record.id, report.state
            )
            new_state = RequestState.ERROR
            record.error = f"Unknown transport state: {report.state}"
    else:
        new_state = infer_state(report, record.state)

    if report.status is not None:
        record.status = report.status
    if report.headers is not None:
        record.headers = dict(report.headers)
    if report.error and new_state in FAILURE_STATES:
        record.error = report.error
    if new_state is RequestState.ERROR and not record.error:
        record.error = "Request failed"

    if new_state is not record.state:
        logger.debug("Request %s: %s -> %s", record.id, record.state.value, new_state.value)
    record.state = new_state
    return new_state


def check_deadline(record: RequestRecord, now: float) -> bool:
    """Force *record* into ``Timeout`` when its deadline has passed.

    Only applies while the record is non-terminal. Purely local: nothing is
    forwarded to the transport.

    Returns:
        ``True`` if the record was moved to ``Timeout``.
    """
    if record.timeout_deadline is None or is_terminal(record.state):
        return False
    if now < record.timeout_deadline:
        return False
    logger.debug("Request %s: client-side deadline elapsed", record.id)
    record.state = RequestState.TIMEOUT
    record.error = TIMEOUT_MESSAGE
    return True
