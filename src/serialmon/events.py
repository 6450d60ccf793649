"""
The notifications raised by a connection manager, and the errors they report.
"""
from datetime import datetime, timezone
from enum import Enum

from serialmon.support.mixins import CommonEqualityMixin, StringerMixin


class SerialMonitorError(Exception):
    """ base class for communication faults. """


class OpenFailure(SerialMonitorError):
    """ The port is unavailable, does not exist, access was denied or the settings are invalid. """


class ReadFailure(SerialMonitorError):
    """ The device was disconnected or an I/O error occurred while reading. """


class WriteFailure(SerialMonitorError):
    """ The port is closed or the underlying write failed. """


class ConnectionState(Enum):
    CLOSED = "Closed"
    LISTENING = "Listening"


class FaultKind(Enum):
    OPEN_FAILURE = "OpenFailure"
    READ_FAILURE = "ReadFailure"
    WRITE_FAILURE = "WriteFailure"

    @classmethod
    def of(cls, error):
        """ determines the kind of fault from the error raised. """
        for error_type, kind in _fault_kinds:
            if isinstance(error, error_type):
                return kind
        raise ValueError("no fault kind for %r" % error)


_fault_kinds = (
    (OpenFailure, FaultKind.OPEN_FAILURE),
    (ReadFailure, FaultKind.READ_FAILURE),
    (WriteFailure, FaultKind.WRITE_FAILURE),
)


class Notification(StringerMixin):
    """ base class for the events delivered to the consumer. """


class DataReceivedEvent(Notification, CommonEqualityMixin):
    """
    The bytes read in one read cycle. The payload is an immutable, non-empty bytes object.
    """
    def __init__(self, data):
        data = bytes(data)
        if not data:
            raise ValueError("received data must not be empty")
        self.data = data

    def __len__(self):
        return len(self.data)


class FaultEvent(Notification, CommonEqualityMixin):
    """
    Reports a fault to the consumer.
    :param error: the SerialMonitorError describing the fault
    :param timestamp: when the fault was detected. Defaults to now (UTC.)
    """
    def __init__(self, error: SerialMonitorError, timestamp=None):
        self.error = error
        self.kind = FaultKind.of(error)
        self.message = str(error)
        self.timestamp = timestamp or datetime.now(timezone.utc)
