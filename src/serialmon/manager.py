"""
Owns a serial port and the background loop that reads from it.
"""
import logging
import threading

from serialmon.conduit import SerialConduit, open_serial_port
from serialmon.dispatch import Dispatcher
from serialmon.events import ConnectionState, DataReceivedEvent, FaultEvent, OpenFailure, ReadFailure, \
    WriteFailure
from serialmon.loop import AsyncLoop
from serialmon.settings import PortSettings

logger = logging.getLogger(__name__)


class ReadLoop(AsyncLoop):
    """
    Reads from the conduit until stopped, delivering each non-empty read as a DataReceivedEvent.

    A read that times out returns no bytes and the loop simply reads again. Any exception
    ends the session: the loop stops itself, closes the conduit and delivers a ReadFailure,
    which is the last notification of the session.

    :param conduit: the open conduit to read
    :param deliver: called with each notification, on the read thread
    """

    def __init__(self, conduit: SerialConduit, deliver, log=logger):
        super().__init__(name="serialmon-reader-%s" % conduit.name, log=log)
        self.conduit = conduit
        self.deliver = deliver
        self.bytes_received = 0

    def loop(self):
        conduit = self.conduit
        data = conduit.read(max(conduit.in_waiting, 1))
        if data:
            self.bytes_received += len(data)
            self.logger.debug("received %d bytes on %s" % (len(data), conduit.name))
            self.deliver(DataReceivedEvent(data))

    def exception_handler(self, e):
        if not self.running():
            self.logger.debug("ignoring error on %s after stop: %s" % (self.conduit.name, e))
            return
        self.stop_event.set()
        self.logger.error("read failed on %s: %s" % (self.conduit.name, e))
        self._close_conduit()
        fault = ReadFailure("error reading from %s: %s" % (self.conduit.name, e))
        fault.__cause__ = e
        self.deliver(FaultEvent(fault))

    def _close_conduit(self):
        try:
            self.conduit.close()
        except Exception as e:
            self.logger.warning("error closing %s: %s" % (self.conduit.name, e))


class ConnectionManager:
    """
    Opens a serial port, reads from it on a background thread and writes to it.

    Received data and faults are delivered through the dispatcher, on the consumer's
    execution context. None of the public methods raise; failures are delivered as FaultEvents.

    :param dispatcher: delivers notifications to the consumer. Subscribe to
        dispatcher.data_received and dispatcher.faults.
    :param port_factory: opens a conduit from PortSettings
    :param encoding: how text passed to send() is encoded. Characters that cannot be
        encoded are sent as '?'.
    """

    def __init__(self, dispatcher: Dispatcher=None, port_factory=open_serial_port, encoding='ascii', log=logger):
        self.dispatcher = dispatcher or Dispatcher()
        self.port_factory = port_factory
        self.encoding = encoding
        self.logger = log
        self._lock = threading.RLock()
        self._settings = None
        self._conduit = None
        self._loop = None
        self._torn_down = False
        self._bytes_received = 0
        self._bytes_sent = 0
        self._sessions = 0

    @property
    def state(self) -> ConnectionState:
        loop = self._loop
        return ConnectionState.LISTENING if loop is not None and loop.running() else ConnectionState.CLOSED

    @property
    def listening(self) -> bool:
        return self.state is ConnectionState.LISTENING

    @property
    def settings(self) -> PortSettings:
        """ the settings of the current, or most recent, session. """
        return self._settings

    @property
    def receive_enabled(self) -> bool:
        return self.dispatcher.receive_enabled

    @receive_enabled.setter
    def receive_enabled(self, enabled):
        self.dispatcher.receive_enabled = enabled

    @property
    def statistics(self) -> dict:
        loop = self._loop
        return {
            'bytes_received': self._bytes_received + (loop.bytes_received if loop else 0),
            'bytes_sent': self._bytes_sent,
            'sessions': self._sessions,
            'state': self.state.value
        }

    def start(self, settings: PortSettings) -> bool:
        """
        Opens the port and starts reading.
        :return: True if the port was opened. False if already listening, or if the port
            could not be opened, in which case an OpenFailure is delivered.
        """
        with self._lock:
            if self.listening:
                self.logger.warning("already listening on %s" % self._settings.port)
                return False
            self._release()
            try:
                self._settings = settings
                self._conduit = self._open(settings)
            except OpenFailure as e:
                self.logger.warning(str(e))
                fault = e
            else:
                self._loop = ReadLoop(self._conduit, self.dispatcher.deliver, self.logger)
                self._sessions += 1
                self._loop.start()
                self.logger.info("listening on %s" % settings.port)
                return True
        self.dispatcher.deliver(FaultEvent(fault))
        return False

    def _open(self, settings):
        if self._torn_down:
            raise OpenFailure("the connection manager has been torn down")
        if not isinstance(settings, PortSettings) or not settings.validate():
            raise OpenFailure("invalid port settings %s" % (settings,))
        try:
            return self.port_factory(settings)
        except Exception as e:
            raise OpenFailure("unable to open %s: %s" % (settings.port, e)) from e

    def stop(self):
        """
        Stops reading and closes the port. Waits for the read thread to exit, which takes
        at most one read timeout. Does nothing when already closed.
        Bytes already read are still delivered.
        """
        with self._lock:
            was_listening = self.listening
            self._release()
            if was_listening:
                self.logger.info("stopped listening on %s" % self._settings.port)

    def _release(self):
        """ stops the read loop, if any, and closes the conduit. """
        loop, self._loop = self._loop, None
        conduit, self._conduit = self._conduit, None
        if loop is not None:
            loop.stop()
            self._bytes_received += loop.bytes_received
        if conduit is not None:
            try:
                conduit.close()
            except Exception as e:
                self.logger.warning("error closing %s: %s" % (conduit.name, e))

    def send(self, text: str):
        """
        Writes text to the port. If the port is closed, or the write fails, a WriteFailure is
        delivered. A failed write also closes the port.
        """
        with self._lock:
            try:
                self._write(text)
                fault = None
            except WriteFailure as e:
                self.logger.warning(str(e))
                fault = e
                self._release()
        if fault is not None:
            self.dispatcher.deliver(FaultEvent(fault))

    def _write(self, text):
        if not self.listening:
            raise WriteFailure("cannot send, the port is closed")
        data = text.encode(self.encoding, errors='replace') if isinstance(text, str) else bytes(text)
        conduit = self._conduit
        try:
            count = conduit.write(data)
        except Exception as e:
            raise WriteFailure("error writing to %s: %s" % (conduit.name, e)) from e
        self._bytes_sent += len(data) if count is None else count
        self.logger.debug("sent %d bytes to %s" % (len(data), conduit.name))

    def teardown(self):
        """
        Stops the connection and releases the port. The manager cannot be started again.
        """
        with self._lock:
            self._torn_down = True
            self.stop()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.teardown()

    def __repr__(self):
        port = self._settings.port if self._settings else None
        return "ConnectionManager(%s, %s)" % (port, self.state.value)
