"""
Implements a conduit over a serial port.
"""

import logging

import serial
from serial.tools import list_ports

logger = logging.getLogger(__name__)


class SerialConduit:
    """
    Provides reads and writes over an open pyserial handle. The conduit owns the handle
    and closes it when the conduit is closed.
    """

    def __init__(self, ser):
        self.ser = ser
        # patch flushing since this causes a lockup if the serial is disconnected during
        # the flush.
        ser.flush = self._no_flush

    def _no_flush(self, *args, **kwargs):
        pass

    @property
    def target(self):
        return self.ser

    @property
    def name(self):
        return self.ser.port

    @property
    def open(self) -> bool:
        return self.ser.is_open

    @property
    def in_waiting(self) -> int:
        return self.ser.in_waiting

    def read(self, size=1) -> bytes:
        """ blocks until size bytes are read or the port timeout elapses. """
        return bytes(self.ser.read(size))

    def write(self, data: bytes) -> int:
        return self.ser.write(data)

    def close(self):
        """ closes the handle. Closing a closed conduit does nothing. """
        if self.ser.is_open:
            self.ser.close()
            logger.info("closed serial port %s" % self.name)


def open_serial_port(settings):
    """
    Opens a serial port with the given settings.
    The port may be a device name or a pyserial url, such as 'loop://'.
    :param settings: a PortSettings instance
    :return: a SerialConduit for the open port
    :raises serial.SerialException: if the port cannot be opened
    """
    ser = serial.serial_for_url(settings.port, **settings.serial_kwargs())
    logger.info("opened serial port %s at %s baud" % (settings.port, settings.baud_rate))
    return SerialConduit(ser)


def serial_ports():
    """
    Returns a generator for all available serial port device names.
    """
    for port in serial_port_info():
        yield port[0]


def serial_port_info():
    """
    :return: a tuple of serial port info tuples (device, description, hwid)
    :rtype:
    """
    return tuple(list_ports.comports())
