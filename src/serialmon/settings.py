"""
Serial port settings and the sets of values a port supports.
"""

import logging
from enum import Enum

import serial

from serialmon.conduit import serial_ports
from serialmon.support.mixins import CommonEqualityMixin, StringerMixin

logger = logging.getLogger(__name__)

BAUD_RATES = tuple(serial.Serial.BAUDRATES)
DATA_BITS = tuple(serial.Serial.BYTESIZES)

DEFAULT_BAUD_RATE = 9600
DEFAULT_DATA_BITS = serial.EIGHTBITS
DEFAULT_TIMEOUT = 0.1       # seconds


class Parity(Enum):
    NONE = serial.PARITY_NONE
    ODD = serial.PARITY_ODD
    EVEN = serial.PARITY_EVEN
    MARK = serial.PARITY_MARK
    SPACE = serial.PARITY_SPACE

    @classmethod
    def parse(cls, value):
        """
        Resolves a parity from its name or pyserial code.
        >>> Parity.parse('even')
        <Parity.EVEN: 'E'>
        >>> Parity.parse('N')
        <Parity.NONE: 'N'>
        """
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for p in cls:
            if text.upper() == p.name or text.upper() == p.value:
                return p
        raise ValueError("unknown parity %s" % value)


class StopBits(Enum):
    ONE = serial.STOPBITS_ONE
    ONE_POINT_FIVE = serial.STOPBITS_ONE_POINT_FIVE
    TWO = serial.STOPBITS_TWO

    @classmethod
    def parse(cls, value):
        """
        Resolves stop bits from a name or a number.
        >>> StopBits.parse('one_point_five')
        <StopBits.ONE_POINT_FIVE: 1.5>
        >>> StopBits.parse('2')
        <StopBits.TWO: 2>
        """
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for s in cls:
            if text.upper() == s.name:
                return s
        try:
            number = float(text)
        except ValueError:
            raise ValueError("unknown stop bits %s" % value) from None
        for s in cls:
            if s.value == number:
                return s
        raise ValueError("unknown stop bits %s" % value)


def available_ports():
    """
    Lists the serial port names present on this machine.
    """
    return tuple(serial_ports())


def _parse_or_keep(kind, value):
    """ the member named by value, or the value itself when it names none. problems() reports those. """
    try:
        return kind.parse(value)
    except ValueError:
        return value


class PortSettings(CommonEqualityMixin, StringerMixin):
    """
    The settings used to open a serial port. Instances are immutable; use replace()
    to derive a modified copy.

    :param port: the port identifier, e.g. 'COM3', '/dev/ttyUSB0' or a pyserial url such as 'loop://'
    :param baud_rate: one of BAUD_RATES
    :param data_bits: one of DATA_BITS
    :param parity: a Parity, or anything Parity.parse accepts. Other values are kept and fail validate()
    :param stop_bits: a StopBits, or anything StopBits.parse accepts. Other values are kept and fail validate()
    :param timeout: how long a single read blocks, in seconds. Bounds how long stop() waits.
    """

    def __init__(self, port, baud_rate=DEFAULT_BAUD_RATE, data_bits=DEFAULT_DATA_BITS,
                 parity=Parity.NONE, stop_bits=StopBits.ONE, timeout=DEFAULT_TIMEOUT):
        d = self.__dict__
        d['_port'] = port
        d['_baud_rate'] = baud_rate
        d['_data_bits'] = data_bits
        d['_parity'] = _parse_or_keep(Parity, parity)
        d['_stop_bits'] = _parse_or_keep(StopBits, stop_bits)
        d['_timeout'] = timeout

    def __setattr__(self, key, value):
        raise AttributeError("%s is immutable" % self.__class__.__name__)

    def __delattr__(self, key):
        raise AttributeError("%s is immutable" % self.__class__.__name__)

    def __repr__(self):
        return str(self)

    @property
    def port(self) -> str:
        return self._port

    @property
    def baud_rate(self) -> int:
        return self._baud_rate

    @property
    def data_bits(self) -> int:
        return self._data_bits

    @property
    def parity(self) -> Parity:
        return self._parity

    @property
    def stop_bits(self) -> StopBits:
        return self._stop_bits

    @property
    def timeout(self) -> float:
        return self._timeout

    def replace(self, **changes):
        """ returns a new settings instance with the given fields changed. """
        values = dict(port=self.port, baud_rate=self.baud_rate, data_bits=self.data_bits,
                      parity=self.parity, stop_bits=self.stop_bits, timeout=self.timeout)
        unknown = set(changes) - set(values)
        if unknown:
            raise TypeError("unknown settings %s" % ', '.join(sorted(unknown)))
        values.update(changes)
        return PortSettings(**values)

    def validate(self, available_ports=None) -> bool:
        """
        Determines if every field holds a supported value.
        :param available_ports: when given, the port must be one of these names.
            Otherwise only a non-empty port identifier is required; whether it exists is
            discovered when the port is opened.
        :return: True if the settings can be used to open a port.
        """
        problems = self.problems(available_ports)
        for problem in problems:
            logger.debug("invalid settings %s: %s" % (self.port, problem))
        return not problems

    def problems(self, available_ports=None):
        """ lists a description of each field that is not valid. """
        result = []
        if not isinstance(self.port, str) or not self.port:
            result.append("port must be a non-empty string")
        elif available_ports is not None and self.port not in available_ports:
            result.append("port %s is not available" % self.port)
        if self.baud_rate not in BAUD_RATES or isinstance(self.baud_rate, bool):
            result.append("baud rate %s is not supported" % self.baud_rate)
        if self.data_bits not in DATA_BITS or isinstance(self.data_bits, bool):
            result.append("data bits %s is not supported" % self.data_bits)
        if not isinstance(self.parity, Parity):
            result.append("parity %s is not supported" % self.parity)
        if not isinstance(self.stop_bits, StopBits):
            result.append("stop bits %s is not supported" % self.stop_bits)
        if isinstance(self.timeout, bool) or not isinstance(self.timeout, (int, float)) or self.timeout <= 0:
            result.append("timeout %s must be a positive number of seconds" % self.timeout)
        return result

    def serial_kwargs(self):
        """
        the keyword arguments that configure a pyserial port with these settings.
        The timeout bounds reads only. Writes block until the data is handed to the driver.
        """
        return dict(baudrate=self.baud_rate, bytesize=self.data_bits, parity=self.parity.value,
                    stopbits=self.stop_bits.value, timeout=self.timeout)
