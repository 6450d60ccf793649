"""
A terminal consumer for a connection manager.

Received bytes are written to stdout, faults to stderr. Each line typed on stdin is sent
to the port, except ~rx, which switches the display of received data on or off. The main thread is the consumer's execution context: it pumps a
QueuedExecutionContext, so handlers run there and never on the read thread.
"""
import argparse
import functools
import logging
import sys
import threading

from serialmon.config.config import apply_conf_path, load_config, port_settings_from_config
from serialmon.conduit import serial_port_info
from serialmon.dispatch import Dispatcher, QueuedExecutionContext
from serialmon.manager import ConnectionManager
from serialmon.settings import BAUD_RATES, DATA_BITS, Parity, StopBits

logger = logging.getLogger(__name__)


class ConsoleOptions:
    """ options for the terminal that are read from the [console] configuration section. """

    def __init__(self):
        self.encoding = 'ascii'
        self.receive_enabled = True


class TerminalConsumer:
    """
    Renders received data to an output stream and reports faults to an error stream.
    """

    def __init__(self, dispatcher: Dispatcher, out=None, err=None, encoding='ascii'):
        self.out = out or sys.stdout
        self.err = err or sys.stderr
        self.encoding = encoding
        self.faults = []
        dispatcher.data_received += self.data_received
        dispatcher.faults += self.fault

    def data_received(self, data):
        self.out.write(data.decode(self.encoding, errors='replace'))
        self.out.flush()

    def fault(self, event):
        self.faults.append(event)
        self.err.write("%s: %s\n" % (event.kind.value, event.message))
        self.err.flush()


# typed alone on a line, switches the display of received data on or off
RX_TOGGLE = '~rx'


def handle_input(manager: ConnectionManager, line, err=None):
    """
    Sends a line typed by the user, unless the line is a console command.
    """
    if line.strip() == RX_TOGGLE:
        manager.receive_enabled = not manager.receive_enabled
        (err or sys.stderr).write("receive %s\n" % ("enabled" if manager.receive_enabled else "disabled"))
    else:
        manager.send(line)


def read_input(stream, context, send, done):
    """ reads lines from the stream, posting each to send() on the consumer context. """
    for line in stream:
        context.post(send, line)
    context.post(done)


def run(manager: ConnectionManager, settings, context: QueuedExecutionContext, consumer: TerminalConsumer,
        stdin=None, poll=0.1):
    """
    Listens on the port until the input ends, the connection faults, or the user interrupts.
    :return: the process exit status
    """
    if not manager.start(settings):
        context.run_pending()
        return 1
    finished = threading.Event()
    send = functools.partial(handle_input, manager, err=consumer.err)
    reader = threading.Thread(target=read_input, name="serialmon-input",
                              args=(stdin or sys.stdin, context, send, finished.set), daemon=True)
    reader.start()
    try:
        while manager.listening and not finished.is_set():
            context.run_pending(poll)
    except KeyboardInterrupt:
        logger.info("interrupted")
    finally:
        manager.teardown()
        context.run_pending()
    return 1 if consumer.faults else 0


def list_ports(out=None):
    out = out or sys.stdout
    for info in serial_port_info():
        out.write("%s\t%s\n" % (info[0], info[1]))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="serialmon", description="Monitor a serial port and send it text.",
                                     epilog="While running, enter %s on a line of its own to switch the display "
                                            "of received data on or off." % RX_TOGGLE)
    parser.add_argument("--port", "-p", default=None, help="port name or pyserial url, e.g. COM3, /dev/ttyUSB0, loop://")
    parser.add_argument("--baud", "-b", type=int, default=None, choices=BAUD_RATES, metavar="BAUD",
                        help="baud rate")
    parser.add_argument("--data-bits", type=int, default=None, choices=DATA_BITS)
    parser.add_argument("--parity", default=None, choices=[p.name.lower() for p in Parity])
    parser.add_argument("--stop-bits", default=None, choices=[s.name.lower() for s in StopBits])
    parser.add_argument("--timeout", type=float, default=None, help="read timeout in seconds")
    parser.add_argument("--encoding", default=None, help="text encoding for sent and received data")
    parser.add_argument("--no-rx", action="store_true", help="start with received data suppressed")
    parser.add_argument("--list", action="store_true", help="list the available serial ports and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="log debug messages")
    return parser


def settings_from_args(args, defaults):
    changes = {}
    for arg, field in (('port', 'port'), ('baud', 'baud_rate'), ('data_bits', 'data_bits'),
                       ('parity', 'parity'), ('stop_bits', 'stop_bits'), ('timeout', 'timeout')):
        value = getattr(args, arg)
        if value is not None:
            changes[field] = value
    return defaults.replace(**changes)


def configure_logging(verbose=False):
    root = logging.getLogger('serialmon')
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        root.addHandler(handler)


def main(argv=None):
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    if args.list:
        list_ports()
        return 0

    conf = load_config()
    options = ConsoleOptions()
    apply_conf_path(conf, ['console'], options)
    if args.encoding:
        options.encoding = args.encoding
    if args.no_rx:
        options.receive_enabled = False

    settings = settings_from_args(args, port_settings_from_config(conf))
    context = QueuedExecutionContext()
    dispatcher = Dispatcher(context)
    dispatcher.receive_enabled = options.receive_enabled
    manager = ConnectionManager(dispatcher, encoding=options.encoding)
    consumer = TerminalConsumer(dispatcher, encoding=options.encoding)
    return run(manager, settings, context, consumer)


if __name__ == '__main__':  # pragma no cover
    sys.exit(main())
