"""


Serial Port Monitoring

- PortSettings: immutable record of the port name, baud rate, data bits, parity, stop bits
  and read timeout. The supported values are enumerable so a settings UI can offer them.
- SerialConduit: wraps the pyserial handle opened from a PortSettings.
- ConnectionManager: owns the conduit and a background read loop. Exposes start(), stop(),
  send() and teardown(). None of these raise; failures are reported as FaultEvents.
- Dispatcher: hands notifications from the read thread to the consumer's execution context.
    DataReceivedEvent payloads go to dispatcher.data_received handlers,
    FaultEvents go to dispatcher.faults handlers.


## Threading

There are two threads of control. The consumer's context (typically a UI thread) calls
start/stop/send. The read loop runs on its own daemon thread, created by start() and
joined by stop().

The read thread never waits for the consumer. Notifications are posted to the consumer's
context and the read thread carries on reading. This matters when a handler calls stop():
stop() joins the read thread, so if the read thread were waiting on the consumer, neither
would make progress.

Reads block for at most the configured read timeout, so stop() returns within one timeout.

"""
