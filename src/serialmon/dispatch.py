"""
Delivers notifications raised on the read thread to the consumer's execution context.

An execution context is the thread (or queue) where the consumer expects its handlers
to run, such as a UI thread. It answers is_current() and accepts post().

When the notification is raised on the consumer's context, the handlers run immediately.
Otherwise the notification is posted to the context and deliver() returns without waiting.
The read thread must never wait for the consumer: the consumer may itself be waiting
for the read thread inside stop().
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from queue import Empty, Queue

from serialmon.events import DataReceivedEvent, FaultEvent
from serialmon.support.events import EventSource

logger = logging.getLogger(__name__)


def _call(fn, args):
    """ runs a posted call. Errors raised by consumer handlers are logged so later calls still run. """
    try:
        fn(*args)
    except Exception as e:
        logger.exception(e)


class ExecutionContext:
    """ Where the consumer's handlers run. """

    def is_current(self) -> bool:
        """ determines if the calling thread is executing on this context. """
        raise NotImplementedError

    def post(self, fn, *args):
        """ schedules fn(*args) to run on this context and returns immediately. """
        raise NotImplementedError


class QueuedExecutionContext(ExecutionContext):
    """
    A context bound to an owner thread that runs posted calls when the owner
    calls run_pending(). This is the shape of a UI event loop: the owner pumps the queue
    between other work.

    :param thread: the owner thread. Defaults to the thread constructing the context.
    """
    def __init__(self, thread=None):
        self.thread = thread or threading.current_thread()
        self.queue = Queue()

    def is_current(self):
        return threading.current_thread() is self.thread

    def post(self, fn, *args):
        self.queue.put((fn, args))

    def pending(self):
        return self.queue.qsize()

    def run_pending(self, timeout=None):
        """
        Runs the queued calls on the calling thread, in the order they were posted.
        A call that raises is logged and the remaining calls still run.
        :param timeout: how long to wait for the first call to arrive. None or 0 does not wait.
        :return: the number of calls run
        """
        queue = self.queue
        count = 0
        try:
            fn, args = queue.get(timeout=timeout) if timeout else queue.get_nowait()
        except Empty:
            return count
        while True:
            _call(fn, args)
            count += 1
            try:
                fn, args = queue.get_nowait()
            except Empty:
                return count


class ExecutorExecutionContext(ExecutionContext):
    """
    A context backed by a single worker thread, for consumers that have no event loop
    of their own. Calls run on the worker in the order they were posted.
    """
    def __init__(self, name="serialmon-dispatch"):
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
        self._local = threading.local()
        self._executor.submit(self._mark_worker)

    def _mark_worker(self):
        self._local.worker = True

    def is_current(self):
        return getattr(self._local, 'worker', False)

    def post(self, fn, *args):
        self._executor.submit(_call, fn, args)

    def shutdown(self, wait=True):
        self._executor.shutdown(wait=wait)


class Dispatcher:
    """
    Fires notifications to the consumer's handlers on the consumer's execution context.

    data_received handlers are called with the received bytes.
    faults handlers are called with the FaultEvent.

    :param context: the consumer's execution context. Defaults to a QueuedExecutionContext
        bound to the constructing thread.
    """

    def __init__(self, context: ExecutionContext=None):
        self.context = context or QueuedExecutionContext()
        self.data_received = EventSource()
        self.faults = EventSource()
        self._receive_enabled = True

    @property
    def receive_enabled(self) -> bool:
        """ when False, received data is discarded at delivery. Faults are still delivered. """
        return self._receive_enabled

    @receive_enabled.setter
    def receive_enabled(self, enabled):
        self._receive_enabled = bool(enabled)

    def deliver(self, notification):
        """
        Delivers a notification. Runs the handlers now when called on the consumer's
        context, otherwise posts them to the context.
        """
        if self.context.is_current():
            self._fire(notification)
        else:
            self.context.post(self._fire, notification)

    def _fire(self, notification):
        if isinstance(notification, DataReceivedEvent):
            if self._receive_enabled:
                self.data_received.fire(notification.data)
            else:
                logger.debug("discarded %d received bytes" % len(notification))
        elif isinstance(notification, FaultEvent):
            self.faults.fire(notification)
        else:
            raise TypeError("unknown notification %s" % notification)
