import unittest
from unittest.mock import Mock, call

from hamcrest import assert_that, is_, empty

from serialmon.support.events import EventSource


class EventsTest(unittest.TestCase):

    def test_handlers_empty(self):
        sut = EventSource()
        assert_that(sut.handlers(), is_(empty()))

    def test_handlers_not_empty(self):
        sut = EventSource()
        handler = Mock()
        sut.add(handler)
        assert_that(list(sut.handlers()), is_([handler]))

    def test_no_listeners(self):
        sut = EventSource()
        sut.fire(1)

    def test_manage_handlers(self):
        sut = EventSource()
        m1 = Mock()
        sut.add(m1)
        assert_that(sut._handlers, is_([m1]))

        sut.remove(m1)
        assert_that(sut._handlers, is_([]))

        sut.remove(m1)
        assert_that(sut._handlers, is_([]))

        sut += m1
        assert_that(sut._handlers, is_([m1]))

        sut -= m1
        assert_that(sut._handlers, is_([]))

    def test_listeners(self):
        sut = EventSource()
        l1 = Mock()
        l2 = Mock()
        sut += l1
        sut += l2
        sut.fire(1, v="hey")
        l1.assert_called_once_with(1, v="hey")
        l2.assert_called_once_with(1, v="hey")

    def test_handler_may_unsubscribe_while_firing(self):
        sut = EventSource()
        later = Mock()

        def once(event):
            sut.remove(once)

        sut += once
        sut += later
        sut.fire(1)
        sut.fire(2)
        assert_that(later.mock_calls, is_([call(1), call(2)]))
        assert_that(sut.handlers(), is_((later,)))
