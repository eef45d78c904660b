"""Tests for Subscription and SubscriptionBag."""

from combinefx import PassthroughSubject, Subscription, SubscriptionBag


class TestSubscription:
    def test_cancel_runs_callback_once(self):
        calls = []
        sub = Subscription(lambda: calls.append(1))
        assert not sub.cancelled
        sub.cancel()
        sub.cancel()
        assert calls == [1]
        assert sub.cancelled

    def test_cancel_without_callback(self):
        sub = Subscription()
        sub.cancel()  # should not raise
        assert sub.cancelled

    def test_drop_cancels(self):
        calls = []
        sub = Subscription(lambda: calls.append("dropped"))
        del sub
        assert calls == ["dropped"]

    def test_ids_are_unique(self):
        a, b = Subscription(), Subscription()
        assert a.id != b.id


class TestSubscriptionBag:
    def test_store_in_keeps_subscription_alive(self):
        subject = PassthroughSubject()
        bag = SubscriptionBag()
        received = []
        subject.sink(received.append).store_in(bag)
        subject.send(1)
        assert received == [1]
        assert len(bag) == 1

    def test_cancel_all(self):
        subject = PassthroughSubject()
        bag = SubscriptionBag()
        received = []
        subject.sink(received.append).store_in(bag)
        subject.map(lambda v: v * 10).sink(received.append).store_in(bag)
        subject.send(1)
        bag.cancel_all()
        subject.send(2)
        assert received == [1, 10]
        assert len(bag) == 0
        assert subject.subscriber_count() == 0

    def test_dropping_bag_cancels_everything(self):
        subject = PassthroughSubject()
        bag = SubscriptionBag()
        subject.sink().store_in(bag)
        subject.sink().store_in(bag)
        assert subject.subscriber_count() == 2
        del bag
        assert subject.subscriber_count() == 0
