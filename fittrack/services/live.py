"""Live weight-list queries.

A ``LiveQuery`` watches the ordered entries of one owner and pushes a full
snapshot to every attached ``Subscription`` whenever the store reports a
change for that owner. Subscriptions keep only the newest undelivered
snapshot. When the last subscription goes away the query lingers for a grace
period so a quickly returning subscriber (a reconnecting client, a rebuilt
screen) picks it up again instead of starting from scratch.
"""
import logging
import threading

logger = logging.getLogger(__name__)


class SubscriptionClosed(Exception):
    """Raised when reading from a subscription that has been closed"""


class Subscription:
    def __init__(self, query):
        self._query = query
        self._cond = threading.Condition()
        self._pending = None
        self._has_pending = False
        self._latest = None
        self._closed = False

    @property
    def owner_username(self):
        return self._query.owner_username

    @property
    def closed(self):
        return self._closed

    @property
    def latest(self):
        """The most recent snapshot offered, delivered or not."""
        return self._latest

    def _offer(self, snapshot):
        with self._cond:
            if self._closed:
                return
            # Replace-latest: an undelivered snapshot is superseded
            self._pending = snapshot
            self._has_pending = True
            self._latest = snapshot
            self._cond.notify_all()

    def get(self, timeout=None):
        """Wait for the next undelivered snapshot.

        Returns ``None`` if ``timeout`` elapses first and raises
        ``SubscriptionClosed`` once the subscription is closed.
        """
        with self._cond:
            self._cond.wait_for(lambda: self._has_pending or self._closed, timeout)
            if self._closed:
                raise SubscriptionClosed(f'subscription for {self.owner_username!r} is closed')
            if not self._has_pending:
                return None
            snapshot = self._pending
            self._pending = None
            self._has_pending = False
            return snapshot

    def __iter__(self):
        while True:
            try:
                yield self.get()
            except SubscriptionClosed:
                return

    def close(self):
        with self._cond:
            if self._closed:
                return
            self._closed = True
            self._pending = None
            self._has_pending = False
            self._cond.notify_all()
        self._query._detach(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class LiveQuery:
    """Ordered entries of a single owner, shared by all of its subscriptions."""

    def __init__(self, registry, owner_username, loader, grace_period):
        self.owner_username = owner_username
        self._registry = registry
        self._loader = loader
        self._grace_period = grace_period
        self._lock = threading.Lock()
        # Serializes load-and-publish so snapshots never arrive out of order
        self._refresh_lock = threading.Lock()
        self._subscribers = set()
        self._snapshot = None
        self._teardown_timer = None
        self._stopped = False

    @property
    def subscriber_count(self):
        with self._lock:
            return len(self._subscribers)

    @property
    def stopped(self):
        return self._stopped

    def attach(self):
        """Add a subscription, or return ``None`` if this query has stopped."""
        subscription = Subscription(self)
        with self._lock:
            if self._stopped:
                return None
            if self._teardown_timer is not None:
                self._teardown_timer.cancel()
                self._teardown_timer = None
                logger.debug('Live query for %r resumed within grace period', self.owner_username)
            self._subscribers.add(subscription)
            snapshot = self._snapshot
        if snapshot is None:
            try:
                self.refresh()
            except Exception:
                subscription.close()
                raise
        else:
            subscription._offer(snapshot)
        return subscription

    def refresh(self):
        with self._refresh_lock:
            if self._stopped:
                return
            snapshot = list(self._loader(self.owner_username))
            with self._lock:
                self._snapshot = snapshot
                subscribers = list(self._subscribers)
            for subscription in subscribers:
                subscription._offer(snapshot)

    def _detach(self, subscription):
        with self._lock:
            self._subscribers.discard(subscription)
            if self._subscribers or self._stopped:
                return
            self._teardown_timer = threading.Timer(self._grace_period, self._expire)
            self._teardown_timer.daemon = True
            self._teardown_timer.start()

    def _expire(self):
        with self._lock:
            if self._subscribers or self._stopped:
                return
            self._stopped = True
            self._teardown_timer = None
            self._snapshot = None
        self._registry._discard(self)
        logger.debug('Live query for %r torn down after grace period', self.owner_username)

    def stop(self):
        with self._lock:
            self._stopped = True
            if self._teardown_timer is not None:
                self._teardown_timer.cancel()
                self._teardown_timer = None
            subscribers = list(self._subscribers)
        for subscription in subscribers:
            subscription.close()


class LiveQueries:
    """Registry of live queries keyed by owner username."""

    def __init__(self, loader, grace_period=5.0):
        self._loader = loader
        self.grace_period = grace_period
        self._lock = threading.Lock()
        self._queries = {}
        self._closed = False

    def subscribe(self, owner_username):
        while True:
            with self._lock:
                if self._closed:
                    raise RuntimeError('live queries are closed')
                query = self._queries.get(owner_username)
                if query is None or query.stopped:
                    query = LiveQuery(self, owner_username, self._loader, self.grace_period)
                    self._queries[owner_username] = query
            subscription = query.attach()
            if subscription is not None:
                return subscription

    def get(self, owner_username):
        with self._lock:
            return self._queries.get(owner_username)

    def notify(self, owner_username):
        query = self.get(owner_username)
        if query is None:
            return
        # the write is already committed; a failed refresh must not undo it
        try:
            query.refresh()
        except Exception:
            logger.exception('Refreshing live weight list for %r failed', owner_username)

    def _discard(self, query):
        with self._lock:
            if self._queries.get(query.owner_username) is query:
                del self._queries[query.owner_username]

    def close(self):
        with self._lock:
            self._closed = True
            queries = list(self._queries.values())
            self._queries.clear()
        for query in queries:
            query.stop()
