import logging

from fittrack.models.weight import now_millis

logger = logging.getLogger(__name__)


class WeightTracker:
    """Weight log for one signed-in user.

    Holds a single live subscription to the user's entries and a task scope
    for writes. Writes run in the background; ``close()`` stops the
    subscription and cancels whatever has not run yet.
    """

    def __init__(self, store, username):
        self.username = username
        self._store = store
        self._scope = store.scope(f'weights:{username}')
        try:
            self._subscription = store.subscribe_weight_entries(username)
        except Exception:
            self._scope.close()
            raise

    @property
    def entries(self):
        return self._subscription.latest or []

    @property
    def closed(self):
        return self._subscription.closed

    def wait_for_change(self, timeout=None):
        return self._subscription.get(timeout=timeout)

    def save_weight(self, weight, existing_id=None, on_saved=None, on_error=None):
        if existing_id is None:
            return self._scope.launch(
                self._store.insert_weight_entry, self.username, weight, now_millis(),
                on_result=on_saved, on_error=on_error
            )
        return self._scope.launch(
            self._store.update_weight_entry, existing_id, weight,
            owner_username=self.username, on_result=on_saved, on_error=on_error
        )

    def delete_weight(self, entry_id, on_deleted=None, on_error=None):
        return self._scope.launch(
            self._store.delete_weight_entry, entry_id,
            owner_username=self.username, on_result=on_deleted, on_error=on_error
        )

    def close(self):
        self._scope.close()
        self._subscription.close()
        logger.debug('Weight tracker for %r closed', self.username)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
