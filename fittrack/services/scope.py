"""Background execution tied to the lifetime of whoever asked for it."""
import logging
import threading
from concurrent.futures import CancelledError

logger = logging.getLogger(__name__)


class ScopeClosed(RuntimeError):
    pass


class TaskScope:
    """Submits store work to an executor and cancels it when the scope closes.

    Work that has not started yet is cancelled by ``close()``. Work that is
    already running completes, but its ``on_result``/``on_error`` callbacks
    are skipped, so a finished write never touches the state of an owner
    that has gone away.
    """

    def __init__(self, executor, name='scope'):
        self.name = name
        self._executor = executor
        self._lock = threading.Lock()
        self._futures = set()
        self._closed = False

    @property
    def closed(self):
        return self._closed

    def launch(self, fn, *args, on_result=None, on_error=None, **kwargs):
        with self._lock:
            if self._closed:
                raise ScopeClosed(f'task scope {self.name!r} is closed')
            future = self._executor.submit(fn, *args, **kwargs)
            self._futures.add(future)
        future.add_done_callback(self._forget)
        if on_result is not None or on_error is not None:
            future.add_done_callback(lambda done: self._deliver(done, on_result, on_error))
        return future

    def _forget(self, future):
        with self._lock:
            self._futures.discard(future)

    def _deliver(self, future, on_result, on_error):
        if self._closed or future.cancelled():
            return
        try:
            result = future.result()
        except CancelledError:
            return
        except Exception as exc:
            if on_error is None:
                logger.warning('Task in scope %r failed: %s', self.name, exc)
            else:
                on_error(exc)
            return
        if on_result is not None:
            on_result(result)

    def close(self):
        with self._lock:
            if self._closed:
                return
            self._closed = True
            futures = list(self._futures)
        cancelled = sum(1 for future in futures if future.cancel())
        if cancelled:
            logger.debug('Cancelled %d pending task(s) in scope %r', cancelled, self.name)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
