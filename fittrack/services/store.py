"""Persistent store for users and their weight entries.

``WeightStore`` is constructed explicitly for one Flask app and handed to
whatever issues queries. It owns the executor that task scopes run on and the
registry of live weight-list queries, and has an explicit ``open``/``close``
lifecycle.
"""
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager

from flask_migrate import upgrade
from sqlalchemy.exc import IntegrityError, OperationalError

from fittrack.app import db, MIGRATIONS_DIR
from fittrack.errors import ConstraintViolation, StorageUnavailable, ValidationError
from fittrack.models.user import User, MAX_CREDENTIAL_BYTES
from fittrack.models.weight import WeightEntry, now_millis
from fittrack.services.live import LiveQueries
from fittrack.services.scope import TaskScope

logger = logging.getLogger(__name__)


def require_text(value, field):
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f'{field} cannot be blank')
    return value


def coerce_weight(value):
    """Turn user input into a weight in pounds.

    Accepts numbers and numeric strings; rejects blanks, booleans, NaN,
    infinities and anything not above zero.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError('Weight must be a number')
    if isinstance(value, str):
        if not value.strip():
            raise ValidationError('Weight cannot be blank')
        try:
            value = float(value)
        except (ValueError, OverflowError):
            raise ValidationError('Weight must be a number')
    if not isinstance(value, (int, float)):
        raise ValidationError('Weight must be a number')
    try:
        value = float(value)
    except OverflowError:
        raise ValidationError('Weight must be a finite number')
    if not math.isfinite(value):
        raise ValidationError('Weight must be a finite number')
    if value <= 0:
        raise ValidationError('Weight must be greater than zero')
    return value


def coerce_timestamp(value):
    if value is None:
        return now_millis()
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError('recorded_at must be an integer number of milliseconds')
    if not 0 <= value < 2 ** 63:
        raise ValidationError('recorded_at is out of range')
    return value


class WeightStore:
    def __init__(self, app, workers=None, grace_period=None):
        self.app = app
        self.workers = workers or app.config.get('FITTRACK_STORE_WORKERS', 4)
        if grace_period is None:
            grace_period = app.config.get('FITTRACK_LIVE_GRACE_SECONDS', 5.0)
        self.grace_period = grace_period
        self.password_rounds = app.config.get('BCRYPT_LOG_ROUNDS', 12)
        self._executor = None
        self._live = None
        self._open = False

    @property
    def is_open(self):
        return self._open

    @property
    def live_queries(self):
        return self._live

    def open(self):
        if self._open:
            return self
        policy = self.app.config.get('FITTRACK_SCHEMA', 'migrate')
        with self.app.app_context():
            try:
                if policy == 'migrate':
                    upgrade(directory=MIGRATIONS_DIR)
                elif policy == 'create':
                    db.create_all()
                else:
                    raise ValueError(f'Unknown FITTRACK_SCHEMA policy: {policy!r}')
            except OperationalError as exc:
                raise StorageUnavailable(f'Could not prepare schema: {exc.orig}') from exc
            except SystemExit as exc:
                # flask_migrate reports command errors by exiting
                raise StorageUnavailable('Schema migration failed') from exc
        self._executor = ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix='fittrack-store'
        )
        self._live = LiveQueries(self.list_weight_entries_for_user, grace_period=self.grace_period)
        self._open = True
        logger.info('Weight store opened (schema=%s, workers=%d)', policy, self.workers)
        return self

    def close(self):
        if not self._open:
            return
        self._open = False
        self._live.close()
        self._executor.shutdown(wait=True, cancel_futures=True)
        logger.info('Weight store closed')

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @contextmanager
    def _session(self):
        if not self._open:
            raise StorageUnavailable('Weight store is not open')
        with self.app.app_context():
            try:
                yield db.session
            except OperationalError as exc:
                db.session.rollback()
                logger.error('Storage operation failed: %s', exc.orig)
                raise StorageUnavailable('Storage is unavailable') from exc

    # Users

    def create_user(self, username, credential):
        require_text(username, 'Username')
        require_text(credential, 'Password')
        if len(credential.encode('utf-8')) > MAX_CREDENTIAL_BYTES:
            raise ValidationError(f'Password cannot be longer than {MAX_CREDENTIAL_BYTES} bytes')
        with self._session() as session:
            if session.get(User, username) is not None:
                raise ConstraintViolation('Username already exists')
            user = User(username=username, password=credential, rounds=self.password_rounds)
            session.add(user)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConstraintViolation('Username already exists') from exc
        logger.info('Created user %r', username)
        return user

    def find_user_by_username(self, username):
        if not isinstance(username, str):
            return None
        with self._session() as session:
            return session.get(User, username)

    def find_user_by_credentials(self, username, credential):
        if not isinstance(credential, str):
            return None
        user = self.find_user_by_username(username)
        if user is None or not user.check_password(credential):
            return None
        return user

    # Weight entries

    def insert_weight_entry(self, owner_username, weight_value, recorded_at=None):
        require_text(owner_username, 'Username')
        weight_value = coerce_weight(weight_value)
        recorded_at = coerce_timestamp(recorded_at)
        with self._session() as session:
            if session.get(User, owner_username) is None:
                raise ConstraintViolation(f'Unknown user {owner_username!r}')
            entry = WeightEntry(
                owner_username=owner_username,
                recorded_at=recorded_at,
                weight_value=weight_value
            )
            session.add(entry)
            session.commit()
        logger.debug('Inserted weight entry %s for %r', entry.id, owner_username)
        self._live.notify(owner_username)
        return entry

    def get_weight_entry(self, entry_id, owner_username=None):
        with self._session() as session:
            entry = session.get(WeightEntry, entry_id)
            if entry is None:
                return None
            if owner_username is not None and entry.owner_username != owner_username:
                return None
            return entry

    def update_weight_entry(self, entry_id, new_weight_value, owner_username=None):
        new_weight_value = coerce_weight(new_weight_value)
        with self._session() as session:
            entry = session.get(WeightEntry, entry_id)
            if entry is None:
                return None
            if owner_username is not None and entry.owner_username != owner_username:
                return None
            entry.weight_value = new_weight_value
            session.commit()
        logger.debug('Updated weight entry %s', entry_id)
        self._live.notify(entry.owner_username)
        return entry

    def delete_weight_entry(self, entry_id, owner_username=None):
        with self._session() as session:
            entry = session.get(WeightEntry, entry_id)
            if entry is None:
                return False
            if owner_username is not None and entry.owner_username != owner_username:
                return False
            owner = entry.owner_username
            session.delete(entry)
            session.commit()
        logger.debug('Deleted weight entry %s', entry_id)
        self._live.notify(owner)
        return True

    def list_weight_entries_for_user(self, owner_username):
        with self._session() as session:
            return (
                session.query(WeightEntry)
                .filter_by(owner_username=owner_username)
                .order_by(WeightEntry.recorded_at.asc(), WeightEntry.id.asc())
                .all()
            )

    def subscribe_weight_entries(self, owner_username):
        if not self._open:
            raise StorageUnavailable('Weight store is not open')
        return self._live.subscribe(owner_username)

    def scope(self, name='scope'):
        if not self._open:
            raise StorageUnavailable('Weight store is not open')
        return TaskScope(self._executor, name=name)
