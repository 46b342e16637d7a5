import math

import pytest

from fittrack.errors import ConstraintViolation, StorageUnavailable, ValidationError

MINUTE = 60 * 1000
START = 1_700_000_000_000


@pytest.fixture
def alice(store):
    return store.create_user('alice', 'secret')


def weights(entries):
    return [entry.weight_value for entry in entries]


def test_create_user_rejects_duplicate_username(store, alice):
    with pytest.raises(ConstraintViolation):
        store.create_user('alice', 'other-secret')

    # the original record is untouched
    assert store.find_user_by_credentials('alice', 'secret') is not None
    assert store.find_user_by_credentials('alice', 'other-secret') is None

def test_usernames_are_not_normalized(store, alice):
    store.create_user('Alice', 'secret')
    store.create_user(' alice', 'secret')

    assert store.find_user_by_username('Alice').username == 'Alice'
    assert store.find_user_by_username('ALICE') is None

@pytest.mark.parametrize('username, credential', [
    ('', 'secret'),
    ('   ', 'secret'),
    (None, 'secret'),
    ('bob', ''),
    ('bob', None),
])
def test_create_user_rejects_blank_fields(store, username, credential):
    with pytest.raises(ValidationError):
        store.create_user(username, credential)

def test_credential_is_not_stored_verbatim(store, alice):
    user = store.find_user_by_username('alice')
    assert user.password_credential != 'secret'
    assert user.check_password('secret')

@pytest.mark.parametrize('credential', ['Secret', 'SECRET', 'secret ', ' secret', 'secre', 'secrets', ''])
def test_login_requires_exact_credential(store, alice, credential):
    assert store.find_user_by_credentials('alice', credential) is None

def test_login_with_matching_credential(store, alice):
    user = store.find_user_by_credentials('alice', 'secret')
    assert user.username == 'alice'
    assert store.find_user_by_credentials('bob', 'secret') is None

def test_find_user_by_username_miss_is_absent(store):
    assert store.find_user_by_username('nobody') is None

def test_entries_are_scoped_to_their_owner(store, alice):
    store.create_user('bob', 'hunter2')
    entry = store.insert_weight_entry('alice', 150.0, START)

    assert [e.id for e in store.list_weight_entries_for_user('alice')] == [entry.id]
    assert store.list_weight_entries_for_user('bob') == []

def test_insert_for_unknown_owner_fails(store):
    with pytest.raises(ConstraintViolation):
        store.insert_weight_entry('ghost', 150.0, START)

def test_list_is_ordered_by_recorded_at(store, alice):
    for offset in [5, 1, 3, 2, 4]:
        store.insert_weight_entry('alice', 100.0 + offset, START + offset * MINUTE)

    entries = store.list_weight_entries_for_user('alice')
    assert [e.recorded_at for e in entries] == sorted(e.recorded_at for e in entries)
    assert weights(entries) == [101.0, 102.0, 103.0, 104.0, 105.0]

def test_insert_defaults_recorded_at_to_now(store, alice):
    entry = store.insert_weight_entry('alice', 150.0)
    assert entry.recorded_at > START

@pytest.mark.parametrize('value', ['', '  ', 'abc', None, True, math.nan, math.inf, -1, 0, [150], 10 ** 400, '1e400'])
def test_insert_rejects_invalid_weight(store, alice, value):
    with pytest.raises(ValidationError):
        store.insert_weight_entry('alice', value, START)
    assert store.list_weight_entries_for_user('alice') == []

def test_insert_accepts_numeric_text(store, alice):
    entry = store.insert_weight_entry('alice', ' 150.5 ', START)
    assert entry.weight_value == 150.5

def test_insert_rejects_non_integer_timestamp(store, alice):
    with pytest.raises(ValidationError):
        store.insert_weight_entry('alice', 150.0, '2024-01-01')

@pytest.mark.parametrize('recorded_at', [-1, 2 ** 63, 10 ** 20])
def test_insert_rejects_out_of_range_timestamp(store, alice, recorded_at):
    with pytest.raises(ValidationError):
        store.insert_weight_entry('alice', 150.0, recorded_at)
    assert store.list_weight_entries_for_user('alice') == []

def test_update_changes_only_weight(store, alice):
    entry = store.insert_weight_entry('alice', 150.0, START)

    updated = store.update_weight_entry(entry.id, 149.0)

    assert updated.weight_value == 149.0
    stored = store.get_weight_entry(entry.id)
    assert (stored.id, stored.owner_username, stored.recorded_at) == (entry.id, 'alice', START)
    assert stored.weight_value == 149.0

def test_update_missing_entry_returns_none(store, alice):
    assert store.update_weight_entry(999, 150.0) is None

def test_update_is_scoped_when_owner_given(store, alice):
    store.create_user('bob', 'hunter2')
    entry = store.insert_weight_entry('alice', 150.0, START)

    assert store.update_weight_entry(entry.id, 120.0, owner_username='bob') is None
    assert store.get_weight_entry(entry.id).weight_value == 150.0

def test_update_rejects_invalid_weight(store, alice):
    entry = store.insert_weight_entry('alice', 150.0, START)
    with pytest.raises(ValidationError):
        store.update_weight_entry(entry.id, 'heavy')
    assert store.get_weight_entry(entry.id).weight_value == 150.0

def test_delete_removes_only_that_entry(store, alice):
    store.create_user('bob', 'hunter2')
    first = store.insert_weight_entry('alice', 150.0, START)
    second = store.insert_weight_entry('alice', 148.5, START + MINUTE)
    bobs = store.insert_weight_entry('bob', 200.0, START)

    assert store.delete_weight_entry(first.id) is True

    assert [e.id for e in store.list_weight_entries_for_user('alice')] == [second.id]
    assert [e.id for e in store.list_weight_entries_for_user('bob')] == [bobs.id]

def test_delete_missing_entry_returns_false(store, alice):
    entry = store.insert_weight_entry('alice', 150.0, START)
    assert store.delete_weight_entry(entry.id) is True
    assert store.delete_weight_entry(entry.id) is False

def test_delete_is_scoped_when_owner_given(store, alice):
    store.create_user('bob', 'hunter2')
    entry = store.insert_weight_entry('alice', 150.0, START)

    assert store.delete_weight_entry(entry.id, owner_username='bob') is False
    assert store.get_weight_entry(entry.id) is not None
    assert store.get_weight_entry(entry.id, owner_username='bob') is None

def test_insert_update_round_trip(store, alice):
    entry = store.insert_weight_entry('alice', 150.0, START)

    [listed] = store.list_weight_entries_for_user('alice')
    assert listed.to_dict() == entry.to_dict()

    store.update_weight_entry(entry.id, 152.25)

    [listed] = store.list_weight_entries_for_user('alice')
    assert listed.id == entry.id
    assert listed.weight_value == 152.25

def test_alice_scenario(store):
    store.create_user('alice', 'secret')
    assert store.find_user_by_credentials('alice', 'secret') is not None
    assert store.find_user_by_credentials('alice', 'wrong') is None

    first = store.insert_weight_entry('alice', 150.0, START)
    store.insert_weight_entry('alice', 148.5, START + MINUTE)
    assert weights(store.list_weight_entries_for_user('alice')) == [150.0, 148.5]

    store.update_weight_entry(first.id, 149.0)
    assert weights(store.list_weight_entries_for_user('alice')) == [149.0, 148.5]

def test_to_dict_formats_date(store, alice):
    entry = store.insert_weight_entry('alice', 150.0, START)
    assert entry.to_dict() == {
        'id': entry.id,
        'username': 'alice',
        'recorded_at': START,
        'date': '2023-11-14',
        'weight': 150.0
    }

def test_closed_store_is_unavailable(store, alice):
    store.close()
    assert not store.is_open

    with pytest.raises(StorageUnavailable):
        store.find_user_by_username('alice')
    with pytest.raises(StorageUnavailable):
        store.insert_weight_entry('alice', 150.0, START)
    with pytest.raises(StorageUnavailable):
        store.subscribe_weight_entries('alice')
    with pytest.raises(StorageUnavailable):
        store.scope()

    # closing twice is harmless
    store.close()
