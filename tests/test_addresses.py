import random
import threading
import time

import pytest
from sqlalchemy.exc import OperationalError

from grocery_service.app.addresses import AddressBook
from grocery_service.app.context import SessionContext
from grocery_service.app.database import make_engine, make_session_factory
from grocery_service.app.errors import ConstraintViolation, NotFound, StorageError
from grocery_service.app import models

from conftest import make_address


@pytest.fixture
def book(context):
    return AddressBook(context)


def test_first_address_becomes_default_even_if_not_requested(book):
    result = book.add(make_address(is_default=False))
    assert result.ok
    assert result.value.is_default
    assert book.get_default().id == result.value.id
    assert book.default_count() == 1


def test_second_address_not_default_unless_requested(book):
    first = book.add(make_address("A")).value
    second = book.add(make_address("B")).value
    assert not second.is_default
    assert book.get_default().id == first.id


def test_add_with_default_moves_the_flag(book):
    book.add(make_address("A"))
    second = book.add(make_address("B", is_default=True)).value
    assert book.get_default().id == second.id
    assert book.default_count() == 1


def test_list_default_first_then_newest(book):
    a = book.add(make_address("A")).value
    b = book.add(make_address("B")).value
    c = book.add(make_address("C")).value
    assert [x.id for x in book.list()] == [a.id, c.id, b.id]
    book.set_default(b.id)
    assert [x.id for x in book.list()] == [b.id, c.id, a.id]


def test_set_default_unknown_id_keeps_previous_default(book):
    a = book.add(make_address("A")).value
    result = book.set_default("missing")
    assert not result.ok
    assert isinstance(result.error, NotFound)
    assert book.get_default().id == a.id


def test_failure_between_clear_and_set_rolls_back(book, monkeypatch):
    a = book.add(make_address("A")).value
    b = book.add(make_address("B")).value

    def broken(db, address_id):
        raise OperationalError("UPDATE addresses", {}, Exception("disk I/O error"))

    monkeypatch.setattr(book, "_mark_default", broken)
    result = book.set_default(b.id)
    assert not result.ok
    assert isinstance(result.error, StorageError)
    assert result.reason
    assert book.get_default().id == a.id
    assert book.default_count() == 1


def test_delete_default_leaves_no_default(book):
    a = book.add(make_address("A")).value
    book.add(make_address("B"))
    assert book.delete(a.id).ok
    assert book.get_default() is None
    assert len(book.list()) == 1


def test_delete_missing_returns_not_found(book):
    result = book.delete("missing")
    assert isinstance(result.error, NotFound)


def test_add_with_existing_id_replaces(book):
    a = book.add(make_address("A")).value
    replaced = book.add(make_address("A2", id=a.id, city="Pune")).value
    assert replaced.id == a.id
    assert [x.city for x in book.list()] == ["Pune"]
    assert book.get(a.id).name == "A2"


def test_two_defaults_are_detected(book, session_factory, context):
    book.add(make_address("A"))
    b = book.add(make_address("B")).value
    db = session_factory()
    db.query(models.Address).filter(models.Address.id == b.id).update({models.Address.is_default: True})
    db.commit()
    db.close()
    with pytest.raises(ConstraintViolation):
        book.get_default()


def test_addresses_stream_republishes_after_writes(book):
    seen = []
    book.addresses.subscribe(seen.append, replay=False)
    a = book.add(make_address("A")).value
    book.delete(a.id)
    assert [len(x) for x in seen] == [1, 0]


@pytest.mark.parametrize("seed", range(8))
def test_never_two_defaults_for_random_sequences(book, seed):
    rng = random.Random(seed)
    ids = []
    for step in range(40):
        op = rng.choice(["add", "add_default", "set_default", "delete"])
        if op in ("add", "add_default") or not ids:
            created = book.add(make_address(f"N{step}", is_default=(op == "add_default"))).value
            ids.append(created.id)
        elif op == "set_default":
            book.set_default(rng.choice(ids))
        else:
            victim = rng.choice(ids)
            book.delete(victim)
            ids.remove(victim)
        assert book.default_count() in (0, 1)


def test_default_count_wraps_storage_failures(book, monkeypatch):
    def broken(db):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(book, "_query", broken)
    with pytest.raises(StorageError):
        book.default_count()


def test_stream_publications_follow_commit_order(book, monkeypatch):
    real_list = book.list
    first_read_done = threading.Event()
    calls = []

    def slow_list():
        rows = real_list()
        calls.append(len(rows))
        if len(calls) == 1:
            first_read_done.set()
            time.sleep(0.2)
        return rows

    monkeypatch.setattr(book, "list", slow_list)
    writer_a = threading.Thread(target=book.add, args=(make_address("A"),))
    writer_a.start()
    assert first_read_done.wait(5)
    writer_b = threading.Thread(target=book.add, args=(make_address("B"),))
    writer_b.start()
    writer_a.join()
    writer_b.join()

    assert calls == [1, 2]
    assert len(book.addresses.value) == 2


@pytest.fixture
def file_book(tmp_path, producer, clock):
    factory = make_session_factory(make_engine(f"sqlite:///{tmp_path}/addresses.db"))
    return AddressBook(SessionContext(db=factory, producer=producer, clock=clock))


def test_concurrent_default_changes_leave_one_default(file_book):
    ids = [file_book.add(make_address(f"S{i}")).value.id for i in range(4)]
    errors = []

    def worker(n):
        for step in range(5):
            if (n + step) % 2:
                result = file_book.set_default(ids[(n + step) % len(ids)])
            else:
                result = file_book.add(make_address(f"T{n}-{step}", is_default=True))
            if not result.ok:
                errors.append(result.reason)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert file_book.default_count() == 1
    # Even workers add three times, odd workers twice.
    assert len(file_book.list()) == 4 + 4 * 3 + 4 * 2
    assert sum(1 for a in file_book.addresses.value if a.is_default) == 1
