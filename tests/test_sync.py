import threading

import pytest

from serverkit.sync import Cond, Locker, Semaphore


def test_semaphore_wait_times_out_without_post():
    sem = Semaphore()
    assert sem.wait(timeout=0.05) is False


def test_semaphore_counts_posts():
    sem = Semaphore()
    assert sem.post() is True
    assert sem.post() is True
    assert sem.wait(timeout=1) is True
    assert sem.wait(timeout=1) is True
    assert sem.wait(timeout=0.05) is False


def test_semaphore_posted_from_other_thread():
    sem = Semaphore()
    threading.Timer(0.05, sem.post).start()
    assert sem.wait(timeout=5) is True


def test_locker_excludes_other_threads():
    locker = Locker()
    acquired = threading.Event()

    def grab():
        locker.lock()
        acquired.set()
        locker.unlock()

    assert locker.lock() is True
    worker = threading.Thread(target=grab)
    worker.start()
    assert not acquired.wait(0.1)
    assert locker.unlock() is True
    assert acquired.wait(5)
    worker.join(5)


def test_locker_context_manager_releases():
    locker = Locker()
    with locker:
        pass
    assert locker.lock() is True
    locker.unlock()


def test_locker_unlock_when_not_held_raises():
    with pytest.raises(RuntimeError):
        Locker().unlock()


def test_cond_wait_times_out():
    assert Cond().wait(timeout=0.05) is False


def test_cond_signal_wakes_waiter():
    cond = Cond()
    results = []
    worker = threading.Thread(target=lambda: results.append(cond.wait(timeout=5)))
    worker.start()
    while worker.is_alive():
        assert cond.signal() is True
        worker.join(0.01)
    assert results == [True]