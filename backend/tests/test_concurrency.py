"""
Concurrent approval tests against a file-backed SQLite database.

Two admins approve competing requests for the same item at the same moment.
Exactly one approval may win; the other must be told its request is gone.
"""

import threading

import pytest

from tracker import create_app
from tracker.errors import RequestNoLongerPendingError
from tracker.extensions import db
from tracker.models import HistoryEntry, User
from tracker.services import arbitration_service, item_service, request_queue_service, user_service


@pytest.fixture
def concurrent_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.db'}",
        'TRACKER_RETRY_ATTEMPTS': 5,
        'TRACKER_RETRY_BACKOFF': 0.01,
    })
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _seed(app):
    with app.app_context():
        users = {
            name: User(username=name, role=role)
            for name, role in (("admin1", "admin"), ("admin2", "admin"), ("alice", "employee"), ("bob", "employee"))
        }
        db.session.add_all(users.values())
        db.session.commit()

        item = arbitration_service.create_item(users["admin1"], "Pallet jack", "PJ-1")
        req_a = arbitration_service.submit_request(item.id, users["alice"], "use")
        req_b = arbitration_service.submit_request(item.id, users["bob"], "use")
        return {
            "item_id": item.id,
            "admin_ids": (users["admin1"].id, users["admin2"].id),
            "request_ids": (req_a.id, req_b.id),
            "user_ids": (users["alice"].id, users["bob"].id),
        }


def test_competing_approvals_have_one_winner(concurrent_app):
    seeded = _seed(concurrent_app)
    results = []
    lock = threading.Lock()
    barrier = threading.Barrier(2)

    def worker(admin_id, request_id):
        with concurrent_app.app_context():
            try:
                admin = user_service.get_user(admin_id)
                barrier.wait()
                arbitration_service.approve_request(request_id, admin)
                with lock:
                    results.append("ok")
            except Exception as exc:
                with lock:
                    results.append(exc)
            finally:
                db.session.remove()

    threads = [
        threading.Thread(target=worker, args=(admin_id, request_id))
        for admin_id, request_id in zip(seeded["admin_ids"], seeded["request_ids"])
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count("ok") == 1
    losers = [r for r in results if r != "ok"]
    assert len(losers) == 1
    assert isinstance(losers[0], RequestNoLongerPendingError)

    with concurrent_app.app_context():
        item = item_service.get_item(seeded["item_id"])
        assert item.status == "used"
        assert item.last_used_by in seeded["user_ids"]
        assert request_queue_service.list_for_item(item.id) == []

        borrowed = db.session.query(HistoryEntry).filter_by(item_id=item.id, action="borrowed").count()
        rejected = db.session.query(HistoryEntry).filter_by(item_id=item.id, action="rejected").count()
        assert borrowed == 1
        assert rejected == 1


def test_competing_submissions_do_not_duplicate(concurrent_app):
    seeded = _seed(concurrent_app)
    alice_id = seeded["user_ids"][0]
    with concurrent_app.app_context():
        # Clear the seeded queue so both threads race for the same empty slot
        request_queue_service.remove_all_for_item(seeded["item_id"])
        db.session.commit()

    results = []
    lock = threading.Lock()
    barrier = threading.Barrier(2)

    def worker():
        with concurrent_app.app_context():
            try:
                alice = user_service.get_user(alice_id)
                barrier.wait()
                arbitration_service.submit_request(seeded["item_id"], alice, "use")
                with lock:
                    results.append("ok")
            except Exception as exc:
                with lock:
                    results.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count("ok") == 1
    with concurrent_app.app_context():
        assert len(request_queue_service.list_for_item(seeded["item_id"])) == 1
