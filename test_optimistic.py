"""
Unit tests for optimistic module.
"""

from elysian_admin.errors import ApiError
from elysian_admin.optimistic import OptimisticField
from elysian_admin.outcome import OutcomeKind


def test_propose_shows_pending_value():
    field = OptimisticField("user", label="role")
    assert field.propose("admin")
    assert field.in_flight
    assert field.displayed == "admin"
    assert field.committed == "user"


def test_propose_same_value_is_rejected():
    field = OptimisticField("user", label="role")
    assert not field.propose("user")
    assert not field.in_flight


def test_confirm_and_rollback():
    field = OptimisticField("user", label="role")
    field.propose("admin")
    field.confirm()
    assert field.committed == "admin"
    assert not field.in_flight

    field.propose("user")
    field.rollback()
    assert field.committed == "admin"
    assert field.displayed == "admin"
    assert field.previous is None


def test_apply_success():
    field = OptimisticField("user", label="role")
    written = []

    outcome = field.apply("admin", written.append)

    assert outcome.ok
    assert outcome.message == 'Role changed to "admin"'
    assert written == ["admin"]
    assert field.committed == "admin"


def test_apply_failure_rolls_back():
    field = OptimisticField("user", label="role")
    seen_during_write = []

    def writer(value):
        seen_during_write.append(field.displayed)
        raise ApiError(403, {"error": "forbidden"}, "PUT", "/api/users/bob/role")

    outcome = field.apply("admin", writer)

    assert outcome.kind == OutcomeKind.REMOTE
    assert outcome.message == "Failed to change role"
    assert seen_during_write == ["admin"]
    assert field.displayed == "user"
    assert not field.in_flight


def test_apply_unchanged_is_skipped():
    field = OptimisticField("user", label="role")
    outcome = field.apply("user", lambda value: None)
    assert outcome.kind == OutcomeKind.SKIPPED
    assert outcome.message == "Role unchanged"
