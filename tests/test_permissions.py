"""Tests for the permission policy."""
from __future__ import annotations

from scorebot.data_models.report import GameRecordSnapshot, ReportField
from scorebot.operations.permissions import PermissionPolicy

from tests.fakes import ADMIN, ALICE, BIG_ADMIN, BOB, CAROL


def _record(reporter_id=ALICE):
    return GameRecordSnapshot(
        message_id=1,
        channel_id=2,
        guild_id=3,
        reporter_id=reporter_id,
        command="!score",
        fields=(ReportField(ALICE, "10"), ReportField(BOB, "5")),
    )


def test_admin_predicates(policy):
    assert policy.is_admin(ADMIN)
    assert policy.can_certify(ADMIN)
    assert not policy.is_big_admin(ADMIN)
    assert not policy.can_force_validate(ADMIN)

    assert policy.can_force_validate(BIG_ADMIN)
    assert not policy.can_certify(ALICE)


def test_self_tag():
    policy = PermissionPolicy([], [])

    assert policy.is_self_tag(ALICE, ReportField(ALICE, "10"))
    assert not policy.is_self_tag(ALICE, ReportField(BOB, "10"))


def test_peer_validation_requires_tagged_non_reporter(policy):
    record = _record(reporter_id=ALICE)

    assert policy.is_peer_validation(BOB, record)
    assert not policy.is_peer_validation(ALICE, record)
    assert not policy.is_peer_validation(CAROL, record)
    assert not policy.is_peer_validation(BOB, None)


def test_sets_are_copied_at_construction():
    admins = {ADMIN}
    policy = PermissionPolicy(admins, [])
    admins.add(ALICE)

    assert not policy.is_admin(ALICE)
