"""Tests for role checks."""

import pytest

from folio.access import grant_role, has_role, require_role, revoke_role
from folio.errors import UnauthorizedError
from folio.models import Role


@pytest.fixture
def roles():
    return {"admin": [Role.ADMIN], "launcher": [Role.AUCTION_LAUNCHER]}


class TestRoles:
    def test_public_held_by_everyone(self, roles):
        assert has_role(roles, "anyone", Role.PUBLIC)

    def test_explicit_roles(self, roles):
        assert has_role(roles, "admin", Role.ADMIN)
        assert not has_role(roles, "admin", Role.AUCTION_LAUNCHER)
        assert not has_role(roles, "anyone", Role.ADMIN)

    def test_require_returns_first_held(self, roles):
        assert require_role(roles, "launcher", Role.AUCTION_LAUNCHER, Role.PUBLIC) == Role.AUCTION_LAUNCHER
        assert require_role(roles, "anyone", Role.AUCTION_LAUNCHER, Role.PUBLIC) == Role.PUBLIC

    def test_require_rejects(self, roles):
        with pytest.raises(UnauthorizedError, match="REBALANCE_MANAGER"):
            require_role(roles, "launcher", Role.REBALANCE_MANAGER)

    def test_grant_is_idempotent(self, roles):
        grant_role(roles, "manager", Role.REBALANCE_MANAGER)
        grant_role(roles, "manager", Role.REBALANCE_MANAGER)
        assert roles["manager"] == [Role.REBALANCE_MANAGER]

    def test_public_is_never_stored(self, roles):
        grant_role(roles, "anyone", Role.PUBLIC)
        assert "anyone" not in roles

    def test_revoke(self, roles):
        revoke_role(roles, "launcher", Role.AUCTION_LAUNCHER)
        assert not has_role(roles, "launcher", Role.AUCTION_LAUNCHER)
        revoke_role(roles, "nobody", Role.ADMIN)
