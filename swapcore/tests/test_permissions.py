"""
Tests for operation permissions.
"""

import pytest

from swapcore.errors import PermissionDeniedError
from swapcore.permissions import (
    OFFCHAIN_WRITE,
    ONCHAIN_READ,
    ONCHAIN_WRITE,
    OPERATION_PERMISSIONS,
    AuthorizationGate,
)


def test_every_operation_has_permissions():
    assert set(OPERATION_PERMISSIONS) == {
        "client_init",
        "service_init",
        "client_watch",
        "unspent_amount",
        "swap_state",
        "redeem_fees",
        "redeem",
        "refund",
    }
    assert all(OPERATION_PERMISSIONS.values())


def test_write_operations():
    assert OPERATION_PERMISSIONS["redeem"] == (ONCHAIN_WRITE,)
    assert OPERATION_PERMISSIONS["refund"] == (ONCHAIN_WRITE,)
    assert OPERATION_PERMISSIONS["service_init"] == (OFFCHAIN_WRITE,)


class TestAuthorizationGate:
    def test_granted(self):
        AuthorizationGate([ONCHAIN_READ]).check("unspent_amount")

    def test_missing_permission(self):
        gate = AuthorizationGate([ONCHAIN_READ])
        with pytest.raises(PermissionDeniedError, match="onchain:write"):
            gate.check("redeem")

    def test_explicit_grant_overrides_default(self):
        gate = AuthorizationGate()
        gate.check("redeem", granted=[ONCHAIN_WRITE])
        with pytest.raises(PermissionDeniedError):
            gate.check("redeem")

    def test_unknown_operation(self):
        with pytest.raises(PermissionDeniedError, match="Unknown operation"):
            AuthorizationGate([ONCHAIN_READ, ONCHAIN_WRITE, OFFCHAIN_WRITE]).check("open_channel")
