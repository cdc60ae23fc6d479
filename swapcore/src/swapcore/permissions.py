"""
Permissions required by each exposed swap operation.

Credential minting and verification live in the transport layer; this module
only states what each operation needs and checks a granted set against it.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import NamedTuple

from swapcore.errors import PermissionDeniedError


class Permission(NamedTuple):
    entity: str
    action: str


ONCHAIN_READ = Permission("onchain", "read")
ONCHAIN_WRITE = Permission("onchain", "write")
OFFCHAIN_WRITE = Permission("offchain", "write")

OPERATION_PERMISSIONS: dict[str, tuple[Permission, ...]] = {
    "client_init": (OFFCHAIN_WRITE,),
    "service_init": (OFFCHAIN_WRITE,),
    "client_watch": (ONCHAIN_READ,),
    "unspent_amount": (ONCHAIN_READ,),
    "swap_state": (ONCHAIN_READ,),
    "redeem_fees": (ONCHAIN_READ,),
    "redeem": (ONCHAIN_WRITE,),
    "refund": (ONCHAIN_WRITE,),
}


class AuthorizationGate:
    """Checks a caller's granted permissions before an operation runs."""

    def __init__(self, granted: Iterable[Permission] = ()):
        self.granted = frozenset(granted)

    def check(self, operation: str, granted: Iterable[Permission] | None = None) -> None:
        """
        Raises:
            PermissionDeniedError: If the operation is unknown or a required
                permission is missing
        """
        required = OPERATION_PERMISSIONS.get(operation)
        if required is None:
            raise PermissionDeniedError(f"Unknown operation: {operation}")

        have = self.granted if granted is None else frozenset(granted)
        missing = [p for p in required if p not in have]
        if missing:
            names = ", ".join(f"{p.entity}:{p.action}" for p in missing)
            raise PermissionDeniedError(f"Operation {operation} requires {names}")
