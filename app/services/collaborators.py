"""
External collaborators the pipeline talks to through awaited calls.

  PhotoStore        reference / inline payload -> raw bytes
  RewardIssuer      IssuanceRequest -> IssuanceReceipt   (raises IssuanceError)
  UserProfileStore  user id -> (UserProfile, history)

The defaults below run fully in-process so the service works end to end
without IPFS or a chain node. Swap them at orchestrator construction.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from app.core.errors import IssuanceError, PhotoNotFoundError
from app.services.submission import HistoryEntry, PhotoData, UserProfile

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Photo store
# ---------------------------------------------------------------------------

class PhotoStore(Protocol):
    async def fetch(self, reference: PhotoData) -> bytes: ...


class InlinePhotoStore:
    """
    Resolves raw bytes, base64 / data-URI strings, and references that were
    registered up front (e.g. an IPFS hash pinned by the upload handler).
    """

    def __init__(self, registered: Optional[dict[str, bytes]] = None):
        self._registered = dict(registered or {})

    def register(self, reference: str, data: bytes) -> None:
        self._registered[reference] = data

    async def fetch(self, reference: PhotoData) -> bytes:
        if isinstance(reference, (bytes, bytearray)):
            return bytes(reference)
        if reference in self._registered:
            return self._registered[reference]
        payload = reference.split(",", 1)[1] if reference.startswith("data:") else reference
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise PhotoNotFoundError(reference[:64]) from exc


# ---------------------------------------------------------------------------
# Reward issuer
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IssuanceRequest:
    recipient: str
    amount: float
    tier: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class IssuanceReceipt:
    transaction_reference: str
    estimated_fee: str
    confirmation: dict[str, Any]


class RewardIssuer(Protocol):
    async def issue(self, request: IssuanceRequest) -> IssuanceReceipt: ...


_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


class SimulatedRewardIssuer:
    """
    Deterministic stand-in for the token contract. The transaction reference
    is a digest of (contract, recipient, amount, process id), so re-issuing
    the same decision yields the same reference.
    """

    def __init__(
        self,
        token_contract: str,
        network: str = "base",
        budget: Optional[float] = None,
    ):
        self.token_contract = token_contract
        self.network = network
        self._budget = budget
        self._lock = threading.Lock()

    async def issue(self, request: IssuanceRequest) -> IssuanceReceipt:
        if not _ADDRESS_RE.match(request.recipient or ""):
            raise IssuanceError(
                IssuanceError.INVALID_RECIPIENT,
                f"'{request.recipient}' is not a valid wallet address",
            )
        if request.amount <= 0:
            raise IssuanceError(
                IssuanceError.INVALID_AMOUNT, f"amount must be positive, got {request.amount:g}"
            )

        with self._lock:
            if self._budget is not None:
                if request.amount > self._budget:
                    raise IssuanceError(
                        IssuanceError.INSUFFICIENT_FUNDS,
                        f"treasury holds {self._budget:g} GREEN, {request.amount:g} requested",
                    )
                self._budget -= request.amount

        seed = ":".join([
            self.token_contract,
            request.recipient.lower(),
            f"{request.amount:.4f}",
            str(request.metadata.get("process_id", "")),
        ])
        digest = hashlib.sha256(seed.encode()).hexdigest()
        logger.info("Issued %.4f GREEN to %s on %s", request.amount, request.recipient, self.network)
        return IssuanceReceipt(
            transaction_reference="0x" + digest,
            estimated_fee="0.001 ETH",
            confirmation={
                "confirmed": True,
                "network": self.network,
                "block_number": 18_000_000 + int(digest[:8], 16) % 1_000_000,
                "gas_used": "21000",
            },
        )


# ---------------------------------------------------------------------------
# User profile store
# ---------------------------------------------------------------------------

class UserProfileStore(Protocol):
    async def load(self, user_id: str) -> tuple[UserProfile, tuple[HistoryEntry, ...]]: ...


class InMemoryUserProfileStore:
    """Read-only from the pipeline's point of view; `put` is for wiring and tests."""

    def __init__(self):
        self._profiles: dict[str, tuple[UserProfile, tuple[HistoryEntry, ...]]] = {}

    def put(self, user_id: str, profile: UserProfile, history: tuple[HistoryEntry, ...] = ()) -> None:
        self._profiles[user_id] = (profile, tuple(history))

    async def load(self, user_id: str) -> tuple[UserProfile, tuple[HistoryEntry, ...]]:
        return self._profiles.get(user_id, (UserProfile(user_id=user_id), ()))
