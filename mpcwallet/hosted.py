"""
Host side of the DKG run.

The host plays two of the three parties itself (server = 2, recovery = 3)
against one remote device (client = 1), so the device gets a 2-of-3 key after
a single conversation. The price is that during generation the host is
trusted with two parties; HostedPartyPair is where that trust lives.

Message sequence per connection:

    remote -> host   {"type": "init"}
    host -> remote   {"type": "commitments", "commitments": {2: [...], 3: [...]}}
    remote -> host   {"type": "commitments", "commitments": [...]}
    host -> remote   {"type": "shares", "shares": {2: hex, 3: hex}}
    remote -> host   {"type": "shares", "shares": {2: hex, 3: hex}, "address": optional}
    host -> remote   {"type": "complete", "address", "publicKey", "recoveryShare"}

Any failure is answered with {"type": "error", "kind", "message"} and ends the run.
"""

import logging
import threading
import time
from typing import Dict, List, Optional, Tuple

from .config import DEFAULT_SESSION_TTL
from .curve import point_to_hex
from .dkg import (CLIENT_INDEX, RECOVERY_INDEX, SERVER_INDEX, THRESHOLD, TOTAL_PARTIES,
                  FinalOutput, KeyShareSession)
from .errors import AddressMismatch, MalformedInput, MPCWalletError, ProtocolViolation
from .messages import CommitmentsMessage, InitMessage, SharesMessage, parse_dkg_message
from .store import ShareStore

logger = logging.getLogger(__name__)


class HostedPartyPair:
    """Server and recovery parties running side by side in this process."""

    def __init__(self):
        self.server = KeyShareSession(SERVER_INDEX, TOTAL_PARTIES, THRESHOLD)
        self.recovery = KeyShareSession(RECOVERY_INDEX, TOTAL_PARTIES, THRESHOLD)

    def commitments_broadcast(self) -> Dict[int, List[str]]:
        return {
            SERVER_INDEX: self.server.get_commitments_broadcast(),
            RECOVERY_INDEX: self.recovery.get_commitments_broadcast(),
        }

    def accept_client_commitments(self, client_commitments: List[str]) -> Dict[int, str]:
        """Returns the two shares destined for the client."""
        self.server.receive_commitment(CLIENT_INDEX, client_commitments)
        self.recovery.receive_commitment(CLIENT_INDEX, client_commitments)
        # never on the wire: both parties live here.
        self.server.receive_commitment(RECOVERY_INDEX, self.recovery.get_commitments_broadcast())
        self.recovery.receive_commitment(SERVER_INDEX, self.server.get_commitments_broadcast())
        return {
            SERVER_INDEX: self.server.get_share_for_party(CLIENT_INDEX),
            RECOVERY_INDEX: self.recovery.get_share_for_party(CLIENT_INDEX),
        }

    def accept_client_shares(self, client_shares: Dict[int, str]) -> Tuple[FinalOutput, FinalOutput]:
        if SERVER_INDEX not in client_shares or RECOVERY_INDEX not in client_shares:
            raise MalformedInput("Shares for both party 2 and party 3 are required")
        self.server.receive_share(CLIENT_INDEX, client_shares[SERVER_INDEX])
        self.recovery.receive_share(CLIENT_INDEX, client_shares[RECOVERY_INDEX])

        self.recovery.receive_share(SERVER_INDEX, self.server.get_share_for_party(RECOVERY_INDEX))
        self.server.receive_share(RECOVERY_INDEX, self.recovery.get_share_for_party(SERVER_INDEX))

        server_out = self.server.finalize()
        recovery_out = self.recovery.finalize()
        if server_out.address != recovery_out.address:
            raise AddressMismatch(
                f"Server derived {server_out.address}, recovery derived {recovery_out.address}")
        return server_out, recovery_out

    def burn(self):
        self.server.burn()
        self.recovery.burn()


class SessionRegistry:
    """
    Owns every live HostedPartyPair, keyed by connection id. An entry leaves
    the registry on completion, error, disconnect or after idling for ttl seconds;
    leaving always burns it.
    """

    def __init__(self, ttl: float = DEFAULT_SESSION_TTL, clock=time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._sessions: Dict[str, list] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings) -> "SessionRegistry":
        return cls(ttl=settings.session_ttl)

    def __len__(self):
        return len(self._sessions)

    def __contains__(self, connection_id):
        return connection_id in self._sessions

    def create(self, connection_id: str) -> HostedPartyPair:
        self.expire_idle()
        pair = HostedPartyPair()
        with self._lock:
            taken = connection_id in self._sessions
            if not taken:
                self._sessions[connection_id] = [pair, self._clock()]
        if taken:
            pair.burn()
            raise ProtocolViolation(f"Connection {connection_id} already has a DKG session")
        return pair

    def get(self, connection_id: str) -> Optional[HostedPartyPair]:
        self.expire_idle()
        with self._lock:
            entry = self._sessions.get(connection_id)
            if entry is None:
                return None
            entry[1] = self._clock()
            return entry[0]

    def discard(self, connection_id: str) -> bool:
        with self._lock:
            entry = self._sessions.pop(connection_id, None)
        if entry is None:
            return False
        entry[0].burn()
        return True

    def expire_idle(self, now: Optional[float] = None) -> List[str]:
        now = self._clock() if now is None else now
        with self._lock:
            stale = [cid for cid, (_, seen) in self._sessions.items() if now - seen > self.ttl]
            expired = [(cid, self._sessions.pop(cid)[0]) for cid in stale]
        for cid, pair in expired:
            pair.burn()
            logger.info("Expired idle DKG session for %s", cid)
        return [cid for cid, _ in expired]


class DKGHost:
    """Transport agnostic handler: feed it messages, send back what it returns."""

    def __init__(self, store: ShareStore, registry: Optional[SessionRegistry] = None):
        self.store = store
        self.registry = registry if registry is not None else SessionRegistry()

    def handle(self, connection_id: str, message: dict) -> dict:
        try:
            parsed = parse_dkg_message(message)
            if isinstance(parsed, InitMessage):
                return self._on_init(connection_id)
            if isinstance(parsed, CommitmentsMessage):
                return self._on_commitments(connection_id, parsed)
            return self._on_shares(connection_id, parsed)
        except MPCWalletError as e:
            logger.warning("DKG for %s failed with %s: %s", connection_id, e.kind, e)
            self.registry.discard(connection_id)
            return {"type": "error", "kind": e.kind, "message": str(e)}
        except Exception:
            self.registry.discard(connection_id)
            raise

    def disconnect(self, connection_id: str):
        if self.registry.discard(connection_id):
            logger.info("Burned DKG session for disconnected %s", connection_id)

    def _session(self, connection_id) -> HostedPartyPair:
        pair = self.registry.get(connection_id)
        if pair is None:
            raise ProtocolViolation("No DKG session for this connection, send init first")
        return pair

    def _on_init(self, connection_id):
        logger.info("DKG init for %s", connection_id)
        pair = self.registry.create(connection_id)
        return {"type": "commitments", "commitments": pair.commitments_broadcast()}

    def _on_commitments(self, connection_id, message: CommitmentsMessage):
        pair = self._session(connection_id)
        shares = pair.accept_client_commitments(message.commitments)
        return {"type": "shares", "shares": shares}

    def _on_shares(self, connection_id, message: SharesMessage):
        pair = self._session(connection_id)
        server_out, recovery_out = pair.accept_client_shares(message.shares)

        client_address = message.address
        if client_address is not None and client_address.lower() != server_out.address.lower():
            raise AddressMismatch(
                f"Client derived {client_address}, host derived {server_out.address}")

        public_key = point_to_hex(server_out.public_key)
        recovery_share = recovery_out.to_dict()
        self.store.save_share(server_out.address, server_out.to_dict()["share"], public_key)
        self.registry.discard(connection_id)
        logger.info("DKG complete for %s: %s", connection_id, server_out.address)
        return {
            "type": "complete",
            "address": server_out.address,
            "publicKey": public_key,
            "recoveryShare": recovery_share,
        }
