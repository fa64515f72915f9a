"""
Joint-Feldman distributed key generation, one session per party.

The scheme is based on values t, n
t = number of shares needed to sign (threshold)
n = total number of parties.

Simplified protocol:
1. Each party creates a polynomial of degree t-1 and broadcasts commitments to
   its coefficients.
2. Each party sends f_i(j) privately to every other party j, who checks it
   against the commitments of i.
3. Each party adds up the shares it received. In the end all of them hold a
   point on a polynomial that no one knows about, whose constant term is the
   wallet private key. Any t of them can recover it.
"""

import enum
import logging
from collections import namedtuple
from typing import Dict, List, Optional

from .curve import (address_from_point, ec_sum, order, point_from_hex,
                    point_to_hex, scalar_from_hex, scalar_to_hex)
from .errors import (AlreadyFinalized, IncompleteContribution, InvalidShare,
                     MalformedInput, MissingCommitments, ProtocolViolation,
                     SessionAborted)
from .feldman import (commitments, evaluate_polynomial, generate_polynomial,
                      random_scalar, verify_share)

logger = logging.getLogger(__name__)

CLIENT_INDEX = 1
SERVER_INDEX = 2
RECOVERY_INDEX = 3
TOTAL_PARTIES = 3
THRESHOLD = 2


def party_index(key) -> int:
    """JSON object keys arrive as strings."""
    if isinstance(key, bool):
        raise MalformedInput(f"Invalid party index {key!r}")
    if isinstance(key, int):
        return key
    # str.isdigit() is also true for "²" and friends.
    if isinstance(key, str) and key.isascii() and key.isdigit():
        return int(key)
    raise MalformedInput(f"Invalid party index {key!r}")


class SessionState(enum.Enum):
    INITIALIZED = 1
    COMMITMENTS_SENT = 2
    SHARES_DISTRIBUTED = 3
    FINALIZED = 4
    ABORTED = 5


class FinalOutput(namedtuple("FinalOutput", "index share public_key address")):
    def to_dict(self):
        return {
            "index": self.index,
            "share": scalar_to_hex(self.share),
            "publicKey": point_to_hex(self.public_key),
            "address": self.address,
        }


class KeyShareSession:
    """
    DKG state for a single party. A session runs exactly once: after
    finalize or an abort it has to be thrown away.
    """

    def __init__(self, index: int, total_parties: int = TOTAL_PARTIES, threshold: int = THRESHOLD):
        if not 1 < threshold <= total_parties:
            raise ValueError(f"Threshold {threshold} does not fit {total_parties} parties")
        if not 1 <= index <= total_parties:
            raise ValueError(f"Party index {index} outside 1..{total_parties}")
        self.index = index
        self.total_parties = total_parties
        self.threshold = threshold
        self.state = SessionState.INITIALIZED

        self._polynomial = generate_polynomial(random_scalar(), threshold - 1)
        self.commitments = commitments(self._polynomial)
        # a party trusts itself: loopback share and commitments.
        self.received_commitments: Dict[int, list] = {index: self.commitments}
        self._received_shares: Dict[int, int] = {
            index: evaluate_polynomial(self._polynomial, index)}
        self._shares_sent = set()
        self._output: Optional[FinalOutput] = None

    def __repr__(self):
        return f"KeyShareSession(index={self.index}, state={self.state.name})"

    @property
    def output(self) -> Optional[FinalOutput]:
        return self._output

    def _check_open(self):
        if self.state is SessionState.ABORTED:
            raise SessionAborted(f"Party {self.index} session was aborted")
        if self.state is SessionState.FINALIZED:
            raise AlreadyFinalized(f"Party {self.index} session is already finalized")

    def _check_peer(self, from_index):
        if not isinstance(from_index, int) or isinstance(from_index, bool):
            raise MalformedInput(f"Party index must be an int, got {from_index!r}")
        if not 1 <= from_index <= self.total_parties:
            raise MalformedInput(f"Party index {from_index} outside 1..{self.total_parties}")
        if from_index == self.index:
            raise ProtocolViolation(f"Party {self.index} cannot receive from itself")

    def _abort(self, reason):
        logger.warning("Aborting DKG session for party %d: %s", self.index, reason)
        self.burn()

    def get_commitments_broadcast(self) -> List[str]:
        self._check_open()
        if self.state is SessionState.INITIALIZED:
            self.state = SessionState.COMMITMENTS_SENT
        return [point_to_hex(C) for C in self.commitments]

    def get_share_for_party(self, target: int) -> str:
        """
        f_self(target). The value is secret: the transport carrying it has to be
        authenticated and confidential.
        """
        self._check_open()
        self._check_peer(target)
        if self.state is SessionState.INITIALIZED:
            raise ProtocolViolation("Commitments must be broadcast before any share is handed out")
        if target in self._shares_sent:
            raise ProtocolViolation(f"Share for party {target} was already handed out")
        self._shares_sent.add(target)
        self.state = SessionState.SHARES_DISTRIBUTED
        return scalar_to_hex(evaluate_polynomial(self._polynomial, target))

    def receive_commitment(self, from_index: int, commitment_hex: List[str]):
        self._check_open()
        self._check_peer(from_index)
        if from_index in self.received_commitments:
            raise ProtocolViolation(f"Commitments from party {from_index} already received")
        if not isinstance(commitment_hex, (list, tuple)):
            raise MalformedInput(f"Commitments from party {from_index} must be a list")
        if len(commitment_hex) != self.threshold:
            raise MalformedInput(
                f"Party {from_index} sent {len(commitment_hex)} commitments, expected {self.threshold}")
        self.received_commitments[from_index] = [point_from_hex(c) for c in commitment_hex]
        logger.debug("Party %d stored commitments from party %d", self.index, from_index)

    def receive_share(self, from_index: int, share_hex: str):
        self._check_open()
        self._check_peer(from_index)
        if from_index in self._received_shares:
            raise ProtocolViolation(f"Share from party {from_index} already received")
        comms = self.received_commitments.get(from_index)
        if comms is None:
            raise MissingCommitments(f"No commitments found for party {from_index}")
        share = scalar_from_hex(share_hex, "share")
        if not verify_share(share, self.index, comms):
            self._abort(f"share from party {from_index} failed Feldman verification")
            raise InvalidShare(f"Invalid share received from party {from_index}")
        self._received_shares[from_index] = share
        logger.debug("Party %d verified share from party %d", self.index, from_index)

    def finalize(self) -> FinalOutput:
        self._check_open()
        if self.state is not SessionState.SHARES_DISTRIBUTED:
            raise ProtocolViolation(
                f"Party {self.index} cannot finalize before distributing its shares")
        senders = set(self._received_shares)
        if len(senders) != self.total_parties or not senders <= set(self.received_commitments):
            missing = sorted(set(range(1, self.total_parties + 1)) - senders)
            raise IncompleteContribution(f"Missing shares from parties {missing}")

        share = sum(self._received_shares.values()) % order
        # every received set counted once, own set included via the loopback.
        public_key = ec_sum(comms[0] for comms in self.received_commitments.values())
        self._output = FinalOutput(self.index, share, public_key, address_from_point(public_key))
        self.state = SessionState.FINALIZED
        self._polynomial = None
        self._received_shares = {}
        logger.info("Party %d finalized DKG for %s", self.index, self._output.address)
        return self._output

    def burn(self):
        """Drop every secret this session holds. A burnt session is aborted for good."""
        self.state = SessionState.ABORTED
        self._polynomial = None
        self._received_shares = {}
        self._output = None


class ClientSession(KeyShareSession):
    """
    The remote device's side of the run (party 1). It talks to the server and
    recovery parties through a single conversation, so it takes and hands out
    their data in batches keyed by party index.
    """

    def __init__(self, index: int = CLIENT_INDEX, total_parties: int = TOTAL_PARTIES,
                 threshold: int = THRESHOLD):
        super().__init__(index, total_parties, threshold)

    def receive_commitments(self, commitment_map: Dict[int, List[str]]):
        for index, comms in commitment_map.items():
            self.receive_commitment(party_index(index), comms)

    def get_shares_for_others(self) -> Dict[int, str]:
        return {i: self.get_share_for_party(i)
                for i in range(1, self.total_parties + 1) if i != self.index}

    def receive_shares(self, share_map: Dict[int, str]):
        for index, share_hex in share_map.items():
            self.receive_share(party_index(index), share_hex)
