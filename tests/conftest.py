import pytest
from eth_utils import keccak

from mpcwallet.dkg import ClientSession
from mpcwallet.hosted import DKGHost, SessionRegistry
from mpcwallet.store import ShareCipher, ShareStore


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def transfer_digest(sender, recipient, amount):
    return keccak(text=f"{sender.lower()}:{recipient.lower()}:{amount}")


@pytest.fixture
def store():
    return ShareStore(ShareCipher("test-key"))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def host(store, clock):
    return DKGHost(store, SessionRegistry(ttl=60, clock=clock))


def run_dkg(host, connection_id="conn-1"):
    """Drive one full run as the remote device. Returns (client_output, complete message)."""
    client = ClientSession()
    reply = host.handle(connection_id, {"type": "init"})
    assert reply["type"] == "commitments", reply
    client.receive_commitments(reply["commitments"])

    reply = host.handle(connection_id, {"type": "commitments",
                                        "commitments": client.get_commitments_broadcast()})
    assert reply["type"] == "shares", reply
    client.receive_shares(reply["shares"])
    shares = client.get_shares_for_others()
    client_out = client.finalize()

    reply = host.handle(connection_id, {"type": "shares", "shares": shares,
                                        "address": client_out.address})
    assert reply["type"] == "complete", reply
    return client_out, reply
