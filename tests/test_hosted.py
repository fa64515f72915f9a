"""
Tests
"""

import threading
import pytest
from mpcwallet.curve import point_to_hex, pub_key_from_priv, scalar_from_hex
from mpcwallet.dkg import ClientSession, SessionState
from mpcwallet.errors import MalformedInput, ProtocolViolation, SessionAborted
from mpcwallet.feldman import interpolate_at_zero
from mpcwallet.hosted import HostedPartyPair, SessionRegistry

from conftest import run_dkg


def test_hosted_dkg_completes(host, store):
    client_out, complete = run_dkg(host)
    address = complete["address"]
    assert address == client_out.address
    assert complete["publicKey"] == point_to_hex(client_out.public_key)

    recovery = complete["recoveryShare"]
    assert recovery["index"] == 3
    assert recovery["address"] == address
    assert "conn-1" not in host.registry

    record = store.get_record(address)
    assert record.address == address.lower()
    assert record.public_key == complete["publicKey"]
    # encrypted at rest
    server_hex = store.get_share(address)
    assert record.encrypted_share != server_hex

    shares = {1: client_out.share, 2: scalar_from_hex(server_hex),
              3: scalar_from_hex(recovery["share"])}
    for pair in [(1, 2), (2, 3), (1, 3)]:
        secret = interpolate_at_zero({i: shares[i] for i in pair})
        assert pub_key_from_priv(secret) == client_out.public_key


def test_shares_before_commitments_rejected(host, store):
    host.handle("c", {"type": "init"})
    reply = host.handle("c", {"type": "shares", "shares": {"2": "01", "3": "02"}})
    assert reply["type"] == "error"
    assert reply["kind"] == "MissingCommitments"
    assert "c" not in host.registry
    assert len(store) == 0


def test_message_without_init_rejected(host):
    reply = host.handle("nobody", {"type": "commitments", "commitments": []})
    assert reply == {"type": "error", "kind": "ProtocolViolation",
                     "message": "No DKG session for this connection, send init first"}


@pytest.mark.parametrize("message", [None, "init", {"type": "hello"}])
def test_malformed_messages(host, message):
    reply = host.handle("c", message)
    assert reply["kind"] == "MalformedInput"


def test_repeated_init_ends_the_run(host):
    host.handle("c", {"type": "init"})
    reply = host.handle("c", {"type": "init"})
    assert reply["kind"] == "ProtocolViolation"
    assert "c" not in host.registry


def test_tampered_client_share_persists_nothing(host, store):
    client = ClientSession()
    reply = host.handle("c", {"type": "init"})
    client.receive_commitments(reply["commitments"])
    reply = host.handle("c", {"type": "commitments", "commitments": client.get_commitments_broadcast()})
    client.receive_shares(reply["shares"])
    shares = client.get_shares_for_others()
    shares[2] = format(scalar_from_hex(shares[2]) ^ 1, "x")

    reply = host.handle("c", {"type": "shares", "shares": shares})
    assert reply["type"] == "error"
    assert reply["kind"] == "InvalidShare"
    assert len(store) == 0
    assert "c" not in host.registry


def test_client_reported_address_mismatch(host, store):
    client = ClientSession()
    reply = host.handle("c", {"type": "init"})
    client.receive_commitments(reply["commitments"])
    reply = host.handle("c", {"type": "commitments", "commitments": client.get_commitments_broadcast()})
    client.receive_shares(reply["shares"])
    reply = host.handle("c", {"type": "shares", "shares": client.get_shares_for_others(),
                              "address": "0x" + "00" * 20})
    assert reply["kind"] == "AddressMismatch"
    assert len(store) == 0


def test_disconnect_burns_session(host, store):
    host.handle("c", {"type": "init"})
    assert "c" in host.registry
    host.disconnect("c")
    assert "c" not in host.registry
    assert len(store) == 0
    # unknown ids are fine
    host.disconnect("c")


def test_connections_are_independent(host, store):
    run_dkg(host, "a")
    run_dkg(host, "b")
    assert len(store) == 2


def test_connection_can_run_again_after_completion(host, store):
    first, _ = run_dkg(host, "c")
    second, _ = run_dkg(host, "c")
    assert first.address != second.address
    assert len(store) == 2


def test_idle_sessions_expire(host, clock):
    host.handle("idle", {"type": "init"})
    clock.now += 30
    host.handle("busy", {"type": "init"})
    clock.now += 45
    assert host.registry.expire_idle() == ["idle"]
    assert "busy" in host.registry
    reply = host.handle("idle", {"type": "commitments", "commitments": []})
    assert reply["kind"] == "ProtocolViolation"


def test_registry_discard_burns():
    registry = SessionRegistry(ttl=10)
    pair = registry.create("x")
    assert registry.get("x") is pair
    assert registry.discard("x")
    assert not registry.discard("x")
    assert pair.server.output is None
    assert pair.server._polynomial is None


def test_hosted_pair_requires_both_shares():
    pair = HostedPartyPair()
    client = ClientSession()
    client.receive_commitments(pair.commitments_broadcast())
    pair.accept_client_commitments(client.get_commitments_broadcast())
    with pytest.raises(MalformedInput):
        pair.accept_client_shares({2: "01"})


def test_non_ascii_digit_key_is_malformed(host, store):
    host.handle("c", {"type": "init"})
    reply = host.handle("c", {"type": "shares", "shares": {"²": "01"}})
    assert reply["type"] == "error"
    assert reply["kind"] == "MalformedInput"
    assert "c" not in host.registry
    assert len(store) == 0


def test_unexpected_failure_still_burns_session(host, monkeypatch):
    host.handle("c", {"type": "init"})
    pair = host.registry.get("c")

    def explode(commitments):
        raise RuntimeError("transport gone")

    monkeypatch.setattr(pair, "accept_client_commitments", explode)
    with pytest.raises(RuntimeError):
        host.handle("c", {"type": "commitments", "commitments": []})
    assert "c" not in host.registry
    assert pair.server._polynomial is None


def test_burnt_pair_refuses_further_use():
    registry = SessionRegistry(ttl=10)
    pair = registry.create("x")
    client = ClientSession()
    client.receive_commitments(pair.commitments_broadcast())
    registry.discard("x")
    with pytest.raises(SessionAborted):
        pair.accept_client_commitments(client.get_commitments_broadcast())
    assert pair.server.state is SessionState.ABORTED
    assert pair.recovery.state is SessionState.ABORTED


def test_concurrent_create_keeps_one_pair():
    registry = SessionRegistry(ttl=10)
    barrier = threading.Barrier(4)
    created, refused = [], []

    def attempt():
        barrier.wait()
        try:
            created.append(registry.create("same"))
        except ProtocolViolation:
            refused.append(True)

    threads = [threading.Thread(target=attempt) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(created) == 1
    assert len(refused) == 3
    assert registry.get("same") is created[0]
    assert created[0].server.state is not SessionState.ABORTED
