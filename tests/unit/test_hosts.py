"""
File: tests/unit/test_hosts.py
Unit tests for the hosts file parser.
"""
import pytest

from common.hosts import HostsFileError, load_hosts, parse_hosts
from common.models import ProcessIdentity, Role

HOSTS = """
# two proposers sharing acceptor 3
peer1:proposer1
peer2:acceptor1
peer3:acceptor1,acceptor2
peer4:acceptor2
peer5:proposer2
"""


def test_parse_entries():
    """Test that each line becomes an entry with id and roles."""
    hosts = parse_hosts(HOSTS)

    assert hosts.total_processes == 5
    assert [entry.id for entry in hosts.entries] == [1, 2, 3, 4, 5]
    assert hosts.entry("peer3").roles == ["acceptor1", "acceptor2"]
    assert hosts.role_of("peer1") == Role.PROPOSER
    assert hosts.role_of("peer3") == Role.ACCEPTOR

def test_address_defaults_to_hostname():
    """Test that the hostname is used as the network address by default."""
    hosts = parse_hosts(HOSTS)

    assert hosts.identity("peer2") == ProcessIdentity(id=2, address="peer2")

def test_address_override():
    """Test the name@address form."""
    hosts = parse_hosts("peer1@127.0.0.1:7001:proposer1\npeer2@127.0.0.1:7002:acceptor1\n")

    assert hosts.identity("peer1") == ProcessIdentity(id=1, address="127.0.0.1:7001")
    assert hosts.identity("peer2").address == "127.0.0.1:7002"
    assert hosts.role_of("peer2") == Role.ACCEPTOR

def test_acceptors_for_proposer():
    """Test that a proposer gets itself plus the hosts in its acceptor group."""
    hosts = parse_hosts(HOSTS)

    assert [peer.id for peer in hosts.acceptors_for("peer1")] == [1, 2, 3]
    assert [peer.id for peer in hosts.acceptors_for("peer5")] == [5, 3, 4]
    assert hosts.proposer_number("peer5") == 2

def test_acceptors_for_non_proposer():
    """Test that asking for the acceptors of an acceptor is an error."""
    hosts = parse_hosts(HOSTS)

    with pytest.raises(HostsFileError):
        hosts.acceptors_for("peer2")

def test_unknown_host():
    """Test looking up a host that is not in the file."""
    with pytest.raises(HostsFileError):
        parse_hosts(HOSTS).entry("peer9")

@pytest.mark.parametrize("text", [
    "peer1",
    "peer1:",
    "peerA:acceptor1",
    "peer1:learner1",
    "peer1:proposer1\npeer1:acceptor1",
])
def test_malformed_hosts(text):
    """Test that malformed lines and duplicate ids are rejected."""
    with pytest.raises(HostsFileError):
        parse_hosts(text)

def test_load_hosts(tmp_path):
    """Test reading a hosts file from disk."""
    path = tmp_path / "hosts"
    path.write_text(HOSTS)

    hosts = load_hosts(str(path))

    assert hosts.total_processes == 5

def test_load_missing_hosts_file(tmp_path):
    """Test that a missing file raises HostsFileError."""
    with pytest.raises(HostsFileError):
        load_hosts(str(tmp_path / "missing"))
