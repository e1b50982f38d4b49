import pytest

from conftest import ACCOUNTS, MerkleTree
from mintsale.core.constants import ZERO_ADDRESS
from mintsale.core.errors import InvalidAddress, ZeroAddress
from mintsale.engine.allowlist import AllowlistVerifier, normalize_address

MEMBERS = [a.address for a in ACCOUNTS[:5]]


@pytest.fixture
def tree():
    return MerkleTree(MEMBERS)


@pytest.mark.parametrize("member", MEMBERS)
def test_members_verify(tree, member):
    assert AllowlistVerifier(tree.root).verify(tree.proof(member), member)


def test_hex_root_and_lowercase_address(tree):
    member = MEMBERS[2]
    assert AllowlistVerifier(tree.hex_root).verify(tree.proof(member), member.lower())


def test_outsider_rejected(tree):
    outsider = ACCOUNTS[10].address
    assert not AllowlistVerifier(tree.root).verify(tree.proof(MEMBERS[0]), outsider)


def test_proof_for_other_member_rejected(tree):
    assert not AllowlistVerifier(tree.root).verify(tree.proof(MEMBERS[0]), MEMBERS[1])


def test_zero_address_rejected(tree):
    with pytest.raises(ZeroAddress):
        AllowlistVerifier(tree.root).verify([], ZERO_ADDRESS)


def test_zero_root_rejects_everyone():
    assert not AllowlistVerifier(b"\x00" * 32).verify([], MEMBERS[0])


def test_single_member_tree_has_empty_proof():
    tree = MerkleTree(MEMBERS[:1])
    assert tree.proof(MEMBERS[0]) == []
    assert AllowlistVerifier(tree.root).verify([], MEMBERS[0])


def test_malformed_node_rejected(tree):
    with pytest.raises(ValueError):
        AllowlistVerifier(tree.root).verify(["0x1234"], MEMBERS[0])


def test_normalize_address():
    assert normalize_address(MEMBERS[0].lower()) == MEMBERS[0]
    with pytest.raises(InvalidAddress):
        normalize_address("0xnotanaddress")
