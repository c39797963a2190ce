"""
Canonical encoding of a single claim into a merkle leaf.

The encoding is `abi.encodePacked(uint256 index, address account, uint256 amount)`,
hashed once with keccak256. This must match the leaf computed by the
MerkleDistributor contract when a claim is redeemed:

    keccak256(abi.encodePacked(index, account, amount))

Every field has a fixed width (32 + 20 + 32 bytes), so no two claims can
produce the same packed bytes.
"""
from typing import TYPE_CHECKING, Any

from eth_abi.packed import encode_packed
from eth_utils import add_0x_prefix, is_hex_address, keccak

from distributor.errors import InvalidClaim

if TYPE_CHECKING:
    from distributor.models import Claim

# versioned name of the leaf encoding and tree convention shared with the verifier contract
HASH_CONVENTION = "keccak256(uint256,address,uint256)/sorted-pairs/odd-carry@1"

LEAF_TYPES = ["uint256", "address", "uint256"]
UINT256_MAX = 2**256 - 1
PACKED_CLAIM_LENGTH = 32 + 20 + 32


def normalize_account(account: Any) -> str:
    """
    Returns the lowercase, 0x prefixed hex form of an address.
    Checksums are not enforced, the lowercase form is the lookup key everywhere.
    """
    if not isinstance(account, str):
        raise InvalidClaim(f"Account must be a hex string, got {account!r}")
    account = account.strip()
    if not is_hex_address(account):
        raise InvalidClaim(f"Account is not a valid address: {account!r}")
    return add_0x_prefix(account.lower())


def check_uint256(value: Any, name: str) -> int:
    """Coerce `value` to an int and ensure it fits in an unsigned 256 bit word"""
    if isinstance(value, bool):
        raise InvalidClaim(f"{name} must be an integer, got {value!r}")
    if isinstance(value, str):
        value = value.strip()
        if not (value.isascii() and value.isdigit()):
            raise InvalidClaim(f"{name} must be a non-negative integer, got {value!r}")
        value = int(value)
    if not isinstance(value, int):
        raise InvalidClaim(f"{name} must be an integer, got {value!r}")
    if value < 0:
        raise InvalidClaim(f"{name} cannot be negative, got {value}")
    if value > UINT256_MAX:
        raise InvalidClaim(f"{name} does not fit in 256 bits, got {value}")
    return value


def encode_claim(claim: "Claim") -> bytes:
    """Fixed width packed bytes for a claim"""
    index = check_uint256(claim.index, "index")
    amount = check_uint256(claim.amount, "amount")
    account = normalize_account(claim.account)
    return encode_packed(LEAF_TYPES, [index, account, amount])


def leaf_digest(claim: "Claim") -> bytes:
    return keccak(encode_claim(claim))
