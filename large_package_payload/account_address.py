# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Account and object addresses for large package deployments.

Addresses appear in three places while preparing payloads: the sender whose
address is substituted into the first build, the `large_packages` staging
contract that prefixes every function id, and the code object that receives
the package. Parsing and formatting follow AIP-40: special addresses
(0x0 through 0xf) print in SHORT form, everything else in LONG form.

Object deployments need the address of an object that does not exist yet.
The framework derives it as::

    sha3_256(creator_address || seed || 0xFE)

where the seed is built by the payload creator from the deployer's sequence
number. `AccountAddress.for_named_object` implements that hash.

Examples:
    Parsing user input::

        staging = AccountAddress.from_str_relaxed("0x7")
        sender = AccountAddress.from_str(
            "0x" + "ab" * 32
        )

    Deriving a named object address::

        object_address = AccountAddress.for_named_object(sender, seed)
"""

from __future__ import annotations

import hashlib
import unittest
from dataclasses import dataclass


class AuthKeyScheme:
    """Domain suffixes appended when hashing derived addresses.

    Attributes:
        DeriveObjectAddressFromSeed: Object address from a seed (0xFE)
    """

    DeriveObjectAddressFromSeed: bytes = b"\xFE"


class ParseAddressError(Exception):
    """Raised when raw bytes cannot form a 32 byte address."""


class AccountAddress:
    """A 32 byte address of an account, object or module publisher.

    Attributes:
        address: The raw 32-byte address data
        LENGTH: The required byte length of all addresses (32)
    """

    address: bytes
    LENGTH: int = 32

    def __init__(self, address: bytes):
        self.address = address

        if len(address) != AccountAddress.LENGTH:
            raise ParseAddressError("Expected address of length 32")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AccountAddress):
            return NotImplemented
        return self.address == other.address

    def __hash__(self) -> int:
        return hash(self.address)

    def __str__(self):
        """Return the AIP-40 representation.

        Special addresses are rendered as "0x0" to "0xf", all others as "0x"
        followed by 64 hex characters. This is the form written into function
        ids, named address substitutions and payload `address` arguments.
        """
        suffix = self.address.hex()
        if self.is_special():
            suffix = suffix.lstrip("0") or "0"
        return f"0x{suffix}"

    def __repr__(self):
        return self.__str__()

    def is_special(self):
        """True for 0x0 through 0xf, the addresses allowed to use SHORT form."""
        return all(b == 0 for b in self.address[:-1]) and self.address[-1] < 0b10000

    @staticmethod
    def from_str(address: str) -> AccountAddress:
        """Parse an address with strict AIP-40 validation.

        Accepts "0x" + 64 hex characters, or "0x" + one hex character for
        special addresses.

        Raises:
            RuntimeError: If the prefix is missing, the length is wrong, or a
                special address carries padding zeroes.
        """
        # Assert the string starts with 0x.
        if not address.startswith("0x"):
            raise RuntimeError("Hex string must start with a leading 0x.")

        out = AccountAddress.from_str_relaxed(address)

        # Check if the address is in LONG form. If it is not, this is only allowed for
        # special addresses, in which case we check it is in proper SHORT form.
        if len(address) != AccountAddress.LENGTH * 2 + 2:
            if not out.is_special():
                raise RuntimeError(
                    "The given hex string is not a special address, it must be represented "
                    "as 0x + 64 chars."
                )
            elif len(address) != 3:
                raise RuntimeError(
                    "The given hex string is a special address not in LONG form, "
                    "it must be 0x0 to 0xf without padding zeroes."
                )

        return out

    @staticmethod
    def from_str_relaxed(address: str) -> AccountAddress:
        """Parse an address, tolerating a missing prefix and short forms.

        This is what the command line uses, since people commonly pass the
        staging contract as "0x7" or a sender without leading zeroes.

        Raises:
            RuntimeError: If the string is empty, longer than 64 hex chars,
                or not hexadecimal.
        """
        addr = address

        # Strip 0x prefix if present.
        if address[0:2] == "0x":
            addr = address[2:]

        if len(addr) < 1:
            raise RuntimeError(
                "Hex string is too short, must be 1 to 64 chars long, excluding the "
                "leading 0x."
            )

        if len(addr) > 64:
            raise RuntimeError(
                "Hex string is too long, must be 1 to 64 chars long, excluding the "
                "leading 0x."
            )

        if len(addr) < AccountAddress.LENGTH * 2:
            pad = "0" * (AccountAddress.LENGTH * 2 - len(addr))
            addr = pad + addr

        try:
            return AccountAddress(bytes.fromhex(addr))
        except ValueError as e:
            raise RuntimeError(f"Hex string contains invalid characters: {address}") from e

    @staticmethod
    def for_named_object(creator: AccountAddress, seed: bytes) -> AccountAddress:
        """Derive the address of an object created from `creator` with `seed`.

        The hash is fixed by the framework; any change in the seed bytes
        produces a different, unrelated address.
        """
        hasher = hashlib.sha3_256()
        hasher.update(creator.address)
        hasher.update(seed)
        hasher.update(AuthKeyScheme.DeriveObjectAddressFromSeed)
        return AccountAddress(hasher.digest())


"""
Tests
"""


@dataclass(init=True, frozen=True)
class TestAddresses:
    shortWith0x: str
    shortWithout0x: str
    longWith0x: str
    longWithout0x: str


ADDRESS_SEVEN = TestAddresses(
    shortWith0x="0x7",
    shortWithout0x="7",
    longWith0x="0x0000000000000000000000000000000000000000000000000000000000000007",
    longWithout0x="0000000000000000000000000000000000000000000000000000000000000007",
)

ADDRESS_TEN = TestAddresses(
    shortWith0x="0x10",
    shortWithout0x="10",
    longWith0x="0x0000000000000000000000000000000000000000000000000000000000000010",
    longWithout0x="0000000000000000000000000000000000000000000000000000000000000010",
)

ADDRESS_STAGING = TestAddresses(
    shortWith0x="0xe1ca3011bdd07246d4d16d909dbb2d6953a86c4735d5acf5865d962c630cce7",
    shortWithout0x="e1ca3011bdd07246d4d16d909dbb2d6953a86c4735d5acf5865d962c630cce7",
    longWith0x="0x0e1ca3011bdd07246d4d16d909dbb2d6953a86c4735d5acf5865d962c630cce7",
    longWithout0x="0e1ca3011bdd07246d4d16d909dbb2d6953a86c4735d5acf5865d962c630cce7",
)


class Test(unittest.TestCase):
    def test_named_object(self):
        base_address = AccountAddress.from_str_relaxed("b0b")
        expected = AccountAddress.from_str_relaxed(
            "f417184602a828a3819edf5e36285ebef5e4db1ba36270be580d6fd2d7bcc321"
        )
        actual = AccountAddress.for_named_object(base_address, b"bob's collection")
        self.assertEqual(actual, expected)

    def test_named_object_depends_on_seed(self):
        base_address = AccountAddress.from_str_relaxed("b0b")
        self.assertNotEqual(
            AccountAddress.for_named_object(base_address, b"\x01"),
            AccountAddress.for_named_object(base_address, b"\x02"),
        )

    def test_from_str_relaxed(self):
        for text in (
            ADDRESS_SEVEN.shortWith0x,
            ADDRESS_SEVEN.shortWithout0x,
            ADDRESS_SEVEN.longWith0x,
            ADDRESS_SEVEN.longWithout0x,
        ):
            self.assertEqual(
                str(AccountAddress.from_str_relaxed(text)), ADDRESS_SEVEN.shortWith0x
            )

        self.assertEqual(
            str(AccountAddress.from_str_relaxed(ADDRESS_TEN.shortWithout0x)),
            ADDRESS_TEN.longWith0x,
        )
        # The published testnet/mainnet staging address has a leading zero
        # nibble, relaxed parsing must restore it.
        self.assertEqual(
            str(AccountAddress.from_str_relaxed(ADDRESS_STAGING.shortWith0x)),
            ADDRESS_STAGING.longWith0x,
        )

    def test_from_str_relaxed_invalid(self):
        self.assertRaises(RuntimeError, AccountAddress.from_str_relaxed, "0x")
        self.assertRaises(RuntimeError, AccountAddress.from_str_relaxed, "0x" + "1" * 65)
        self.assertRaises(RuntimeError, AccountAddress.from_str_relaxed, "0xzz")

    def test_from_str(self):
        self.assertEqual(
            str(AccountAddress.from_str(ADDRESS_SEVEN.shortWith0x)),
            ADDRESS_SEVEN.shortWith0x,
        )
        self.assertEqual(
            str(AccountAddress.from_str(ADDRESS_SEVEN.longWith0x)),
            ADDRESS_SEVEN.shortWith0x,
        )
        self.assertRaises(
            RuntimeError, AccountAddress.from_str, ADDRESS_SEVEN.shortWithout0x
        )
        self.assertRaises(RuntimeError, AccountAddress.from_str, "0x07")
        self.assertRaises(RuntimeError, AccountAddress.from_str, ADDRESS_TEN.shortWith0x)
        self.assertEqual(
            str(AccountAddress.from_str(ADDRESS_STAGING.longWith0x)),
            ADDRESS_STAGING.longWith0x,
        )

    def test_invalid_length(self):
        self.assertRaises(ParseAddressError, AccountAddress, b"\x00" * 31)


if __name__ == "__main__":
    unittest.main()
