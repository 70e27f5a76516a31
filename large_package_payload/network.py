# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Network selection for payload creation.

Two things depend on the network: the fullnode used to look up the deployer's
sequence number, and the address of the `large_packages` staging contract that
every generated function id is prefixed with. Devnet and local networks carry
the contract at 0x7, testnet and mainnet at a published account address.

Environment Variables:
    APTOS_NODE_URL: Overrides the fullnode URL for every network, same as the
        `--rpc` command line option.
"""

import os
import unittest
import unittest.mock
from enum import Enum
from typing import Optional

from .account_address import AccountAddress


class Network(Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    DEVNET = "devnet"
    LOCAL = "local"


NODE_URLS = {
    Network.MAINNET: "https://fullnode.mainnet.aptoslabs.com/v1",
    Network.TESTNET: "https://fullnode.testnet.aptoslabs.com/v1",
    Network.DEVNET: "https://fullnode.devnet.aptoslabs.com/v1",
    Network.LOCAL: "http://127.0.0.1:8080/v1",
}

# Location of the large_packages staging module on devnet and local networks
DEVNET_MODULE_ADDRESS: AccountAddress = AccountAddress.from_str("0x7")

# Location of the large_packages staging module on testnet and mainnet
PUBLISHED_MODULE_ADDRESS: AccountAddress = AccountAddress.from_str(
    "0x0e1ca3011bdd07246d4d16d909dbb2d6953a86c4735d5acf5865d962c630cce7"
)


def node_url(network: Network, rpc: Optional[str] = None) -> str:
    """Resolve the fullnode URL: explicit rpc, then APTOS_NODE_URL, then default."""
    if rpc:
        return rpc.rstrip("/")
    env_url = os.getenv("APTOS_NODE_URL")
    if env_url:
        return env_url.rstrip("/")
    return NODE_URLS[network]


def large_package_address(
    network: Network, override: Optional[AccountAddress] = None
) -> AccountAddress:
    """Staging contract for `network`, unless the caller picked one explicitly."""
    if override is not None:
        return override
    if network in (Network.MAINNET, Network.TESTNET):
        return PUBLISHED_MODULE_ADDRESS
    return DEVNET_MODULE_ADDRESS


class Test(unittest.TestCase):
    def test_large_package_address_defaults(self):
        self.assertEqual(large_package_address(Network.DEVNET), DEVNET_MODULE_ADDRESS)
        self.assertEqual(large_package_address(Network.LOCAL), DEVNET_MODULE_ADDRESS)
        self.assertEqual(
            large_package_address(Network.TESTNET), PUBLISHED_MODULE_ADDRESS
        )
        self.assertEqual(
            large_package_address(Network.MAINNET), PUBLISHED_MODULE_ADDRESS
        )

    def test_large_package_address_override(self):
        custom = AccountAddress.from_str_relaxed("0xcafe")
        self.assertEqual(large_package_address(Network.MAINNET, custom), custom)

    def test_node_url(self):
        self.assertEqual(
            node_url(Network.TESTNET, "http://localhost:8080/v1/"),
            "http://localhost:8080/v1",
        )
        env = {k: v for k, v in os.environ.items() if k != "APTOS_NODE_URL"}
        with unittest.mock.patch.dict(os.environ, env, clear=True):
            self.assertEqual(node_url(Network.MAINNET), NODE_URLS[Network.MAINNET])
        with unittest.mock.patch.dict(
            os.environ, {"APTOS_NODE_URL": "http://node:8080/v1"}
        ):
            self.assertEqual(node_url(Network.DEVNET), "http://node:8080/v1")


if __name__ == "__main__":
    unittest.main()
