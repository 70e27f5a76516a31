# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Client identification for requests sent to Aptos fullnodes.

The REST client attaches `x-aptos-client: large-package-payload-creator/<version>`
to every request so node operators can tell this tool's traffic apart from
other SDK clients.
"""

import importlib.metadata as metadata
import unittest

PACKAGE_NAME = "large-package-payload-creator"


class Metadata:
    APTOS_HEADER = "x-aptos-client"

    @staticmethod
    def get_aptos_header_val():
        """Header value in the form "large-package-payload-creator/{version}".

        Falls back to version "0.0.0" when running from a source checkout
        that was never installed.
        """
        try:
            version = metadata.version(PACKAGE_NAME)
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        return f"{PACKAGE_NAME}/{version}"


class Test(unittest.TestCase):
    def test_header_value(self):
        value = Metadata.get_aptos_header_val()
        self.assertTrue(value.startswith(f"{PACKAGE_NAME}/"))


if __name__ == "__main__":
    unittest.main()
