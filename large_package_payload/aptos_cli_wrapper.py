# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Thin wrapper around the Aptos CLI for compiling Move packages.

The payload creator never compiles Move itself. It shells out to
`aptos move build --save-metadata` so that `package-metadata.bcs` and the
`.mv` bytecode files land in the package's build directory, and it reads the
module list from the JSON the CLI prints on stdout.

Environment Variables:
    APTOS_CLI_PATH: Path to the Aptos CLI executable (default: "aptos").
"""

import logging
import os
import shlex
import shutil
import subprocess
import unittest
import unittest.mock
from typing import Dict, List, Optional

from .account_address import AccountAddress

DEFAULT_BINARY = "aptos"


class AptosCLIWrapper:
    """Static helpers to locate and invoke the Aptos CLI."""

    @staticmethod
    def cli_path() -> str:
        return os.getenv("APTOS_CLI_PATH", DEFAULT_BINARY)

    @staticmethod
    def does_cli_exist() -> bool:
        return shutil.which(AptosCLIWrapper.cli_path()) is not None

    @staticmethod
    def assert_cli_exists():
        if not AptosCLIWrapper.does_cli_exist():
            raise MissingCLIError()

    @staticmethod
    def build_command(
        package_dir: str,
        named_addresses: Dict[str, AccountAddress],
        additional_args: Optional[str] = None,
    ) -> List[str]:
        """Assemble the `aptos move build` argument list.

        Named addresses are joined into a single `--named-addresses` flag as
        the CLI expects (`a=0x1,b=0x2`). `additional_args` is split with shell
        quoting rules and appended verbatim.
        """
        args = [
            AptosCLIWrapper.cli_path(),
            "move",
            "build",
            "--save-metadata",
            "--package-dir",
            package_dir,
        ]
        if named_addresses:
            mapping = ",".join(
                f"{name}={address}" for name, address in named_addresses.items()
            )
            args.extend(["--named-addresses", mapping])
        if additional_args:
            args.extend(shlex.split(additional_args))
        return args

    @staticmethod
    def compile_package(
        package_dir: str,
        named_addresses: Dict[str, AccountAddress],
        additional_args: Optional[str] = None,
    ) -> str:
        """Compile the package and return the CLI's stdout.

        Raises:
            MissingCLIError: If the CLI cannot be found.
            CLIError: If the CLI exits with a non-zero status.
        """
        AptosCLIWrapper.assert_cli_exists()
        args = AptosCLIWrapper.build_command(
            package_dir, named_addresses, additional_args
        )
        logging.info(f"Running {' '.join(args)}")
        process_output = subprocess.run(args, capture_output=True, text=True)
        if process_output.returncode != 0:
            raise CLIError(args, process_output.stdout, process_output.stderr)
        return process_output.stdout


class MissingCLIError(Exception):
    """The Aptos CLI was not found"""

    def __init__(self):
        super().__init__(
            f"The CLI was not found at {AptosCLIWrapper.cli_path()}. Install it from "
            "https://aptos.dev/en/build/cli or export its path to APTOS_CLI_PATH."
        )


class CLIError(Exception):
    """The Aptos CLI failed while running a command"""

    command: List[str]
    output: str
    error: str

    def __init__(self, command: List[str], output: str, error: str):
        super().__init__(
            f"The CLI operation failed:\n\tCommand: {' '.join(command)}\n\tOutput: {output}\n\tError: {error}"
        )
        self.command = command
        self.output = output
        self.error = error


class Test(unittest.TestCase):
    def test_build_command(self):
        sender = AccountAddress.from_str_relaxed("0xb0b")
        with unittest.mock.patch.dict(os.environ, {"APTOS_CLI_PATH": "/opt/aptos"}):
            args = AptosCLIWrapper.build_command(
                "./pkg", {"contract": sender}, "--skip-fetch-latest-git-deps --dev"
            )
        self.assertEqual(
            args,
            [
                "/opt/aptos",
                "move",
                "build",
                "--save-metadata",
                "--package-dir",
                "./pkg",
                "--named-addresses",
                f"contract={sender}",
                "--skip-fetch-latest-git-deps",
                "--dev",
            ],
        )

    def test_build_command_multiple_named_addresses(self):
        args = AptosCLIWrapper.build_command(
            "./pkg",
            {
                "a": AccountAddress.from_str("0x1"),
                "b": AccountAddress.from_str("0x2"),
            },
        )
        self.assertEqual(args[-2:], ["--named-addresses", "a=0x1,b=0x2"])

    def test_compile_failure(self):
        failed = subprocess.CompletedProcess(
            args=[], returncode=1, stdout="", stderr="error[E01001]"
        )
        with unittest.mock.patch.object(
            AptosCLIWrapper, "does_cli_exist", return_value=True
        ), unittest.mock.patch("subprocess.run", return_value=failed):
            with self.assertRaises(CLIError) as cm:
                AptosCLIWrapper.compile_package("./pkg", {})
        self.assertEqual(cm.exception.error, "error[E01001]")

    def test_missing_cli(self):
        with unittest.mock.patch.object(
            AptosCLIWrapper, "does_cli_exist", return_value=False
        ):
            with self.assertRaises(MissingCLIError):
                AptosCLIWrapper.compile_package("./pkg", {})


if __name__ == "__main__":
    unittest.main()
