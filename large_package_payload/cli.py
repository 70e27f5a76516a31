# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Command-line interface for creating large package payloads.

The `create` command compiles a Move package with the Aptos CLI, splits it
into stage calls for the `large_packages` contract and writes them as
`payload_<n>.json` files. Each file can be submitted with
`aptos move run --json-file payload_<n>.json`, or proposed through a
multisig account, in order.

Examples:
    Publish to the sender's account::

        large-package-payload-creator create \
            --dir ./my-move-package \
            --sender-address 0x1234... \
            --contract-address-name my_contract

    Publish to a new object on testnet, executed by a multisig account::

        large-package-payload-creator create \
            --dir ./my-move-package \
            --sender-address 0x1234... \
            --contract-address-name my_contract \
            --network testnet \
            --deploy-object true \
            --multi-sign true

    Upgrade code in an existing object::

        large-package-payload-creator create \
            --dir ./my-move-package \
            --sender-address 0x1234... \
            --contract-address-name my_contract \
            --object-address 0xabcd...

Environment Variables:
    APTOS_CLI_PATH: Path to the Aptos CLI executable (if not in PATH)
    APTOS_NODE_URL: Fullnode URL used when --rpc is not given
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
import tempfile
import unittest
import unittest.mock
from typing import List

from .account_address import AccountAddress
from .aptos_cli_wrapper import AptosCLIWrapper
from .async_client import RestClient
from .network import Network, large_package_address, node_url
from .payload_creator import (
    MAX_CHUNK_SIZE,
    DeploymentConfig,
    PayloadCreationError,
    PayloadCreator,
    PayloadResult,
)
from .payload_writer import write_payloads
from .stage_call import PublishMode


def parse_bool(indata: str) -> bool:
    """Parse "true"/"false" style flag values.

    Raises:
        argparse.ArgumentTypeError: For anything that is not a boolean word.
    """
    value = indata.strip().lower()
    if value in ("true", "1", "yes"):
        return True
    if value in ("false", "0", "no"):
        return False
    raise argparse.ArgumentTypeError(f"Expected true or false, found {indata}")


def parse_address(indata: str) -> AccountAddress:
    try:
        return AccountAddress.from_str_relaxed(indata)
    except RuntimeError as e:
        raise argparse.ArgumentTypeError(str(e))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="large-package-payload-creator",
        description="Split large Aptos Move packages into staged JSON payloads",
    )
    parser.add_argument(
        "command", type=str, help="The command to execute", choices=["create"]
    )
    parser.add_argument(
        "-d",
        "--dir",
        help="Move package directory containing Move.toml (default: current directory)",
        type=str,
        default=os.getcwd(),
    )
    parser.add_argument(
        "--sender-address",
        help="The account that will submit the payloads",
        type=parse_address,
    )
    parser.add_argument(
        "--contract-address-name",
        help="Named address in Move.toml that receives the deployment address",
        type=str,
    )
    parser.add_argument(
        "--deploy-object",
        help="Publish the package to a new object (true/false)",
        type=parse_bool,
        nargs="?",
        const=True,
        default=False,
    )
    parser.add_argument(
        "--object-address",
        help="Existing code object to upgrade, implies object deployment",
        type=parse_address,
    )
    parser.add_argument(
        "--multi-sign",
        help="The payloads will be executed by a multisig account (true/false)",
        type=parse_bool,
        nargs="?",
        const=True,
        default=False,
    )
    parser.add_argument(
        "--network",
        help="Network to use",
        choices=[network.value for network in Network],
        default=Network.DEVNET.value,
    )
    parser.add_argument("--rpc", help="Custom fullnode REST API URL", type=str)
    parser.add_argument(
        "--large-package-address",
        help="Address of the large_packages contract (default: 0x7 on devnet/local, "
        "the published address on testnet/mainnet)",
        type=parse_address,
    )
    parser.add_argument(
        "--max-size",
        help=f"Maximum metadata and bytecode bytes per payload (default: {MAX_CHUNK_SIZE})",
        type=int,
        default=MAX_CHUNK_SIZE,
    )
    parser.add_argument(
        "--output-dir",
        help="Directory to write payload files to (default: the package directory)",
        type=str,
    )
    parser.add_argument(
        "--additional-args",
        help="Additional arguments passed to `aptos move build`",
        type=str,
    )
    parser.add_argument(
        "-v", "--verbose", help="Enable debug logging", action="store_true"
    )
    return parser


def deployment_config(parsed_args: argparse.Namespace) -> DeploymentConfig:
    if parsed_args.object_address is not None:
        publish_mode = PublishMode.OBJECT_UPGRADE
    elif parsed_args.deploy_object:
        publish_mode = PublishMode.OBJECT_DEPLOY
    else:
        publish_mode = PublishMode.ACCOUNT_DEPLOY

    return DeploymentConfig(
        sender=parsed_args.sender_address,
        contract_address_name=parsed_args.contract_address_name,
        publish_mode=publish_mode,
        large_package_address=large_package_address(
            Network(parsed_args.network), parsed_args.large_package_address
        ),
        object_address=parsed_args.object_address,
        multi_sign=parsed_args.multi_sign,
        max_size=parsed_args.max_size,
        additional_args=parsed_args.additional_args,
    )


async def create_payloads(
    package_dir: str, config: DeploymentConfig, rest_api: str, output_dir: str
) -> PayloadResult:
    """Create the payloads for `config` and write them to `output_dir`."""
    rest_client = RestClient(rest_api)
    try:
        result = await PayloadCreator(rest_client).create_payloads(package_dir, config)
    finally:
        await rest_client.close()
    write_payloads(result.stage_calls, output_dir)
    return result


async def main(args: List[str]) -> int:
    """Entry point of the CLI, returns the process exit status."""
    parser = build_parser()
    parsed_args = parser.parse_args(args)

    logging.basicConfig(
        level=logging.DEBUG if parsed_args.verbose else logging.INFO,
        format="%(levelname)s %(message)s",
    )

    if parsed_args.command == "create":
        # Validate required arguments
        if parsed_args.sender_address is None:
            parser.error("Missing required argument '--sender-address'")
        if not parsed_args.contract_address_name:
            parser.error("Missing required argument '--contract-address-name'")
        if parsed_args.max_size <= 0:
            parser.error("--max-size must be a positive number of bytes")

        package_dir = parsed_args.dir
        if not os.path.isfile(os.path.join(package_dir, "Move.toml")):
            parser.error(
                f"Move.toml not found. The specified directory is not a Move project folder: {package_dir}"
            )

        # Check for Aptos CLI availability
        if not AptosCLIWrapper.does_cli_exist():
            parser.error(
                "Missing Aptos CLI. Please install it from https://aptos.dev/en/build/cli "
                "or export its path to APTOS_CLI_PATH environment variable."
            )

        config = deployment_config(parsed_args)
        rest_api = node_url(Network(parsed_args.network), parsed_args.rpc)
        logging.info(f"Using network URL: {rest_api}")
        logging.info(
            f"Creating {config.publish_mode.value} payloads with staging contract "
            f"{config.large_package_address}"
        )

        try:
            result = await create_payloads(
                package_dir,
                config,
                rest_api,
                parsed_args.output_dir or package_dir,
            )
        except (PayloadCreationError, OSError) as e:
            logging.error(f"Failed to create payload: {e}")
            return 1

        if config.publish_mode != PublishMode.ACCOUNT_DEPLOY:
            logging.info(f"Package address: {result.address}")
    return 0


def run():
    sys.exit(asyncio.run(main(sys.argv[1:])))


class Test(unittest.IsolatedAsyncioTestCase):
    SENDER = "0xb0b"

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.package_dir = self.tmp.name
        with open(os.path.join(self.package_dir, "Move.toml"), "w") as f:
            f.write('[package]\nname = "LargePackage"\n')

    def tearDown(self):
        self.tmp.cleanup()

    def parse(self, *extra: str) -> argparse.Namespace:
        return build_parser().parse_args(
            [
                "create",
                "--dir",
                self.package_dir,
                "--sender-address",
                self.SENDER,
                "--contract-address-name",
                "contract",
                *extra,
            ]
        )

    def test_deployment_config_account(self):
        config = deployment_config(self.parse())
        self.assertEqual(config.publish_mode, PublishMode.ACCOUNT_DEPLOY)
        self.assertEqual(config.large_package_address, AccountAddress.from_str("0x7"))
        self.assertFalse(config.multi_sign)

    def test_deployment_config_object(self):
        config = deployment_config(
            self.parse("--deploy-object", "true", "--multi-sign", "--network", "mainnet")
        )
        self.assertEqual(config.publish_mode, PublishMode.OBJECT_DEPLOY)
        self.assertTrue(config.multi_sign)
        self.assertEqual(
            str(config.large_package_address),
            "0x0e1ca3011bdd07246d4d16d909dbb2d6953a86c4735d5acf5865d962c630cce7",
        )

    def test_deployment_config_upgrade(self):
        config = deployment_config(
            self.parse("--object-address", "0xc0de", "--large-package-address", "0xabc")
        )
        self.assertEqual(config.publish_mode, PublishMode.OBJECT_UPGRADE)
        self.assertEqual(config.object_address, AccountAddress.from_str_relaxed("0xc0de"))
        self.assertEqual(
            config.large_package_address, AccountAddress.from_str_relaxed("0xabc")
        )

    def test_parse_bool(self):
        self.assertTrue(parse_bool("True"))
        self.assertFalse(parse_bool("false"))
        with self.assertRaises(argparse.ArgumentTypeError):
            parse_bool("maybe")

    async def test_missing_sender(self):
        with unittest.mock.patch("sys.stderr"):
            with self.assertRaises(SystemExit):
                await main(["create", "--dir", self.package_dir])

    async def test_not_a_move_project(self):
        with tempfile.TemporaryDirectory() as empty, unittest.mock.patch("sys.stderr"):
            with self.assertRaises(SystemExit):
                await main(
                    [
                        "create",
                        "--dir",
                        empty,
                        "--sender-address",
                        self.SENDER,
                        "--contract-address-name",
                        "contract",
                    ]
                )

    async def test_failure_exit_status(self):
        failing = unittest.mock.AsyncMock(
            side_effect=PayloadCreationError("boom", "build")
        )
        with unittest.mock.patch.object(
            AptosCLIWrapper, "does_cli_exist", return_value=True
        ), unittest.mock.patch.object(PayloadCreator, "create_payloads", failing):
            status = await main(
                [
                    "create",
                    "--dir",
                    self.package_dir,
                    "--sender-address",
                    self.SENDER,
                    "--contract-address-name",
                    "contract",
                    "--rpc",
                    "http://127.0.0.1:8080/v1",
                ]
            )
        self.assertEqual(status, 1)

    async def test_writes_payloads(self):
        sender = AccountAddress.from_str_relaxed(self.SENDER)
        stage_calls = PayloadCreator.create_stage_calls(
            b"meta", [b"\x01" * 8, b"\x02" * 8], AccountAddress.from_str("0x7"), max_size=12
        )
        result = PayloadResult(stage_calls, sender, unittest.mock.Mock())
        out_dir = os.path.join(self.package_dir, "out")
        with unittest.mock.patch.object(
            AptosCLIWrapper, "does_cli_exist", return_value=True
        ), unittest.mock.patch.object(
            PayloadCreator,
            "create_payloads",
            unittest.mock.AsyncMock(return_value=result),
        ):
            status = await main(
                [
                    "create",
                    "--dir",
                    self.package_dir,
                    "--sender-address",
                    self.SENDER,
                    "--contract-address-name",
                    "contract",
                    "--output-dir",
                    out_dir,
                    "--rpc",
                    "http://127.0.0.1:8080/v1",
                ]
            )
        self.assertEqual(status, 0)
        self.assertEqual(
            sorted(os.listdir(out_dir)), ["payload_1.json", "payload_2.json"]
        )


if __name__ == "__main__":
    run()
