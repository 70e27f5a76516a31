# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Payload creation for Move packages that do not fit into one transaction.

This module turns a compiled package into an ordered list of stage calls for
the `large_packages` staging contract. The calls can then be written out as
JSON and submitted by any signer, including a multisig account, which is the
reason the payloads are produced ahead of time instead of being submitted
directly.

Key Features:
- **Chunk Packing**: Greedy, order preserving packing of metadata and modules
  into batches bounded by a maximum size
- **Terminal Call Selection**: The last batch publishes to an account,
  publishes to a new object, or upgrades an existing object
- **Object Address Prediction**: The address of a code object that will be
  created by the final call is computed before compilation, so it can be
  substituted as a named address

Packing:
    Modules are walked in compiler order. A batch accumulates modules while
    the running size (metadata + module bytes) stays within the limit, and
    closes when the next module would overflow it. The metadata is attached,
    in full, to the first batch only. A batch always admits its first item,
    so a module larger than the limit is sent alone instead of blocking the
    run. A package without modules still yields one terminal call carrying
    the metadata, since the terminal call performs the publish.

Object Deployment:
    The framework derives a new code object's address from the deployer's
    address and a seed::

        seed = bcs(b"aptos_framework::object_code_deployment") || bcs_u64(n)

    where `n` is the sequence number the deployer will have when the final
    call executes. A single signer submits every stage call as its own
    transaction, so `n = sequence_number + stage_call_count`. A multisig
    account consumes one sequence number for the whole proposal, so
    `n = sequence_number + 1`. Because the compiled code embeds the object
    address, an object deployment compiles twice: once against the sender to
    count the stage calls, then against the derived address to produce the
    final payloads.

Examples:
    Packing already compiled artifacts::

        from large_package_payload.payload_creator import PayloadCreator
        from large_package_payload.stage_call import PublishMode

        calls = PayloadCreator.create_stage_calls(
            metadata, modules, AccountAddress.from_str("0x7"),
            PublishMode.ACCOUNT_DEPLOY,
        )
        for call in calls:
            print(call.function_id, call.size)

    Full object deployment flow::

        client = RestClient("https://fullnode.devnet.aptoslabs.com/v1")
        creator = PayloadCreator(client)
        config = DeploymentConfig(
            sender=sender,
            contract_address_name="my_contract",
            publish_mode=PublishMode.OBJECT_DEPLOY,
        )
        result = await creator.create_payloads("./my_package", config)
        print(f"Package will be deployed to {result.address}")
"""

import logging
import os
import tempfile
import unittest
import unittest.mock
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from .account_address import AccountAddress
from .aptos_cli_wrapper import AptosCLIWrapper, CLIError, MissingCLIError
from .artifacts import (
    ArtifactBundle,
    ArtifactError,
    parse_module_names,
    read_build_artifacts,
    read_package_name,
)
from .async_client import ApiError, RestClient
from .bcs import MAX_U16, MAX_U64, Deserializer, Serializer
from .network import DEVNET_MODULE_ADDRESS
from .stage_call import PublishMode, StageCall, StageFunction

# Maximum amount of publishing data per stage call, this leaves room for the
# transaction envelope under the 64KB transaction limit
MAX_CHUNK_SIZE: int = 60 * 1024

# Domain separator for the code object address derivation
OBJECT_CODE_DEPLOYMENT_DOMAIN_SEPARATOR = b"aptos_framework::object_code_deployment"


@dataclass
class DeploymentConfig:
    """Deployment intent for one payload creation run.

    Attributes:
        sender: The account that submits the stage calls (or the multisig
            account that executes them).
        contract_address_name: Named address in Move.toml that receives the
            deployment address.
        publish_mode: Where the package ends up.
        large_package_address: Address of the staging contract.
        object_address: Existing code object, required for OBJECT_UPGRADE.
        multi_sign: Whether the calls will be executed by a multisig account.
        max_size: Maximum metadata + bytecode bytes per stage call.
        additional_args: Extra arguments passed to `aptos move build`.
    """

    sender: AccountAddress
    contract_address_name: str
    publish_mode: PublishMode = PublishMode.ACCOUNT_DEPLOY
    large_package_address: AccountAddress = DEVNET_MODULE_ADDRESS
    object_address: Optional[AccountAddress] = None
    multi_sign: bool = False
    max_size: int = MAX_CHUNK_SIZE
    additional_args: Optional[str] = None


@dataclass
class PayloadResult:
    """Stage calls of a run and the address the package was compiled against."""

    stage_calls: List[StageCall]
    address: AccountAddress
    bundle: ArtifactBundle
    simulated_calls: List[StageCall] = field(default_factory=list)


class PayloadCreationError(Exception):
    """Payload creation failed at a given stage for a given address"""

    stage: str
    address: Optional[AccountAddress]

    def __init__(
        self, message: str, stage: str, address: Optional[AccountAddress] = None
    ):
        # Call the base class constructor with the parameters it needs
        super().__init__(f"{stage} failed for {address}: {message}")
        self.stage = stage
        self.address = address


class PayloadCreator:
    """Builds stage call payloads for large package deployments.

    The static methods are pure and can be used on their own with artifacts
    produced elsewhere. `create_payloads` drives the whole flow: compile,
    pack, derive the object address when needed, recompile and pack again.
    """

    client: RestClient

    def __init__(self, client: RestClient):
        self.client = client

    @staticmethod
    def create_stage_calls(
        package_metadata: bytes,
        modules: List[bytes],
        module_address: AccountAddress,
        publish_mode: PublishMode = PublishMode.ACCOUNT_DEPLOY,
        object_address: Optional[AccountAddress] = None,
        max_size: int = MAX_CHUNK_SIZE,
    ) -> List[StageCall]:
        """Pack metadata and modules into an ordered list of stage calls.

        Args:
            package_metadata: The BCS-encoded package metadata bytes.
            modules: Module bytecode in compiler order.
            module_address: Address of the large_packages staging contract.
            publish_mode: Selects the terminal entry function.
            object_address: Code object to upgrade, only for OBJECT_UPGRADE.
            max_size: Maximum metadata + bytecode bytes per call.

        Returns:
            List[StageCall]: At least one call; exactly the last one is
                terminal.

        Raises:
            ValueError: On a non-positive size limit, non-bytes input, more
                modules than u16 indices allow, or an object address that does
                not match the publish mode.
        """
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, found {max_size}")
        if not isinstance(package_metadata, (bytes, bytearray)):
            raise ValueError("package_metadata must be bytes")
        for idx, module in enumerate(modules):
            if not isinstance(module, (bytes, bytearray)):
                raise ValueError(f"Module {idx} must be bytes")
        if len(modules) > MAX_U16 + 1:
            raise ValueError(
                f"Cannot index {len(modules)} modules with u16 module indices"
            )
        if publish_mode == PublishMode.OBJECT_UPGRADE and object_address is None:
            raise ValueError("object_address must be provided for OBJECT_UPGRADE mode")
        if publish_mode != PublishMode.OBJECT_UPGRADE and object_address is not None:
            raise ValueError(
                f"object_address is only used in OBJECT_UPGRADE mode, not {publish_mode}"
            )

        stage_calls: List[StageCall] = []
        idx = 0
        is_first = True

        # An empty module list still produces the terminal call.
        while is_first or idx < len(modules):
            metadata_chunk = bytes(package_metadata) if is_first else b""
            taken_size = len(metadata_chunk)
            modules_indices: List[int] = []
            data_chunks: List[bytes] = []

            while idx < len(modules):
                module = bytes(modules[idx])
                is_empty = not modules_indices and not metadata_chunk
                if taken_size + len(module) > max_size and not is_empty:
                    break
                modules_indices.append(idx)
                data_chunks.append(module)
                taken_size += len(module)
                idx += 1

            is_last = idx >= len(modules)
            function = StageFunction.resolve(is_last, publish_mode)
            stage_calls.append(
                StageCall(
                    function,
                    module_address,
                    metadata_chunk,
                    modules_indices,
                    data_chunks,
                    object_address if function.is_terminal() else None,
                )
            )
            if taken_size > max_size:
                logging.warning(
                    f"Stage call {len(stage_calls)} carries {taken_size} bytes, "
                    f"above the {max_size} byte limit, as a single unsplittable item"
                )
            is_first = False

        return stage_calls

    @staticmethod
    def create_object_deployment_seed(
        sequence_number: int, stage_call_count: int, multi_sign: bool = False
    ) -> bytes:
        """Seed the framework hashes to derive the new code object's address.

        Args:
            sequence_number: The deployer's current on-chain sequence number.
            stage_call_count: Number of stage calls the deployment submits.
            multi_sign: Whether a multisig account executes the calls.

        Returns:
            bytes: BCS length-prefixed domain separator followed by a u64.

        Raises:
            ValueError: If the sequence number is negative or there are no
                stage calls, or the resulting creation sequence number
                does not fit into u64.
        """
        if sequence_number < 0:
            raise ValueError(f"Invalid sequence number {sequence_number}")
        if stage_call_count < 1:
            raise ValueError(f"Invalid stage call count {stage_call_count}")

        if multi_sign:
            creation_sequence_number = sequence_number + 1
        else:
            creation_sequence_number = sequence_number + stage_call_count
        if creation_sequence_number > MAX_U64:
            raise ValueError(
                f"Creation sequence number {creation_sequence_number} does not fit into u64"
            )

        ser = Serializer()
        ser.to_bytes(OBJECT_CODE_DEPLOYMENT_DOMAIN_SEPARATOR)
        ser.u64(creation_sequence_number)
        return ser.output()

    @staticmethod
    def derive_object_address(
        sender: AccountAddress,
        sequence_number: int,
        stage_call_count: int,
        multi_sign: bool = False,
    ) -> AccountAddress:
        """Address of the code object the terminal publish call will create."""
        seed = PayloadCreator.create_object_deployment_seed(
            sequence_number, stage_call_count, multi_sign
        )
        return AccountAddress.for_named_object(sender, seed)

    async def fetch_object_address(
        self, sender: AccountAddress, stage_call_count: int, multi_sign: bool = False
    ) -> AccountAddress:
        """Look up the sender's sequence number and derive the object address."""
        sequence_number = await self.client.account_sequence_number(sender)
        logging.info(f"Sequence number of {sender}: {sequence_number}")
        return PayloadCreator.derive_object_address(
            sender, sequence_number, stage_call_count, multi_sign
        )

    @staticmethod
    def build_package(
        package_dir: str,
        contract_address_name: str,
        address: AccountAddress,
        additional_args: Optional[str] = None,
    ) -> ArtifactBundle:
        """Compile with `contract_address_name` bound to `address` and read the artifacts."""
        build_output = AptosCLIWrapper.compile_package(
            package_dir, {contract_address_name: address}, additional_args
        )
        package_name = read_package_name(package_dir)
        module_names = parse_module_names(build_output)
        return read_build_artifacts(package_dir, package_name, module_names)

    async def create_payloads(
        self, package_dir: str, config: DeploymentConfig
    ) -> PayloadResult:
        """Compile the package and produce the stage calls for `config`.

        Account deployments and upgrades compile once, against the sender or
        the existing object. Object deployments compile twice: the first pass
        only counts stage calls to fix the seed, the second pass compiles
        against the derived address and produces the payloads.

        Raises:
            PayloadCreationError: Wrapping the underlying build, lookup or
                packing error, with the stage and address involved.
        """
        simulated_calls: List[StageCall] = []
        if config.publish_mode == PublishMode.ACCOUNT_DEPLOY:
            address = config.sender
        elif config.publish_mode == PublishMode.OBJECT_UPGRADE:
            if config.object_address is None:
                raise PayloadCreationError(
                    "object_address must be provided for OBJECT_UPGRADE mode",
                    "configuration",
                )
            address = config.object_address
            logging.info(f"Upgrade mode, using object address: {address}")
        elif config.publish_mode == PublishMode.OBJECT_DEPLOY:
            bundle = self._build(package_dir, config, config.sender)
            simulated_calls = self._pack(bundle, config, config.sender)
            logging.info(f"Simulated {len(simulated_calls)} stage calls")
            try:
                address = await self.fetch_object_address(
                    config.sender, len(simulated_calls), config.multi_sign
                )
            except (ApiError, httpx.HTTPError, ValueError) as e:
                raise PayloadCreationError(
                    str(e), "sequence_number", config.sender
                ) from e
            logging.info(f"Create mode, calculated new address: {address}")
        else:
            raise PayloadCreationError(
                f"Unexpected publish mode: {config.publish_mode}", "configuration"
            )

        bundle = self._build(package_dir, config, address)
        stage_calls = self._pack(bundle, config, address)
        if simulated_calls and len(stage_calls) != len(simulated_calls):
            logging.warning(
                f"Final build produced {len(stage_calls)} stage calls, the simulated "
                f"build {len(simulated_calls)}; {address} assumes the simulated count"
            )
        return PayloadResult(stage_calls, address, bundle, simulated_calls)

    def _build(
        self, package_dir: str, config: DeploymentConfig, address: AccountAddress
    ) -> ArtifactBundle:
        try:
            return PayloadCreator.build_package(
                package_dir,
                config.contract_address_name,
                address,
                config.additional_args,
            )
        except (CLIError, MissingCLIError, ArtifactError, OSError) as e:
            raise PayloadCreationError(str(e), "build", address) from e

    def _pack(
        self, bundle: ArtifactBundle, config: DeploymentConfig, address: AccountAddress
    ) -> List[StageCall]:
        try:
            return PayloadCreator.create_stage_calls(
                bundle.metadata,
                bundle.modules,
                config.large_package_address,
                config.publish_mode,
                config.object_address
                if config.publish_mode == PublishMode.OBJECT_UPGRADE
                else None,
                config.max_size,
            )
        except ValueError as e:
            raise PayloadCreationError(str(e), "pack", address) from e


class Test(unittest.TestCase):
    MODULE_ADDRESS = DEVNET_MODULE_ADDRESS

    def pack(self, metadata, sizes, max_size=60000, **kwargs):
        modules = [bytes([idx % 256]) * size for idx, size in enumerate(sizes)]
        return PayloadCreator.create_stage_calls(
            metadata, modules, self.MODULE_ADDRESS, max_size=max_size, **kwargs
        )

    def test_three_batches(self):
        calls = self.pack(b"m" * 10, [50000, 50000, 20000])
        self.assertEqual([call.module_indices for call in calls], [[0], [1], [2]])
        self.assertEqual(calls[0].metadata_chunk, b"m" * 10)
        self.assertEqual(calls[1].metadata_chunk, b"")
        self.assertEqual(calls[2].metadata_chunk, b"")
        self.assertEqual(
            [call.function for call in calls],
            [
                StageFunction.STAGE_CODE_CHUNK,
                StageFunction.STAGE_CODE_CHUNK,
                StageFunction.PUBLISH_TO_ACCOUNT,
            ],
        )

    def test_small_trailing_module_joins_previous_batch(self):
        calls = self.pack(b"m" * 10, [50000, 50000, 100])
        self.assertEqual([call.module_indices for call in calls], [[0], [1, 2]])
        self.assertEqual(calls[1].size, 50100)

    def test_single_small_package(self):
        calls = self.pack(b"meta", [10, 20, 30])
        self.assertEqual(len(calls), 1)
        self.assertEqual(calls[0].module_indices, [0, 1, 2])
        self.assertEqual(calls[0].function, StageFunction.PUBLISH_TO_ACCOUNT)

    def test_empty_modules(self):
        calls = self.pack(b"meta", [])
        self.assertEqual(len(calls), 1)
        self.assertEqual(calls[0].metadata_chunk, b"meta")
        self.assertEqual(calls[0].module_indices, [])
        self.assertEqual(calls[0].module_chunks, [])
        self.assertEqual(calls[0].function, StageFunction.PUBLISH_TO_ACCOUNT)

    def test_oversized_module_is_sent_alone(self):
        calls = self.pack(b"m" * 10, [100, 70000, 100], max_size=1000)
        self.assertEqual([call.module_indices for call in calls], [[0], [1], [2]])
        self.assertEqual(calls[1].size, 70000)

    def test_oversized_first_module_leaves_metadata_alone(self):
        calls = self.pack(b"m" * 10, [70000], max_size=1000)
        self.assertEqual([call.module_indices for call in calls], [[], [0]])
        self.assertEqual(calls[0].metadata_chunk, b"m" * 10)
        self.assertEqual(calls[0].function, StageFunction.STAGE_CODE_CHUNK)
        self.assertEqual(calls[1].function, StageFunction.PUBLISH_TO_ACCOUNT)

    def test_oversized_module_without_metadata(self):
        calls = self.pack(b"", [70000, 10], max_size=1000)
        self.assertEqual([call.module_indices for call in calls], [[0], [1]])

    def test_packing_properties(self):
        sizes = [1200, 300, 4000, 10, 2500, 2500, 900, 0, 3100, 77]
        max_size = 4096
        calls = self.pack(b"x" * 700, sizes, max_size=max_size)

        indices = [idx for call in calls for idx in call.module_indices]
        self.assertEqual(indices, list(range(len(sizes))))
        self.assertEqual(
            [call.metadata_chunk != b"" for call in calls],
            [True] + [False] * (len(calls) - 1),
        )
        for call in calls:
            self.assertEqual(len(call.module_indices), len(call.module_chunks))
            if len(call.module_chunks) > 1:
                self.assertLessEqual(call.size, max_size)
        terminal = [call for call in calls if call.function.is_terminal()]
        self.assertEqual(terminal, [calls[-1]])

    def test_terminal_functions(self):
        calls = self.pack(b"m", [50000, 50000], publish_mode=PublishMode.OBJECT_DEPLOY)
        self.assertEqual(calls[-1].function, StageFunction.PUBLISH_TO_OBJECT)
        self.assertTrue(all(len(call.arguments()) == 3 for call in calls))

        object_address = AccountAddress.from_str_relaxed("0xc0de")
        calls = self.pack(
            b"m",
            [50000, 50000],
            publish_mode=PublishMode.OBJECT_UPGRADE,
            object_address=object_address,
        )
        self.assertEqual(calls[-1].function, StageFunction.UPGRADE_OBJECT_CODE)
        self.assertEqual(len(calls[-1].arguments()), 4)
        self.assertEqual(calls[-1].object_address, object_address)
        self.assertEqual(len(calls[0].arguments()), 3)

    def test_invalid_input(self):
        with self.assertRaises(ValueError):
            self.pack(b"m", [1], max_size=0)
        with self.assertRaises(ValueError):
            self.pack(b"m", [1], max_size=-1)
        with self.assertRaises(ValueError):
            PayloadCreator.create_stage_calls(b"m", ["not bytes"], self.MODULE_ADDRESS)  # type: ignore[list-item]
        with self.assertRaises(ValueError):
            self.pack(b"m", [1], publish_mode=PublishMode.OBJECT_UPGRADE)
        with self.assertRaises(ValueError):
            self.pack(
                b"m",
                [1],
                publish_mode=PublishMode.OBJECT_DEPLOY,
                object_address=AccountAddress.from_str("0x1"),
            )

    def test_seed(self):
        single = PayloadCreator.create_object_deployment_seed(5, 3, False)
        multi = PayloadCreator.create_object_deployment_seed(5, 3, True)

        der = Deserializer(single)
        self.assertEqual(der.to_bytes(), OBJECT_CODE_DEPLOYMENT_DOMAIN_SEPARATOR)
        self.assertEqual(der.u64(), 8)
        self.assertEqual(der.remaining(), 0)

        der = Deserializer(multi)
        self.assertEqual(der.to_bytes(), OBJECT_CODE_DEPLOYMENT_DOMAIN_SEPARATOR)
        self.assertEqual(der.u64(), 6)

        self.assertEqual(
            single,
            bytes([len(OBJECT_CODE_DEPLOYMENT_DOMAIN_SEPARATOR)])
            + OBJECT_CODE_DEPLOYMENT_DOMAIN_SEPARATOR
            + (8).to_bytes(8, "little"),
        )

    def test_seed_multi_sign_ignores_call_count(self):
        self.assertEqual(
            PayloadCreator.create_object_deployment_seed(5, 1, True),
            PayloadCreator.create_object_deployment_seed(5, 10, True),
        )
        self.assertEqual(
            PayloadCreator.create_object_deployment_seed(5, 1, False),
            PayloadCreator.create_object_deployment_seed(5, 1, True),
        )

    def test_seed_invalid(self):
        with self.assertRaises(ValueError):
            PayloadCreator.create_object_deployment_seed(-1, 1)
        with self.assertRaises(ValueError):
            PayloadCreator.create_object_deployment_seed(0, 0)
        with self.assertRaises(ValueError):
            PayloadCreator.create_object_deployment_seed(MAX_U64, 1)
        with self.assertRaises(ValueError):
            PayloadCreator.create_object_deployment_seed(MAX_U64, 1, multi_sign=True)
        self.assertEqual(
            Deserializer(
                PayloadCreator.create_object_deployment_seed(MAX_U64 - 3, 3)
            ).to_bytes(),
            OBJECT_CODE_DEPLOYMENT_DOMAIN_SEPARATOR,
        )

    def test_derive_object_address(self):
        sender = AccountAddress.from_str_relaxed("0xb0b")
        expected = AccountAddress.for_named_object(
            sender, PayloadCreator.create_object_deployment_seed(5, 3)
        )
        self.assertEqual(PayloadCreator.derive_object_address(sender, 5, 3), expected)
        self.assertNotEqual(
            PayloadCreator.derive_object_address(sender, 5, 3),
            PayloadCreator.derive_object_address(sender, 5, 3, multi_sign=True),
        )


class TestCreatePayloads(unittest.IsolatedAsyncioTestCase):
    SENDER = AccountAddress.from_str_relaxed("0xb0b")

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.package_dir = self.tmp.name
        with open(os.path.join(self.package_dir, "Move.toml"), "w") as f:
            f.write('[package]\nname = "LargePackage"\n')
        build_dir = os.path.join(self.package_dir, "build", "LargePackage")
        os.makedirs(os.path.join(build_dir, "bytecode_modules"))
        with open(os.path.join(build_dir, "package-metadata.bcs"), "wb") as f:
            f.write(b"m" * 10)
        for name, size in (("one", 50000), ("two", 50000), ("three", 20000)):
            with open(os.path.join(build_dir, "bytecode_modules", f"{name}.mv"), "wb") as f:
                f.write(b"\x0b" * size)
        self.build_output = '{"Result": ["0xb0b::one", "0xb0b::two", "0xb0b::three"]}'
        self.client = RestClient("http://127.0.0.1:8080/v1")

    async def asyncTearDown(self):
        await self.client.close()
        self.tmp.cleanup()

    def _patch_compile(self):
        return unittest.mock.patch.object(
            AptosCLIWrapper, "compile_package", return_value=self.build_output
        )

    def _patch_sequence_number(self, value=5):
        return unittest.mock.patch.object(
            RestClient,
            "account_sequence_number",
            unittest.mock.AsyncMock(return_value=value),
        )

    async def test_account_deploy(self):
        config = DeploymentConfig(self.SENDER, "contract", max_size=60000)
        with self._patch_compile() as compile_package:
            result = await PayloadCreator(self.client).create_payloads(
                self.package_dir, config
            )
        compile_package.assert_called_once_with(
            self.package_dir, {"contract": self.SENDER}, None
        )
        self.assertEqual(result.address, self.SENDER)
        self.assertEqual(len(result.stage_calls), 3)
        self.assertEqual(
            result.stage_calls[-1].function, StageFunction.PUBLISH_TO_ACCOUNT
        )

    async def test_object_deploy_compiles_twice(self):
        config = DeploymentConfig(
            self.SENDER,
            "contract",
            publish_mode=PublishMode.OBJECT_DEPLOY,
            max_size=60000,
        )
        with self._patch_compile() as compile_package, self._patch_sequence_number(5):
            result = await PayloadCreator(self.client).create_payloads(
                self.package_dir, config
            )

        expected = PayloadCreator.derive_object_address(self.SENDER, 5, 3)
        self.assertEqual(result.address, expected)
        self.assertEqual(
            compile_package.call_args_list,
            [
                unittest.mock.call(self.package_dir, {"contract": self.SENDER}, None),
                unittest.mock.call(self.package_dir, {"contract": expected}, None),
            ],
        )
        self.assertEqual(len(result.simulated_calls), 3)
        self.assertEqual(result.stage_calls[-1].function, StageFunction.PUBLISH_TO_OBJECT)

    async def test_object_deploy_multi_sign(self):
        config = DeploymentConfig(
            self.SENDER,
            "contract",
            publish_mode=PublishMode.OBJECT_DEPLOY,
            multi_sign=True,
            max_size=60000,
        )
        with self._patch_compile(), self._patch_sequence_number(5):
            result = await PayloadCreator(self.client).create_payloads(
                self.package_dir, config
            )
        self.assertEqual(
            result.address,
            PayloadCreator.derive_object_address(self.SENDER, 5, 3, multi_sign=True),
        )

    async def test_object_upgrade(self):
        object_address = AccountAddress.from_str_relaxed("0xc0de")
        config = DeploymentConfig(
            self.SENDER,
            "contract",
            publish_mode=PublishMode.OBJECT_UPGRADE,
            object_address=object_address,
            max_size=60000,
        )
        with self._patch_compile() as compile_package, self._patch_sequence_number() as lookup:
            result = await PayloadCreator(self.client).create_payloads(
                self.package_dir, config
            )
        lookup.assert_not_awaited()
        compile_package.assert_called_once_with(
            self.package_dir, {"contract": object_address}, None
        )
        self.assertEqual(result.address, object_address)
        terminal = result.stage_calls[-1]
        self.assertEqual(terminal.function, StageFunction.UPGRADE_OBJECT_CODE)
        self.assertEqual(terminal.arguments()[3].value, str(object_address))

    async def test_lookup_failure(self):
        config = DeploymentConfig(
            self.SENDER, "contract", publish_mode=PublishMode.OBJECT_DEPLOY
        )
        failing = unittest.mock.AsyncMock(side_effect=ApiError("boom", 500))
        with self._patch_compile(), unittest.mock.patch.object(
            RestClient, "account_sequence_number", failing
        ):
            with self.assertRaises(PayloadCreationError) as cm:
                await PayloadCreator(self.client).create_payloads(
                    self.package_dir, config
                )
        self.assertEqual(cm.exception.stage, "sequence_number")
        self.assertEqual(cm.exception.address, self.SENDER)

    async def test_sequence_number_overflow(self):
        config = DeploymentConfig(
            self.SENDER,
            "contract",
            publish_mode=PublishMode.OBJECT_DEPLOY,
            max_size=60000,
        )
        with self._patch_compile() as compile_package, self._patch_sequence_number(
            MAX_U64
        ):
            with self.assertRaises(PayloadCreationError) as cm:
                await PayloadCreator(self.client).create_payloads(
                    self.package_dir, config
                )
        self.assertEqual(cm.exception.stage, "sequence_number")
        self.assertEqual(cm.exception.address, self.SENDER)
        self.assertIn("u64", str(cm.exception))
        compile_package.assert_called_once()

    async def test_build_failure(self):
        config = DeploymentConfig(self.SENDER, "contract")
        with unittest.mock.patch.object(
            AptosCLIWrapper,
            "compile_package",
            side_effect=CLIError(["aptos"], "", "compilation failed"),
        ):
            with self.assertRaises(PayloadCreationError) as cm:
                await PayloadCreator(self.client).create_payloads(
                    self.package_dir, config
                )
        self.assertEqual(cm.exception.stage, "build")
        self.assertIn("compilation failed", str(cm.exception))


if __name__ == "__main__":
    unittest.main()
