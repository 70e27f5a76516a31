# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Stage calls against the `large_packages` staging contract.

A large package is delivered as a series of entry function calls. Every call
but the last stages a chunk; the last one stages the remaining chunk and then
publishes or upgrades the assembled package. Which terminal function is used
depends on the deployment mode:

    ==============  ==============  ==========================================
    Batch           PublishMode     Entry function
    ==============  ==============  ==========================================
    non-terminal    any             stage_code_chunk
    terminal        ACCOUNT_DEPLOY  stage_code_chunk_and_publish_to_account
    terminal        OBJECT_DEPLOY   stage_code_chunk_and_publish_to_object
    terminal        OBJECT_UPGRADE  stage_code_chunk_and_upgrade_object_code
    ==============  ==============  ==========================================

Arguments of every call:

1. `hex` metadata chunk (the full metadata on the first call, empty after)
2. `u16` list of module indices in this call
3. `hex` list of module bytecode, parallel to the indices
4. `address` of the code object, only on the terminal upgrade call

Examples:
    JSON form of a terminal account call::

        {
            "function_id": "0x7::large_packages::stage_code_chunk_and_publish_to_account",
            "type_args": [],
            "args": [
                {"type": "hex", "value": "0x"},
                {"type": "u16", "value": [2]},
                {"type": "hex", "value": ["0xa11ceb0b..."]}
            ]
        }
"""

from __future__ import annotations

import unittest
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .account_address import AccountAddress
from .bcs import MAX_U16

STAGING_MODULE = "large_packages"


class PublishMode(Enum):
    ACCOUNT_DEPLOY = "ACCOUNT_DEPLOY"
    OBJECT_DEPLOY = "OBJECT_DEPLOY"
    OBJECT_UPGRADE = "OBJECT_UPGRADE"


class StageFunction(Enum):
    STAGE_CODE_CHUNK = "stage_code_chunk"
    PUBLISH_TO_ACCOUNT = "stage_code_chunk_and_publish_to_account"
    PUBLISH_TO_OBJECT = "stage_code_chunk_and_publish_to_object"
    UPGRADE_OBJECT_CODE = "stage_code_chunk_and_upgrade_object_code"

    @staticmethod
    def resolve(is_last: bool, publish_mode: PublishMode) -> StageFunction:
        """Pick the entry function for a batch at the given position."""
        if not is_last:
            return StageFunction.STAGE_CODE_CHUNK
        if publish_mode == PublishMode.ACCOUNT_DEPLOY:
            return StageFunction.PUBLISH_TO_ACCOUNT
        if publish_mode == PublishMode.OBJECT_DEPLOY:
            return StageFunction.PUBLISH_TO_OBJECT
        if publish_mode == PublishMode.OBJECT_UPGRADE:
            return StageFunction.UPGRADE_OBJECT_CODE
        raise ValueError(f"Unexpected publish mode: {publish_mode}")

    def is_terminal(self) -> bool:
        return self != StageFunction.STAGE_CODE_CHUNK


def to_hex(value: bytes) -> str:
    return "0x" + value.hex()


@dataclass(frozen=True)
class StageArgument:
    type: str
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "value": self.value}


@dataclass(frozen=True)
class StageCall:
    """One batch of metadata and bytecode bound to a staging entry function.

    Raises:
        ValueError: If indices and module chunks differ in length, an index
            does not fit into u16, or the object address is present on a call
            other than the terminal upgrade (or missing from it).
    """

    function: StageFunction
    module_address: AccountAddress
    metadata_chunk: bytes
    module_indices: List[int]
    module_chunks: List[bytes]
    object_address: Optional[AccountAddress] = None
    type_args: List[str] = field(default_factory=list)

    def __post_init__(self):
        if len(self.module_indices) != len(self.module_chunks):
            raise ValueError(
                f"Module indices and chunks differ in length: "
                f"{len(self.module_indices)} != {len(self.module_chunks)}"
            )
        for index in self.module_indices:
            if index < 0 or index > MAX_U16:
                raise ValueError(f"Module index {index} does not fit into u16")
        needs_address = self.function == StageFunction.UPGRADE_OBJECT_CODE
        if needs_address and self.object_address is None:
            raise ValueError(f"{self.function.value} requires an object address")
        if not needs_address and self.object_address is not None:
            raise ValueError(f"{self.function.value} does not take an object address")

    @property
    def function_id(self) -> str:
        return f"{self.module_address}::{STAGING_MODULE}::{self.function.value}"

    @property
    def size(self) -> int:
        return len(self.metadata_chunk) + sum(len(chunk) for chunk in self.module_chunks)

    def arguments(self) -> List[StageArgument]:
        args = [
            StageArgument("hex", to_hex(self.metadata_chunk)),
            StageArgument("u16", list(self.module_indices)),
            StageArgument("hex", [to_hex(chunk) for chunk in self.module_chunks]),
        ]
        if self.object_address is not None:
            args.append(StageArgument("address", str(self.object_address)))
        return args

    def to_dict(self) -> Dict[str, Any]:
        """JSON document accepted by `aptos move run --json-file`."""
        return {
            "function_id": self.function_id,
            "type_args": list(self.type_args),
            "args": [arg.to_dict() for arg in self.arguments()],
        }


class Test(unittest.TestCase):
    MODULE_ADDRESS = AccountAddress.from_str("0x7")

    def test_resolve(self):
        for mode in PublishMode:
            self.assertEqual(
                StageFunction.resolve(False, mode), StageFunction.STAGE_CODE_CHUNK
            )
        self.assertEqual(
            StageFunction.resolve(True, PublishMode.ACCOUNT_DEPLOY),
            StageFunction.PUBLISH_TO_ACCOUNT,
        )
        self.assertEqual(
            StageFunction.resolve(True, PublishMode.OBJECT_DEPLOY),
            StageFunction.PUBLISH_TO_OBJECT,
        )
        self.assertEqual(
            StageFunction.resolve(True, PublishMode.OBJECT_UPGRADE),
            StageFunction.UPGRADE_OBJECT_CODE,
        )

    def test_resolve_unknown_mode(self):
        with self.assertRaises(ValueError):
            StageFunction.resolve(True, "OBJECT_DEPLOY")  # type: ignore[arg-type]

    def test_to_dict(self):
        call = StageCall(
            StageFunction.STAGE_CODE_CHUNK,
            self.MODULE_ADDRESS,
            b"\x01\x02",
            [0, 1],
            [b"\xa1", b"\xb2\xc3"],
        )
        self.assertEqual(
            call.to_dict(),
            {
                "function_id": "0x7::large_packages::stage_code_chunk",
                "type_args": [],
                "args": [
                    {"type": "hex", "value": "0x0102"},
                    {"type": "u16", "value": [0, 1]},
                    {"type": "hex", "value": ["0xa1", "0xb2c3"]},
                ],
            },
        )
        self.assertEqual(call.size, 5)

    def test_upgrade_call_carries_address(self):
        object_address = AccountAddress.from_str_relaxed("0xc0de")
        call = StageCall(
            StageFunction.UPGRADE_OBJECT_CODE,
            self.MODULE_ADDRESS,
            b"",
            [],
            [],
            object_address,
        )
        args = call.to_dict()["args"]
        self.assertEqual(len(args), 4)
        self.assertEqual(args[0], {"type": "hex", "value": "0x"})
        self.assertEqual(args[3], {"type": "address", "value": str(object_address)})

    def test_invalid_calls(self):
        with self.assertRaises(ValueError):
            StageCall(
                StageFunction.STAGE_CODE_CHUNK, self.MODULE_ADDRESS, b"", [0], []
            )
        with self.assertRaises(ValueError):
            StageCall(
                StageFunction.STAGE_CODE_CHUNK,
                self.MODULE_ADDRESS,
                b"",
                [MAX_U16 + 1],
                [b"\x00"],
            )
        with self.assertRaises(ValueError):
            StageCall(
                StageFunction.UPGRADE_OBJECT_CODE, self.MODULE_ADDRESS, b"", [], []
            )
        with self.assertRaises(ValueError):
            StageCall(
                StageFunction.PUBLISH_TO_OBJECT,
                self.MODULE_ADDRESS,
                b"",
                [],
                [],
                AccountAddress.from_str("0x1"),
            )


if __name__ == "__main__":
    unittest.main()
