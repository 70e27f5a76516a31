# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Writes stage calls as `payload_<n>.json` files, numbered from 1 in submission order.
"""

import json
import logging
import os
import tempfile
import unittest
from typing import List

from .account_address import AccountAddress
from .stage_call import StageCall, StageFunction


def payload_file_name(position: int) -> str:
    return f"payload_{position}.json"


def write_payloads(stage_calls: List[StageCall], out_dir: str) -> List[str]:
    """Write one JSON file per stage call and return their paths."""
    os.makedirs(out_dir, exist_ok=True)

    paths = []
    for position, stage_call in enumerate(stage_calls, start=1):
        out_path = os.path.join(out_dir, payload_file_name(position))
        with open(out_path, "w", encoding="utf-8") as f:
            json.dump(stage_call.to_dict(), f, indent=2)
        paths.append(out_path)

    logging.info(f"Generated {len(paths)} payload JSON files, saved in {out_dir}")
    return paths


class Test(unittest.TestCase):
    def test_write_payloads(self):
        module_address = AccountAddress.from_str("0x7")
        calls = [
            StageCall(StageFunction.STAGE_CODE_CHUNK, module_address, b"\x01", [0], [b"\x02"]),
            StageCall(StageFunction.PUBLISH_TO_ACCOUNT, module_address, b"", [1], [b"\x03"]),
        ]
        with tempfile.TemporaryDirectory() as tmp:
            out_dir = os.path.join(tmp, "payloads")
            paths = write_payloads(calls, out_dir)
            self.assertEqual(
                [os.path.basename(path) for path in paths],
                ["payload_1.json", "payload_2.json"],
            )
            with open(paths[1], encoding="utf-8") as f:
                written = json.load(f)
        self.assertEqual(
            written["function_id"],
            "0x7::large_packages::stage_code_chunk_and_publish_to_account",
        )
        self.assertEqual(written["args"][0], {"type": "hex", "value": "0x"})
        self.assertEqual(written["args"][2], {"type": "hex", "value": ["0x03"]})


if __name__ == "__main__":
    unittest.main()
