# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Large Package Payload Creator - staged deployment payloads for Aptos Move packages.

Aptos transactions are limited to 64KB, which many real Move packages exceed
once compiled. The `large_packages` staging contract accepts a package in
pieces: each call stages a chunk of metadata and bytecode, and the last call
publishes or upgrades the assembled package. This package prepares those calls
ahead of time as JSON payloads, so they can be submitted by a single signer
with `aptos move run --json-file`, or proposed one by one through a multisig
account.

Modules:
- **payload_creator**: Chunk packing, object address prediction and the
  two-pass build flow
- **stage_call**: Stage call model and terminal entry function selection
- **artifacts**: Reading Move.toml, build output and compiled artifacts
- **aptos_cli_wrapper**: Running `aptos move build`
- **async_client**: Sequence number lookup against a fullnode
- **payload_writer**: Writing `payload_<n>.json` files
- **network**: Fullnode URLs and staging contract addresses per network
- **cli**: The `large-package-payload-creator create` command

Deployment Modes:
    Account deployment:
        The package is published under the sender's account. The named
        address is bound to the sender.

    Object deployment:
        The package is published to a new object whose address is derived from
        the sender's sequence number. The package is compiled twice, the
        second time against the predicted object address.

    Object upgrade:
        The package replaces the code in an existing object. The named address
        is bound to that object and the final call carries its address.

Quick Start:
    From the command line::

        large-package-payload-creator create \
            --dir ./my_package \
            --sender-address 0x1234... \
            --contract-address-name my_contract \
            --deploy-object true

    From Python::

        import asyncio
        from large_package_payload.account_address import AccountAddress
        from large_package_payload.async_client import RestClient
        from large_package_payload.payload_creator import (
            DeploymentConfig,
            PayloadCreator,
        )
        from large_package_payload.payload_writer import write_payloads
        from large_package_payload.stage_call import PublishMode

        async def main():
            client = RestClient("https://fullnode.devnet.aptoslabs.com/v1")
            config = DeploymentConfig(
                sender=AccountAddress.from_str_relaxed("0x1234"),
                contract_address_name="my_contract",
                publish_mode=PublishMode.OBJECT_DEPLOY,
            )
            result = await PayloadCreator(client).create_payloads("./my_package", config)
            await client.close()
            write_payloads(result.stage_calls, "./payloads")
            print(f"Package will be deployed to {result.address}")

        asyncio.run(main())

Development:
    Running tests::

        python -m unittest discover -s large_package_payload -p '*.py' -t .
        behave

Requirements:
    - Python 3.8 or higher
    - httpx for the fullnode REST API
    - tomli for reading Move.toml
    - Aptos CLI for Move compilation
"""
