# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Asynchronous fullnode client used by the payload creator.

Preparing an object deployment needs exactly one piece of chain state: the
deployer's current sequence number, read from its `0x1::account::Account`
resource. This module wraps that lookup around an `httpx.AsyncClient`
configured the same way the SDK configures its REST client.

Sequence number semantics:
    - An account resource with `data.sequence_number` yields that number.
    - A 404, or a well formed account resource whose `data` object lacks the
      field, means the account has not been created on chain yet. That is a
      valid starting point for a deployment, so the lookup returns 0.
    - Any other error status, a body that is not an account resource, `data`
      that is missing or not an object, or a sequence number that is not a
      non-negative integer raises ApiError. Nothing is retried.

Examples:
    Looking up a sequence number::

        client = RestClient("https://fullnode.devnet.aptoslabs.com/v1")
        try:
            sequence_number = await client.account_sequence_number(sender)
        finally:
            await client.close()
"""

import logging
import unittest
import unittest.mock
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from .account_address import AccountAddress
from .metadata import Metadata

ACCOUNT_RESOURCE = "0x1::account::Account"


@dataclass
class ClientConfig:
    """Network parameters for RestClient.

    Attributes:
        http2: Enable HTTP/2 (default: True)
        api_key: Optional API key sent as a bearer token (default: None)
    """

    http2: bool = True
    api_key: Optional[str] = None


class RestClient:
    """Minimal async client for the Aptos fullnode REST API."""

    client: httpx.AsyncClient
    client_config: ClientConfig
    base_url: str

    def __init__(self, base_url: str, client_config: ClientConfig = ClientConfig()):
        self.base_url = base_url
        # Default limits
        limits = httpx.Limits()
        # Default timeouts but do not set a pool timeout, since the idea is that jobs will wait as
        # long as progress is being made.
        timeout = httpx.Timeout(60.0, pool=None)
        # Default headers
        headers = {Metadata.APTOS_HEADER: Metadata.get_aptos_header_val()}
        self.client = httpx.AsyncClient(
            http2=client_config.http2,
            limits=limits,
            timeout=timeout,
            headers=headers,
        )
        self.client_config = client_config
        if client_config.api_key:
            self.client.headers["Authorization"] = f"Bearer {client_config.api_key}"

    async def close(self):
        await self.client.aclose()

    #
    # Account accessors
    #

    async def account_resource(
        self,
        account_address: AccountAddress,
        resource_type: str,
        ledger_version: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Retrieves an individual resource from a given account and at a specific ledger version.

        :param account_address: Address of the account.
        :param resource_type: Name of struct to retrieve e.g. 0x1::account::Account.
        :param ledger_version: Ledger version to get state of account. If not provided, it will be the latest version.
        :return: The resource as decoded JSON.
        :raises ResourceNotFound: If the node answers 404.
        :raises ApiError: For any other error status, or a body that is not a JSON object.
        """
        response = await self._get(
            endpoint=f"accounts/{account_address}/resource/{resource_type}",
            params={"ledger_version": ledger_version},
        )
        if response.status_code == 404:
            raise ResourceNotFound(f"{resource_type} - {account_address}", resource_type)
        if response.status_code >= 400:
            raise ApiError(f"{response.text} - {account_address}", response.status_code)
        try:
            resource = response.json()
        except ValueError as e:
            raise ApiError(
                f"Malformed resource response - {account_address}: {response.text}",
                response.status_code,
            ) from e
        if not isinstance(resource, dict):
            raise ApiError(
                f"Unexpected resource response shape - {account_address}: {resource}",
                response.status_code,
            )
        return resource

    async def account_sequence_number(
        self, account_address: AccountAddress, ledger_version: Optional[int] = None
    ) -> int:
        """
        Fetch the current sequence number for an account address.

        :param account_address: Address of the account.
        :param ledger_version: Ledger version to get state of account. If not provided, it will be the latest version.
        :return: The current sequence number, or 0 for an account that does not exist yet.
        :raises ApiError: If the body is not an account resource, its data is malformed,
            or the sequence number is not a non-negative integer.
        """
        try:
            resource = await self.account_resource(
                account_address, ACCOUNT_RESOURCE, ledger_version
            )
        except ResourceNotFound:
            logging.info(f"Account {account_address} not found, using sequence number 0")
            return 0

        if resource.get("type") != ACCOUNT_RESOURCE:
            raise ApiError(
                f"Expected {ACCOUNT_RESOURCE} resource - {account_address}: {resource}",
                200,
            )
        data = resource.get("data")
        if not isinstance(data, dict):
            raise ApiError(
                f"Malformed {ACCOUNT_RESOURCE} data - {account_address}: {data!r}", 200
            )
        if data.get("sequence_number") is None:
            logging.info(
                f"Account {account_address} has no sequence number, using sequence number 0"
            )
            return 0

        raw_sequence_number = data["sequence_number"]
        # Integers arrive as decimal strings, bool is a subclass of int
        if isinstance(raw_sequence_number, bool) or not isinstance(
            raw_sequence_number, (str, int)
        ):
            raise ApiError(
                f"Invalid sequence number {raw_sequence_number!r} - {account_address}",
                200,
            )
        try:
            sequence_number = int(raw_sequence_number)
        except ValueError as e:
            raise ApiError(
                f"Invalid sequence number {raw_sequence_number!r} - {account_address}",
                200,
            ) from e
        if sequence_number < 0:
            raise ApiError(
                f"Invalid sequence number {sequence_number} - {account_address}", 200
            )
        return sequence_number

    async def _get(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        # format params:
        params = {} if params is None else params
        params = {key: val for key, val in params.items() if val is not None}
        return await self.client.get(
            url=f"{self.base_url}/{endpoint}",
            params=params,
        )


class ApiError(Exception):
    """The API returned a non-success status code, e.g., >= 400, or an unusable body"""

    status_code: int

    def __init__(self, message: str, status_code: int):
        # Call the base class constructor with the parameters it needs
        super().__init__(message)
        self.status_code = status_code


class ResourceNotFound(Exception):
    """The underlying resource was not found"""

    resource: str

    def __init__(self, message: str, resource: str):
        # Call the base class constructor with the parameters it needs
        super().__init__(message)
        self.resource = resource


class Test(unittest.IsolatedAsyncioTestCase):
    SENDER = AccountAddress.from_str_relaxed("0xb0b")

    async def asyncSetUp(self):
        self.client = RestClient(
            "https://fullnode.devnet.aptoslabs.com/v1", ClientConfig(http2=False)
        )

    async def asyncTearDown(self):
        await self.client.close()

    def _patch_get(self, response: httpx.Response):
        return unittest.mock.patch.object(
            RestClient, "_get", unittest.mock.AsyncMock(return_value=response)
        )

    async def test_sequence_number(self):
        response = httpx.Response(
            200,
            json={
                "type": ACCOUNT_RESOURCE,
                "data": {"sequence_number": "42", "authentication_key": "0x0"},
            },
        )
        with self._patch_get(response) as get:
            self.assertEqual(await self.client.account_sequence_number(self.SENDER), 42)
        get.assert_awaited_once()
        self.assertEqual(
            get.await_args.kwargs["endpoint"],
            f"accounts/{self.SENDER}/resource/{ACCOUNT_RESOURCE}",
        )

    async def test_sequence_number_missing_account(self):
        response = httpx.Response(404, json={"error_code": "resource_not_found"})
        with self._patch_get(response):
            self.assertEqual(await self.client.account_sequence_number(self.SENDER), 0)

    async def test_sequence_number_missing_field(self):
        response = httpx.Response(200, json={"type": ACCOUNT_RESOURCE, "data": {}})
        with self._patch_get(response):
            self.assertEqual(await self.client.account_sequence_number(self.SENDER), 0)

    async def test_sequence_number_server_error(self):
        response = httpx.Response(500, text="internal error")
        with self._patch_get(response):
            with self.assertRaises(ApiError) as cm:
                await self.client.account_sequence_number(self.SENDER)
        self.assertEqual(cm.exception.status_code, 500)
        self.assertIn(str(self.SENDER), str(cm.exception))

    async def test_sequence_number_unexpected_shape(self):
        response = httpx.Response(200, json=["not", "an", "object"])
        with self._patch_get(response):
            with self.assertRaises(ApiError):
                await self.client.account_sequence_number(self.SENDER)

    async def test_sequence_number_not_a_number(self):
        response = httpx.Response(
            200, json={"type": ACCOUNT_RESOURCE, "data": {"sequence_number": "abc"}}
        )
        with self._patch_get(response):
            with self.assertRaises(ApiError):
                await self.client.account_sequence_number(self.SENDER)

    async def test_sequence_number_not_an_account_resource(self):
        for body in ({}, {"message": "x", "error_code": "internal"}):
            with self._patch_get(httpx.Response(200, json=body)):
                with self.assertRaises(ApiError):
                    await self.client.account_sequence_number(self.SENDER)

    async def test_sequence_number_malformed_data(self):
        for data in ("garbage", None, [1]):
            response = httpx.Response(
                200, json={"type": ACCOUNT_RESOURCE, "data": data}
            )
            with self._patch_get(response):
                with self.assertRaises(ApiError):
                    await self.client.account_sequence_number(self.SENDER)
        response = httpx.Response(200, json={"type": ACCOUNT_RESOURCE})
        with self._patch_get(response):
            with self.assertRaises(ApiError):
                await self.client.account_sequence_number(self.SENDER)

    async def test_sequence_number_wrong_value_type(self):
        for value in (5.9, True, [5], {"value": 5}, "-1"):
            response = httpx.Response(
                200,
                json={"type": ACCOUNT_RESOURCE, "data": {"sequence_number": value}},
            )
            with self._patch_get(response):
                with self.assertRaises(ApiError):
                    await self.client.account_sequence_number(self.SENDER)

    async def test_sequence_number_integer_value(self):
        response = httpx.Response(
            200, json={"type": ACCOUNT_RESOURCE, "data": {"sequence_number": 7}}
        )
        with self._patch_get(response):
            self.assertEqual(await self.client.account_sequence_number(self.SENDER), 7)

    async def test_api_key_header(self):
        client = RestClient(
            "http://127.0.0.1:8080/v1", ClientConfig(http2=False, api_key="secret")
        )
        self.assertEqual(client.client.headers["Authorization"], "Bearer secret")
        self.assertIn(Metadata.APTOS_HEADER, client.client.headers)
        await client.close()


if __name__ == "__main__":
    unittest.main()
