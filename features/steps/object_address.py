import hashlib
import typing

from behave import then, use_step_matcher, when

from large_package_payload.account_address import AccountAddress
from large_package_payload.bcs import Serializer
from large_package_payload.payload_creator import PayloadCreator

# Use regular expressions
use_step_matcher("re")


def parse_bool(input_value: str) -> bool:
    return input_value == "true"


@when(
    r"I create the deployment seed for (?P<count>[0-9]+) stage calls with multi sign (?P<multi_sign>true|false)"
)
def when_create_seed(context: typing.Any, count: str, multi_sign: str):
    context.stage_call_count = int(count)
    context.multi_sign = parse_bool(multi_sign)
    context.seed = PayloadCreator.create_object_deployment_seed(
        context.sequence_number, context.stage_call_count, context.multi_sign
    )


@when(r"I derive the object address for (?P<count>[0-9]+) stage calls")
def when_derive_address(context: typing.Any, count: str):
    context.stage_call_count = int(count)
    context.seed = PayloadCreator.create_object_deployment_seed(
        context.sequence_number, context.stage_call_count
    )
    context.object_address = PayloadCreator.derive_object_address(
        context.sender, context.sequence_number, context.stage_call_count
    )


@then(r"the seed should end with the counter (?P<counter>[0-9]+)")
def then_seed_counter(context: typing.Any, counter: str):
    ser = Serializer()
    ser.to_bytes(b"aptos_framework::object_code_deployment")
    ser.u64(int(counter))
    assert context.seed == ser.output(), context.seed.hex()


@then(r"the object address should be the sha3-256 of sender, seed and 0xFE")
def then_object_address(context: typing.Any):
    digest = hashlib.sha3_256(context.sender.address + context.seed + b"\xfe")
    expected = AccountAddress(digest.digest())
    assert context.object_address == expected, str(context.object_address)
