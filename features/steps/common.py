import typing

from behave import given, use_step_matcher

from large_package_payload.account_address import AccountAddress

# Use regular expressions
use_step_matcher("re")


@given(r"package metadata of (?P<size>[0-9]+) bytes")
def given_metadata(context: typing.Any, size: str):
    context.metadata = b"\xff" * int(size)


@given(r"modules of sizes \[(?P<sizes>[0-9, ]*)]")
def given_modules(context: typing.Any, sizes: str):
    context.modules = [
        bytes([idx % 256]) * size for idx, size in enumerate(parse_ints(sizes))
    ]


@given(r"a maximum chunk size of (?P<size>[0-9]+) bytes")
def given_max_size(context: typing.Any, size: str):
    context.max_size = int(size)


@given(r"sender address (?P<address>\S+)")
def given_sender(context: typing.Any, address: str):
    context.sender = AccountAddress.from_str_relaxed(address)


@given(r"sequence number (?P<sequence_number>[0-9]+)")
def given_sequence_number(context: typing.Any, sequence_number: str):
    context.sequence_number = int(sequence_number)


def parse_ints(input_value: str) -> typing.List[int]:
    # Skip early if there are no values
    if len(input_value.strip()) == 0:
        return []
    return [int(val) for val in input_value.split(",")]
