import typing

from behave import then, use_step_matcher, when
from common import parse_ints

from large_package_payload.account_address import AccountAddress
from large_package_payload.network import DEVNET_MODULE_ADDRESS
from large_package_payload.payload_creator import PayloadCreator
from large_package_payload.stage_call import PublishMode, StageFunction

# Use regular expressions
use_step_matcher("re")


def create_stage_calls(
    context: typing.Any,
    publish_mode: PublishMode,
    object_address: typing.Optional[AccountAddress] = None,
):
    context.stage_calls = PayloadCreator.create_stage_calls(
        context.metadata,
        context.modules,
        DEVNET_MODULE_ADDRESS,
        publish_mode,
        object_address,
        context.max_size,
    )


@when(r"I create the stage calls for (?P<mode>ACCOUNT_DEPLOY|OBJECT_DEPLOY)")
def when_create_stage_calls(context: typing.Any, mode: str):
    create_stage_calls(context, PublishMode(mode))


@when(r"I create the stage calls to upgrade object (?P<address>\S+)")
def when_create_upgrade_stage_calls(context: typing.Any, address: str):
    create_stage_calls(
        context, PublishMode.OBJECT_UPGRADE, AccountAddress.from_str_relaxed(address)
    )


@then(r"there should be (?P<count>[0-9]+) stage calls?")
def then_stage_call_count(context: typing.Any, count: str):
    assert len(context.stage_calls) == int(count), (
        "Expected " + count + " stage calls but got " + str(len(context.stage_calls))
    )


@then(
    r"stage call (?P<position>[0-9]+) should carry module indices \[(?P<indices>[0-9, ]*)]"
)
def then_module_indices(context: typing.Any, position: str, indices: str):
    stage_call = context.stage_calls[int(position) - 1]
    expected = parse_ints(indices)
    assert stage_call.module_indices == expected, (
        "Expected " + str(expected) + " but got " + str(stage_call.module_indices)
    )
    assert len(stage_call.module_chunks) == len(expected)


@then(r"only stage call 1 should carry metadata")
def then_metadata_first(context: typing.Any):
    assert context.stage_calls[0].metadata_chunk == context.metadata
    for stage_call in context.stage_calls[1:]:
        assert stage_call.metadata_chunk == b""


@then(r"the last stage call should call (?P<function>[a-z_]+)")
def then_terminal_function(context: typing.Any, function: str):
    terminal = context.stage_calls[-1]
    assert terminal.function == StageFunction(function), (
        "Expected " + function + " but got " + terminal.function.value
    )
    for stage_call in context.stage_calls[:-1]:
        assert stage_call.function == StageFunction.STAGE_CODE_CHUNK


@then(r"the last stage call should have (?P<count>[0-9]+) arguments")
def then_terminal_argument_count(context: typing.Any, count: str):
    assert len(context.stage_calls[-1].arguments()) == int(count)


@then(r"every other stage call should have 3 arguments")
def then_intermediate_argument_count(context: typing.Any):
    for stage_call in context.stage_calls[:-1]:
        assert len(stage_call.arguments()) == 3


@then(r"every stage call with several modules should fit in the maximum chunk size")
def then_within_limit(context: typing.Any):
    for stage_call in context.stage_calls:
        if len(stage_call.module_chunks) > 1:
            assert stage_call.size <= context.max_size, (
                "Stage call of " + str(stage_call.size) + " bytes exceeds the limit"
            )


@then(r"the module indices should cover all modules in order")
def then_indices_complete(context: typing.Any):
    indices = [idx for call in context.stage_calls for idx in call.module_indices]
    assert indices == list(range(len(context.modules))), str(indices)
