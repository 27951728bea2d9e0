import json

import pytest

from ethrpc.block import BlockTag
from ethrpc.primitives import H160, H256, Bytes
from ethrpc.trace_filtering import (
    ActionType,
    Call,
    CallResult,
    CallType,
    Create,
    CreateResult,
    Reward,
    RewardType,
    Suicide,
    Trace,
    TraceFilter,
    TraceFilterBuilder,
    action_to_json,
    parse_action,
    parse_res,
    res_to_json,
)

INPUT = (
    "0xb9f256cd000000000000000000000000fb6916095ca1df60bb79ce92ce3ea74c37c5d359"
    "0000000000000000000000000000000000000000000000000000000000000000"
    "0000000000000000000000000000000000000000000000000000000000000080"
    "00000000000000000000000000000000000000000000000000000000000001a0"
    "00000000000000000000000000000000000000000000000000000000000000e8"
    "5468697320697320746865206f6666696369616c20457468657265756d20466f"
    "756e646174696f6e20546970204a61722e20466f722065766572792061626f76"
    "652061206365727461696e2076616c756520646f6e6174696f6e207765276c6c"
    "2063726561746520616e642073656e6420746f20796f752061206272616e6420"
    "6e657720556e69636f726e20546f6b656e2028f09fa684292e20436865636b20"
    "74686520756e69636f726e2070726963652062656c6f77202831206574686572"
    "203d20313030302066696e6e6579292e205468616e6b7320666f722074686520"
    "737570706f727421000000000000000000000000000000000000000000000000"
    "0000000000000000000000000000000000000000000000000000000000000000"
    "0000000000000000000000000000000000000000000000000000000000000000"
)

COMMON = """
    "blockHash": "0x6474a53a9ebf72d306a1406ec12ded12e210b6c3141b4373bfb3a3cea987dfb8",
    "blockNumber": 988775,
    "result": {
        "gasUsed": "0x4b419",
        "output": "0x0000000000000000000000000000000000000000000000000000000000000000"
    },
    "subtraces": 1,
    "traceAddress": [],
    "transactionHash": "0x342c284238149db221f9d87db87f90ffad7ac0aac57c0c480142f4c21b63f652",
    "transactionPosition": 1,
"""

EXAMPLE_TRACE_CALL = (
    '{"action": {"callType": "call",'
    '"from": "0xd1220a0cf47c7b9be7a2e6ba89f429762e7b9adb",'
    '"gas": "0x63ab9",'
    f'"input": "{INPUT}",'
    '"to": "0xfb6916095ca1df60bb79ce92ce3ea74c37c5d359",'
    '"value": "0x0"},' + COMMON + '"type": "call"}'
)

EXAMPLE_TRACE_CREATE = (
    '{"action": {'
    '"from": "0xd1220a0cf47c7b9be7a2e6ba89f429762e7b9adb",'
    '"gas": "0x63ab9",'
    f'"init": "{INPUT}",'
    '"value": "0x0"},' + COMMON + '"type": "create"}'
)

EXAMPLE_TRACE_SUICIDE = (
    '{"action": {'
    '"address": "0xd1220a0cf47c7b9be7a2e6ba89f429762e7b9adb",'
    '"refundAddress": "0xfb6916095ca1df60bb79ce92ce3ea74c37c5d359",'
    '"balance": "0x0"},' + COMMON + '"type": "suicide"}'
)

EXAMPLE_TRACE_REWARD = (
    '{"action": {'
    '"author": "0xd1220a0cf47c7b9be7a2e6ba89f429762e7b9adb",'
    '"value": "0x0",'
    '"rewardType": "block"},' + COMMON + '"type": "reward"}'
)

SENDER = H160.from_hex("0xd1220a0cf47c7b9be7a2e6ba89f429762e7b9adb")
RECEIVER = H160.from_hex("0xfb6916095ca1df60bb79ce92ce3ea74c37c5d359")


def _load(text):
    return Trace.from_json(json.loads(text))


def test_input_fixture_is_whole_words():
    assert len(Bytes.from_json(INPUT)) == 4 + 32 * 14


def test_deserialize_call_trace():
    trace = _load(EXAMPLE_TRACE_CALL)
    assert trace.action_type is ActionType.CALL
    assert isinstance(trace.action, Call)
    assert trace.action.from_ == SENDER
    assert trace.action.to == RECEIVER
    assert trace.action.gas == 0x63AB9
    assert trace.action.value == 0
    assert trace.action.call_type is CallType.CALL
    assert bytes(trace.action.input)[:4] == bytes.fromhex("b9f256cd")
    assert trace.block_number == 988775
    assert trace.subtraces == 1
    assert trace.trace_address == []
    assert trace.transaction_position == 1
    assert trace.error is None
    assert trace.result == CallResult(gas_used=0x4B419, output=Bytes(bytes(32)))


def test_deserialize_create_trace():
    trace = _load(EXAMPLE_TRACE_CREATE)
    assert trace.action_type is ActionType.CREATE
    assert isinstance(trace.action, Create)
    assert trace.action.from_ == SENDER
    assert trace.action.gas == 0x63AB9


def test_deserialize_suicide_trace():
    trace = _load(EXAMPLE_TRACE_SUICIDE)
    assert trace.action_type is ActionType.SUICIDE
    assert trace.action == Suicide(address=SENDER, refund_address=RECEIVER, balance=0)


def test_deserialize_reward_trace():
    trace = _load(EXAMPLE_TRACE_REWARD)
    assert trace.action_type is ActionType.REWARD
    assert trace.action == Reward(author=SENDER, value=0, reward_type=RewardType.BLOCK)
    assert trace.block_hash == H256.from_hex(
        "0x6474a53a9ebf72d306a1406ec12ded12e210b6c3141b4373bfb3a3cea987dfb8"
    )


@pytest.mark.parametrize(
    "text",
    [EXAMPLE_TRACE_CALL, EXAMPLE_TRACE_CREATE, EXAMPLE_TRACE_SUICIDE, EXAMPLE_TRACE_REWARD],
)
def test_trace_round_trip(text):
    trace = _load(text)
    assert Trace.from_json(trace.to_json()) == trace


def test_trace_without_result_and_error():
    data = json.loads(EXAMPLE_TRACE_REWARD)
    del data["result"]
    data["error"] = "Reverted"
    trace = Trace.from_json(data)
    assert trace.result is None
    assert trace.error == "Reverted"


def test_trace_with_unknown_type_fails():
    data = json.loads(EXAMPLE_TRACE_CALL)
    data["type"] = "teleport"
    with pytest.raises(ValueError):
        Trace.from_json(data)


def test_parse_action_rejects_unknown_shape():
    with pytest.raises(ValueError):
        parse_action({"something": "else"})


def test_action_to_json_rejects_non_action():
    with pytest.raises(TypeError):
        action_to_json("call")


def test_parse_res_variants():
    assert parse_res(None) is None
    assert parse_res("Reverted") == "Reverted"
    created = parse_res({"gasUsed": "0x10", "code": "0x60", "address": RECEIVER.to_json()})
    assert created == CreateResult(gas_used=16, code=Bytes(b"\x60"), address=RECEIVER)
    assert res_to_json(created) == {
        "gasUsed": "0x10",
        "code": "0x60",
        "address": RECEIVER.to_json(),
    }
    with pytest.raises(ValueError):
        parse_res(5)


def test_empty_trace_filter_serializes_to_empty_object():
    assert TraceFilterBuilder().build().to_json() == {}


def test_trace_filter_builder():
    built = (
        TraceFilterBuilder()
        .from_block(BlockTag.EARLIEST)
        .to_block(0x10)
        .from_address([SENDER])
        .to_address([RECEIVER])
        .after(3)
        .count(7)
        .build()
    )
    assert built == TraceFilter(
        from_block=BlockTag.EARLIEST,
        to_block=16,
        from_address=[SENDER],
        to_address=[RECEIVER],
        after=3,
        count=7,
    )
    assert built.to_json() == {
        "fromBlock": "earliest",
        "toBlock": "0x10",
        "fromAddress": [SENDER.to_json()],
        "toAddress": [RECEIVER.to_json()],
        "after": 3,
        "count": 7,
    }


def test_trace_filter_builder_is_immutable():
    base = TraceFilterBuilder()
    base.count(4)
    assert base.build().count is None


def test_trace_filter_builder_rejects_negative_offset():
    with pytest.raises(ValueError):
        TraceFilterBuilder().after(-1)