import pytest

from ethrpc.sync import SyncInfo, SyncState

EXPECTED = SyncState(SyncInfo(starting_block=0x0, current_block=0x42, highest_block=0x9001))

RPC_INFO = dict(
    startingBlock="0x0",
    currentBlock="0x42",
    highestBlock="0x9001",
    knownStates="0x1337",
    pulledStates="0x13",
)

SUBSCRIPTION_STATUS = dict(
    StartingBlock="0x0",
    CurrentBlock="0x42",
    HighestBlock="0x9001",
    KnownStates="0x1337",
    PulledStates="0x13",
)


def test_should_deserialize_rpc_sync_info():
    assert SyncState.from_json(dict(RPC_INFO)) == EXPECTED


def test_should_deserialize_subscription_sync_info():
    payload = dict(syncing=True, status=dict(SUBSCRIPTION_STATUS))
    assert SyncState.from_json(payload) == EXPECTED


def test_should_deserialize_boolean_not_syncing():
    value = SyncState.from_json(False)
    assert value == SyncState()
    assert value.is_syncing is False


def test_should_deserialize_subscription_not_syncing():
    assert SyncState.from_json(dict(syncing=False)) == SyncState()


def test_should_not_deserialize_invalid_boolean_syncing():
    with pytest.raises(ValueError):
        SyncState.from_json(True)


def test_should_not_deserialize_invalid_subscription_syncing():
    with pytest.raises(ValueError):
        SyncState.from_json(dict(syncing=True))


def test_should_not_deserialize_invalid_subscription_not_syncing():
    payload = dict(syncing=False, status=dict(SUBSCRIPTION_STATUS))
    with pytest.raises(ValueError):
        SyncState.from_json(payload)


def test_serialize_not_syncing_is_false():
    assert SyncState().to_json() is False


def test_serialize_syncing_round_trip():
    encoded = EXPECTED.to_json()
    assert encoded == {
        "startingBlock": "0x0",
        "currentBlock": "0x42",
        "highestBlock": "0x9001",
    }
    assert SyncState.from_json(encoded) == EXPECTED


def test_rejects_other_json_types():
    with pytest.raises(ValueError):
        SyncState.from_json(5)