import pytest

from ethrpc.block import BlockTag
from ethrpc.logs import Filter, FilterBuilder, Log, TopicFilter
from ethrpc.primitives import H160, H256, Bytes


def _log(log_type=None, removed=None) -> Log:
    return Log(
        address=H160.from_low_u64_be(1),
        topics=[],
        data=Bytes(b""),
        block_hash=H256.from_low_u64_be(2),
        block_number=1,
        transaction_hash=H256.from_low_u64_be(3),
        transaction_index=0,
        log_index=0,
        transaction_log_index=0,
        log_type=log_type,
        removed=removed,
    )


def test_is_removed_removed_true():
    assert _log(removed=True).is_removed() is True


def test_is_removed_removed_false():
    assert _log(removed=False).is_removed() is False


def test_is_removed_log_type_removed():
    assert _log(log_type="removed").is_removed() is True


def test_is_removed_log_type_mined():
    assert _log(log_type="mined").is_removed() is False


def test_is_removed_log_type_and_removed_none():
    assert _log().is_removed() is False


def test_does_topic_filter_set_topics_correctly():
    topic_filter = TopicFilter(
        topic0=H256.from_low_u64_be(3),
        topic1=[H256.from_low_u64_be(n) for n in (5, 8)],
        topic2=H256.from_low_u64_be(13),
        topic3=None,
    )
    filter0 = FilterBuilder().topic_filter(topic_filter).build()
    filter1 = (
        FilterBuilder()
        .topics(
            [H256.from_low_u64_be(3)],
            [H256.from_low_u64_be(n) for n in (5, 8)],
            [H256.from_low_u64_be(13)],
            None,
        )
        .build()
    )
    assert filter0 == filter1


def test_log_round_trip():
    log = _log(log_type="mined", removed=False)
    log.topics = [H256.from_low_u64_be(9)]
    log.data = Bytes(b"\x01\x02")
    assert Log.from_json(log.to_json()) == log


def test_log_missing_address():
    data = _log().to_json()
    del data["address"]
    with pytest.raises(ValueError):
        Log.from_json(data)


def test_log_removed_must_be_bool():
    data = _log().to_json()
    data["removed"] = "yes"
    with pytest.raises(ValueError):
        Log.from_json(data)


def test_empty_filter_serializes_to_empty_object():
    assert FilterBuilder().build().to_json() == {}


def test_filter_single_address_is_a_value():
    address = H160.from_low_u64_be(1)
    data = FilterBuilder().address([address]).build().to_json()
    assert data == {"address": address.to_json()}


def test_filter_many_addresses_is_an_array():
    addresses = [H160.from_low_u64_be(1), H160.from_low_u64_be(2)]
    data = FilterBuilder().address(addresses).build().to_json()
    assert data["address"] == [a.to_json() for a in addresses]


def test_filter_no_address_is_null():
    assert FilterBuilder().address([]).build().to_json() == {"address": None}


def test_filter_trailing_any_topics_are_dropped():
    topic = H256.from_low_u64_be(7)
    built = FilterBuilder().topics(None, [topic], None, None).build()
    assert built.topics == [None, [topic]]
    assert built.to_json()["topics"] == [None, topic.to_json()]


def test_filter_blocks_and_limit():
    built = (
        FilterBuilder()
        .from_block(BlockTag.EARLIEST)
        .to_block(BlockTag.LATEST)
        .limit(10)
        .build()
    )
    assert built.to_json() == {"fromBlock": "earliest", "toBlock": "latest", "limit": 10}


def test_builder_steps_do_not_change_original():
    base = FilterBuilder()
    base.limit(3)
    assert base.build() == Filter()


def test_limit_rejects_negative():
    with pytest.raises(ValueError):
        FilterBuilder().limit(-1)