import pytest

from tz.codec import MAX_RUN, decode, decode_text, encode, iter_pairs


def test_concrete_case():
    assert encode(b"aaabbbbbc") == bytes([3, 97, 5, 98, 1, 99])
    assert decode(bytes([3, 97, 5, 98, 1, 99])) == b"aaabbbbbc"


def test_empty():
    assert encode(b"") == b""
    assert decode(b"") == b""


def test_run_cap_splits_long_runs():
    assert encode(b"x" * 300) == bytes([255, ord("x"), 45, ord("x")])
    assert encode(b"\x00" * MAX_RUN) == bytes([255, 0])
    assert encode(b"\x00" * (2 * MAX_RUN)) == bytes([255, 0, 255, 0])


def test_no_repeats_doubles_size():
    data = bytes(range(256))
    out = encode(data)
    assert len(out) == 2 * len(data)
    assert all(count == 1 for count, _ in iter_pairs(out))


def test_dangling_trailing_byte_is_dropped():
    assert decode(bytes([2, 65, 7])) == b"AA"
    assert decode(bytes([9])) == b""


def test_zero_count_emits_nothing():
    assert decode(bytes([0, 65, 2, 66])) == b"BB"


@pytest.mark.parametrize("data", [
    b"a",
    b"ab" * 100,
    b"\n\n\nxyz\x00\x00",
    bytes(range(256)) * 3,
    b"z" * 1000 + b"y" + b"z" * 511,
])
def test_round_trip(data):
    assert decode(encode(data)) == data


def test_decode_text():
    assert decode_text(encode("héllo".encode("utf-8"))) == "héllo"


def test_decode_text_rejects_invalid_utf8():
    with pytest.raises(UnicodeDecodeError):
        decode_text(encode(b"\xff\xfe\xff"))
    # binary entry point never raises
    assert decode(encode(b"\xff\xfe\xff")) == b"\xff\xfe\xff"
