from ethgo.primitives import hex_to_hash
from ethgo.structs import Block, Log
from ethgo.testutil.compare import compare_blocks, compare_logs


def test_compare_logs_empty():
    assert compare_logs([], []) is True


def test_compare_logs_length_mismatch():
    assert compare_logs([Log(block_number=1)], []) is False


def test_compare_logs_equal_and_different():
    a = [Log(block_number=1, data=b"\x01"), Log(block_number=2)]
    b = [Log(block_number=1, data=b"\x01"), Log(block_number=2)]
    assert compare_logs(a, b) is True
    b[1] = Log(block_number=3)
    assert compare_logs(a, b) is False


def test_compare_logs_order_matters():
    a = [Log(block_number=1), Log(block_number=2)]
    assert compare_logs(a, list(reversed(a))) is False


def test_compare_blocks_ignores_difficulty():
    a = [Block(number=1, hash=hex_to_hash("0x1"), difficulty=5)]
    b = [Block(number=1, hash=hex_to_hash("0x1"), difficulty=9)]
    assert compare_blocks(a, b) is True


def test_compare_blocks_detects_hash_change():
    a = [Block(number=1, hash=hex_to_hash("0x1"))]
    b = [Block(number=1, hash=hex_to_hash("0x2"))]
    assert compare_blocks(a, b) is False


def test_compare_blocks_length_and_empty():
    assert compare_blocks([], []) is True
    assert compare_blocks([Block()], []) is False


def test_compare_blocks_does_not_mutate():
    a = [Block(number=1, difficulty=5)]
    compare_blocks(a, [Block(number=1)])
    assert a[0].difficulty == 5