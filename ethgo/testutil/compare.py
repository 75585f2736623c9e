"""Helpers to compare chain data in tests."""

from __future__ import annotations

import dataclasses

from ..structs import Block, Log


def compare_logs(one: list[Log], two: list[Log]) -> bool:
    """Return whether two lists of logs are equal element by element."""
    if len(one) != len(two):
        return False
    return list(one) == list(two)


def _normalised(block: Block) -> Block:
    return dataclasses.replace(
        block,
        difficulty=0,
        transactions=list(block.transactions or []),
    )


def compare_blocks(one: list[Block], two: list[Block]) -> bool:
    """Return whether two lists of blocks are equal, ignoring difficulty."""
    if len(one) != len(two):
        return False
    return [_normalised(b) for b in one] == [_normalised(b) for b in two]