from __future__ import annotations

from itertools import islice

import pytest

from cloudgpu.retry import PollPolicy, backoff_intervals


def test_backoff_grows_until_capped() -> None:
    policy = PollPolicy(initial_interval_seconds=1, multiplier=2, max_interval_seconds=5, timeout_seconds=60)

    assert list(islice(backoff_intervals(policy), 5)) == [1, 2, 4, 5, 5]


def test_constant_interval_with_unit_multiplier() -> None:
    policy = PollPolicy(initial_interval_seconds=3, multiplier=1, max_interval_seconds=3)

    assert list(islice(backoff_intervals(policy), 3)) == [3, 3, 3]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"initial_interval_seconds": 0},
        {"multiplier": 0.5},
        {"initial_interval_seconds": 5, "max_interval_seconds": 1},
        {"timeout_seconds": 0},
    ],
)
def test_invalid_policies_are_rejected(kwargs: dict[str, float]) -> None:
    with pytest.raises(ValueError):
        PollPolicy(**kwargs)
