# media_release/timelock/__init__.py
"""
Media Release Time-Lock

    TimeLockRequestBuilder: validate target height, seal reveal payload
    TimeLockOracle:         interface to the oracle network
    MockTimeLockOracle:     in-memory oracle for tests
"""

from .request import (
    TimeLockRequestBuilder,
    TimeLockRequest,
    TimeLockOracle,
    MockTimeLockOracle,
    LockedCiphertext,
    validate_target_block,
    encode_block_condition,
    UINT40_MAX,
    TimeLockError,
    TargetBlockOverflow,
    ConditionNotMet,
)

__all__ = [
    "TimeLockRequestBuilder",
    "TimeLockRequest",
    "TimeLockOracle",
    "MockTimeLockOracle",
    "LockedCiphertext",
    "validate_target_block",
    "encode_block_condition",
    "UINT40_MAX",
    "TimeLockError",
    "TargetBlockOverflow",
    "ConditionNotMet",
]
