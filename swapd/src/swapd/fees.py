"""
Fee rate resolution.

All rates are satoshis per 1000 weight units (sat/kw).
"""

from __future__ import annotations

from typing import Protocol

from loguru import logger
from swapcore.constants import (
    DEFAULT_CONF_TARGET,
    DEFAULT_MAX_FEE_PER_KW,
    FEE_PER_KW_FLOOR,
    MAX_CONF_TARGET,
    WITNESS_SCALE_FACTOR,
)
from swapcore.errors import (
    ChainQueryError,
    FeeEstimationUnavailableError,
    InvalidParametersError,
)


class FeeEstimator(Protocol):
    async def estimate_fee_per_kw(self, target_blocks: int) -> int: ...


def sat_per_vbyte_to_per_kw(sat_per_vbyte: int) -> int:
    return sat_per_vbyte * 1000 // WITNESS_SCALE_FACTOR


def fee_for_weight(fee_per_kw: int, weight: int) -> int:
    return fee_per_kw * weight // 1000


async def resolve_fee_per_kw(
    estimator: FeeEstimator,
    conf_target: int = 0,
    explicit_rate: int | None = None,
    default_conf_target: int = DEFAULT_CONF_TARGET,
    max_fee_per_kw: int = DEFAULT_MAX_FEE_PER_KW,
) -> int:
    """
    Pick the fee rate for a settlement.

    An explicit rate wins and is only range-checked. Otherwise the estimator is
    asked for conf_target blocks (0 selects the default target), and an
    estimate below the relay floor is raised to the floor.

    Raises:
        InvalidParametersError: Explicit rate or conf_target out of range
        FeeEstimationUnavailableError: The estimator has no answer
    """
    if explicit_rate is not None:
        if explicit_rate < FEE_PER_KW_FLOOR or explicit_rate > max_fee_per_kw:
            raise InvalidParametersError(
                f"Fee rate {explicit_rate} sat/kw outside [{FEE_PER_KW_FLOOR}, {max_fee_per_kw}]"
            )
        return explicit_rate

    if conf_target < 0 or conf_target > MAX_CONF_TARGET:
        raise InvalidParametersError(
            f"Confirmation target {conf_target} outside [0, {MAX_CONF_TARGET}]"
        )
    target = conf_target or default_conf_target

    try:
        estimate = await estimator.estimate_fee_per_kw(target)
    except ChainQueryError as e:
        raise FeeEstimationUnavailableError(f"Fee estimation failed: {e}") from e

    if estimate is None or estimate <= 0:
        raise FeeEstimationUnavailableError(f"No fee estimate for {target} blocks")

    if estimate < FEE_PER_KW_FLOOR:
        logger.debug(f"Estimate {estimate} sat/kw below floor, using {FEE_PER_KW_FLOOR}")
        return FEE_PER_KW_FLOOR

    logger.debug(f"Using estimated fee rate {estimate} sat/kw for {target} blocks")
    return estimate
