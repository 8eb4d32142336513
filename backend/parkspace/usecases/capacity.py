from __future__ import annotations

import logging
from datetime import datetime

from ..domain.errors import CapacityOracleUnavailableError
from ..domain.repositories import CapacityOracle
from ..domain.services import CapacitySnapshot
from ..utils.time import local_naive_to_utc_naive

logger = logging.getLogger(__name__)


async def fetch_capacity(
    oracle: CapacityOracle,
    *,
    space_id: int,
    max_vehicles: int | None,
    starts_at: datetime,
    ends_at: datetime,
) -> CapacitySnapshot:
    """
    Ask the oracle how many vehicle slots are free for the local interval.
    If the oracle is down, assume the whole space is free so composing is not blocked.
    """
    try:
        available = await oracle.query(
            space_id,
            local_naive_to_utc_naive(starts_at),
            local_naive_to_utc_naive(ends_at),
        )
    except CapacityOracleUnavailableError as exc:
        fallback = max_vehicles or 1
        logger.warning("capacity oracle unavailable for space %s, assuming %s slots: %s", space_id, fallback, exc)
        return CapacitySnapshot(available_slots=fallback, starts_at=starts_at, ends_at=ends_at, fallback=True)
    return CapacitySnapshot(available_slots=max(int(available), 0), starts_at=starts_at, ends_at=ends_at)


class CapacityMonitor:
    """
    Latest capacity for one space while a booking is being composed.

    Every refresh gets a sequence number. Responses that come back after a newer
    refresh was issued are dropped, so a slow answer never overwrites a fresher one.
    """

    def __init__(self, oracle: CapacityOracle, *, space_id: int, max_vehicles: int | None) -> None:
        self.oracle = oracle
        self.space_id = space_id
        self.max_vehicles = max_vehicles
        self.snapshot: CapacitySnapshot | None = None
        self._issued = 0

    @property
    def latest_sequence(self) -> int:
        return self._issued

    def invalidate(self) -> None:
        self.snapshot = None

    async def refresh(self, starts_at: datetime, ends_at: datetime) -> CapacitySnapshot | None:
        self._issued += 1
        sequence = self._issued
        self.snapshot = None
        snapshot = await fetch_capacity(
            self.oracle,
            space_id=self.space_id,
            max_vehicles=self.max_vehicles,
            starts_at=starts_at,
            ends_at=ends_at,
        )
        if sequence != self._issued:
            logger.debug(
                "dropping stale capacity response #%s for space %s (latest #%s)",
                sequence,
                self.space_id,
                self._issued,
            )
            return None
        self.snapshot = snapshot
        return snapshot
