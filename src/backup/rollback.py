"""Rollback resolver.

Rolling back ``k`` steps mounts the seed plus the oldest ``L - k`` bins
read-only. The newest kept bin's creation time is the view's as-of
time; with no bins kept the seed's own age is unknown and SEED_EPOCH
is reported instead of a guess.
"""

from __future__ import annotations

from core.constants import SEED_EPOCH
from core.errors import StrataArgumentError
from core.logging_config import get_logger
from core.types import RollbackView
from layers.composer import LayerComposer
from store.bin_store import BinStore

_LOGGER = get_logger(__name__)


class RollbackResolver:
    """Map a step count onto a contiguous prefix of the bin chain."""

    def __init__(self, store: BinStore, composer: LayerComposer) -> None:
        self._store = store
        self._composer = composer

    def rollback(self, steps: int) -> RollbackView:
        """Mount a read-only view excluding the ``steps`` newest bins.

        Raises:
            StrataArgumentError: If ``steps`` is negative or exceeds the chain length.
        """
        self._store.verify_inventory()
        chain = self._store.chain()
        if steps < 0 or steps > len(chain):
            raise StrataArgumentError(
                f"Cannot roll back {steps} steps: choose between 0 and {len(chain)}."
            )
        kept = chain[: len(chain) - steps]
        kept_ids = tuple(record.bin_id for record in kept)
        self._composer.unmount_union()
        self._composer.mount_seed()
        mount_path = self._composer.compose(kept_ids)
        as_of = kept[-1].created_at if kept else SEED_EPOCH
        _LOGGER.info(
            "rollback_mounted",
            steps=steps,
            kept_bin_ids=list(kept_ids),
            as_of=as_of.isoformat(),
        )
        return RollbackView(
            steps=steps,
            kept_bin_ids=kept_ids,
            as_of=as_of,
            mount_path=mount_path,
        )
