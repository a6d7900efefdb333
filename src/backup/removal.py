"""Single bin removal behind a confirmation gate."""

from __future__ import annotations

from typing import Callable

from core.errors import StrataArgumentError
from core.logging_config import get_logger
from core.types import BinSummary
from layers.composer import LayerComposer
from store.bin_store import BinStore

_LOGGER = get_logger(__name__)

ConfirmRemoval = Callable[[BinSummary], bool]


class BinRemover:
    """Discard one bin outright, without folding it into the seed."""

    def __init__(self, store: BinStore, composer: LayerComposer) -> None:
        self._store = store
        self._composer = composer

    def remove(
        self,
        bin_id: int,
        confirmed: bool = False,
        confirm: ConfirmRemoval | None = None,
    ) -> bool:
        """Delete ``bin_id`` after an optional interactive confirmation.

        Args:
            bin_id: Bin to delete.
            confirmed: Skip the confirmation prompt.
            confirm: Callback shown the bin's size and date; returns approval.

        Returns:
            True when the bin was removed, False when the operator declined.

        Raises:
            StrataIntegrityError: If the ledger and bin directories disagree.
            StrataNotFoundError: If the bin is missing from ledger or disk.
            StrataArgumentError: If confirmation is needed but no callback is given.
        """
        self._store.verify_inventory()
        record = self._store.require_bin(bin_id)
        if not confirmed:
            if confirm is None:
                raise StrataArgumentError(
                    f"Removing bin {bin_id} needs confirmation; pass --yes to skip the prompt."
                )
            if not confirm(self._store.summarize(record)):
                _LOGGER.info("bin_removal_declined", bin_id=bin_id)
                return False
        self._composer.unmount_union()
        self._store.discard_bin(bin_id)
        _LOGGER.info("bin_removed", bin_id=bin_id)
        return True
