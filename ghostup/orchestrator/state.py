"""Per-run state machine."""
import os
from pathlib import Path
from typing import Dict, FrozenSet, Optional, Union

from ..models import FileDescriptor, NegotiatedDestination, TransferStrategy, UploadState
from ..utils.events import StateChange

S = UploadState

ALLOWED_TRANSITIONS: Dict[UploadState, FrozenSet[UploadState]] = {
    S.IDLE: frozenset({S.PROBING, S.FAILED}),
    S.PROBING: frozenset({S.PLANNING, S.FAILED}),
    S.PLANNING: frozenset({S.NEGOTIATING, S.FAILED}),
    S.NEGOTIATING: frozenset({S.TRANSFERRING, S.FAILED}),
    S.TRANSFERRING: frozenset({S.FINALIZING, S.FAILED}),
    S.FINALIZING: frozenset({S.DONE, S.FAILED}),
    S.DONE: frozenset(),
    S.FAILED: frozenset(),
}


class UploadRun:
    """
    Cross-phase state of one upload run.

    Holds the descriptor, the chosen strategy and the negotiated destination.
    All three are dropped when the run reaches DONE or FAILED. A destination
    can be claimed once for the transfer and once for finalize.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = path
        self.state = UploadState.IDLE
        self.descriptor: Optional[FileDescriptor] = None
        self.strategy: Optional[TransferStrategy] = None
        self._filename = Path(os.fspath(path)).name or os.fspath(path)
        self._destination: Optional[NegotiatedDestination] = None
        self._transfer_claimed = False
        self._finalize_claimed = False

    @property
    def filename(self) -> str:
        return self._filename

    @property
    def has_destination(self) -> bool:
        return self._destination is not None

    def advance(self, new_state: UploadState) -> StateChange:
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal upload state transition {self.state.name} -> {new_state.name}")
        change = StateChange(Path(os.fspath(self.path)), self._filename, self.state, new_state)
        self.state = new_state
        if new_state.is_terminal:
            self._discard()
        return change

    def set_descriptor(self, descriptor: FileDescriptor) -> None:
        self.descriptor = descriptor
        self._filename = descriptor.display_name

    def hold_destination(self, destination: NegotiatedDestination) -> None:
        if self._destination is not None or self._transfer_claimed:
            raise RuntimeError("A destination was already negotiated for this run")
        self._destination = destination

    def claim_for_transfer(self) -> NegotiatedDestination:
        if self._destination is None or self._transfer_claimed:
            raise RuntimeError("Negotiated destination is not available for transfer")
        self._transfer_claimed = True
        return self._destination

    def claim_for_finalize(self) -> str:
        if self._destination is None or not self._transfer_claimed or self._finalize_claimed:
            raise RuntimeError("Negotiated destination is not available for finalize")
        self._finalize_claimed = True
        return self._destination.opaque_key

    def discard_destination(self) -> None:
        self._destination = None

    def _discard(self) -> None:
        self.descriptor = None
        self.strategy = None
        self._destination = None
