"""Upload session state and the session handle."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class SessionState(str, Enum):
    """Where an upload attempt currently is."""

    IDLE = "idle"
    INITIALIZING = "initializing"
    READY = "ready"
    TRANSFERRING = "transferring"
    TRANSFERRED = "transferred"
    FINALIZING = "finalizing"
    DONE = "done"
    ERRORED = "errored"


class Phase(str, Enum):
    """The three independently failable steps of an upload attempt."""

    INIT = "init"
    TRANSFER = "transfer"
    FINALIZE = "finalize"


# States with a network round trip outstanding
IN_FLIGHT_STATES = frozenset(
    [SessionState.INITIALIZING, SessionState.TRANSFERRING, SessionState.FINALIZING]
)


@dataclass(frozen=True)
class UploadStatus:
    """Snapshot of the coordinator's state.

    ``phase`` and ``cause`` are only set for ``SessionState.ERRORED``.
    """

    state: SessionState
    phase: Optional[Phase] = None
    cause: Optional[str] = None

    def __post_init__(self):
        errored = self.state is SessionState.ERRORED
        if errored != (self.phase is not None) or errored != (self.cause is not None):
            raise ValueError("phase and cause are required for errored status and only for it")

    @classmethod
    def errored(cls, phase: Phase, cause: str) -> "UploadStatus":
        return cls(state=SessionState.ERRORED, phase=phase, cause=cause)

    @property
    def is_errored(self) -> bool:
        return self.state is SessionState.ERRORED

    @property
    def is_in_flight(self) -> bool:
        return self.state in IN_FLIGHT_STATES

    def __str__(self) -> str:
        if self.is_errored:
            return f"errored({self.phase.value}, {self.cause})"
        return self.state.value


@dataclass
class UploadSession:
    """One write target plus the asset it belongs to.

    Only the coordinator that initialized it may use it. ``transferred_at``
    is set once the single PUT to ``write_target`` succeeded.
    """

    asset_id: str
    write_target: str
    created_at: datetime
    transferred_at: Optional[datetime] = field(default=None)

    def __setattr__(self, name, value):
        if name in ("asset_id", "write_target") and name in self.__dict__:
            raise AttributeError(f"{name} cannot be changed once assigned")
        super().__setattr__(name, value)
