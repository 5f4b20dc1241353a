from enum import Enum
from typing import List
from dataclasses import dataclass

from .errors import NotAllowed


class TournamentPhase(str, Enum):
    REGISTRATION = "registration"
    CLOSED = "closed"
    ACTIVE = "active"

    @classmethod
    def from_flags(cls, registration_open: bool, is_active: bool) -> "TournamentPhase":
        if is_active:
            return cls.ACTIVE
        if registration_open:
            return cls.REGISTRATION
        return cls.CLOSED


class TransitionError(NotAllowed):
    def __init__(self, from_phase: str, action: str, reason: str = None):
        self.from_phase = from_phase
        self.action = action
        super().__init__(reason or f"Cannot {action.replace('_', ' ')} a tournament in {from_phase} phase")


@dataclass
class Transition:
    from_phase: TournamentPhase
    action: str
    registration_open: bool = None
    is_active: bool = None


class TournamentStateMachine:
    """
    Guards tournament operations by phase.

    The phase is derived from the two stored flags, so a transition is
    expressed as the flag values it sets; None leaves a flag untouched.
    """

    TRANSITIONS = [
        Transition(TournamentPhase.REGISTRATION, "activate", is_active=True),
        Transition(TournamentPhase.CLOSED, "activate", is_active=True),
        Transition(TournamentPhase.ACTIVE, "deactivate", is_active=False),
        Transition(TournamentPhase.CLOSED, "open_registration", registration_open=True),
        Transition(TournamentPhase.REGISTRATION, "close_registration", registration_open=False),
    ]

    ALLOWED_ACTIONS = {
        TournamentPhase.REGISTRATION: [
            "edit", "register", "unregister", "activate", "close_registration", "regenerate", "delete"
        ],
        TournamentPhase.CLOSED: [
            "edit", "unregister", "activate", "open_registration", "regenerate", "delete"
        ],
        TournamentPhase.ACTIVE: [
            "edit", "record_result", "deactivate", "regenerate", "delete"
        ],
    }

    def __init__(self, registration_open: bool = True, is_active: bool = False):
        self.registration_open = registration_open
        self.is_active = is_active
        self._history: List[tuple] = []

    @property
    def phase(self) -> TournamentPhase:
        return TournamentPhase.from_flags(self.registration_open, self.is_active)

    @property
    def allowed_actions(self) -> List[str]:
        return self.ALLOWED_ACTIONS.get(self.phase, [])

    def can_perform(self, action: str) -> bool:
        return action in self.allowed_actions

    def require(self, action: str):
        if not self.can_perform(action):
            raise TransitionError(self.phase.value, action)

    def transition(self, action: str) -> TournamentPhase:
        for t in self.TRANSITIONS:
            if t.from_phase == self.phase and t.action == action:
                old_phase = self.phase
                if t.registration_open is not None:
                    self.registration_open = t.registration_open
                if t.is_active is not None:
                    self.is_active = t.is_active
                self._history.append((old_phase, action, self.phase))
                return self.phase

        raise TransitionError(
            self.phase.value,
            action,
            f"No valid transition for action '{action}' from phase '{self.phase.value}'"
        )

    def get_history(self) -> List[tuple]:
        return self._history.copy()

    @classmethod
    def for_tournament(cls, tournament) -> "TournamentStateMachine":
        return cls(
            registration_open=bool(tournament.registration_open),
            is_active=bool(tournament.is_active)
        )
