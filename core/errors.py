from enum import Enum
from dataclasses import dataclass
from typing import Any, Optional


class ErrorKind(str, Enum):
    INSUFFICIENT_PLAYERS = "insufficient_players"
    UNSUPPORTED_FORMAT = "unsupported_format"
    INVALID_CONFIGURATION = "invalid_configuration"
    MALFORMED_RESULT = "malformed_result"
    PERSISTENCE_FAILURE = "persistence_failure"
    SCHEDULE_BUSY = "schedule_busy"
    NOT_FOUND = "not_found"
    NOT_ALLOWED = "not_allowed"


class TournamentError(Exception):
    kind = ErrorKind.INVALID_CONFIGURATION

    def __init__(self, message: str = None):
        self.message = message or self.kind.value.replace('_', ' ')
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {'error': self.message, 'kind': self.kind.value}


class InsufficientPlayers(TournamentError):
    kind = ErrorKind.INSUFFICIENT_PLAYERS

    def __init__(self, player_count: int, minimum: int = 2):
        self.player_count = player_count
        self.minimum = minimum
        super().__init__(
            f"Need at least {minimum} players to generate matches, have {player_count}"
        )


class UnsupportedFormat(TournamentError):
    kind = ErrorKind.UNSUPPORTED_FORMAT

    def __init__(self, tournament_format):
        self.tournament_format = tournament_format
        value = getattr(tournament_format, 'value', tournament_format)
        super().__init__(f"Cannot generate a schedule for format '{value}'")


class InvalidConfiguration(TournamentError):
    kind = ErrorKind.INVALID_CONFIGURATION


class MalformedResult(TournamentError):
    kind = ErrorKind.MALFORMED_RESULT

    def __init__(self, result):
        self.result = result
        super().__init__(f"Unrecognized match result '{result}'")


class PersistenceFailure(TournamentError):
    kind = ErrorKind.PERSISTENCE_FAILURE


class ScheduleBusy(TournamentError):
    kind = ErrorKind.SCHEDULE_BUSY

    def __init__(self, tournament_id: str):
        self.tournament_id = tournament_id
        super().__init__(f"Schedule for {tournament_id} is already being generated")


class NotFound(TournamentError):
    kind = ErrorKind.NOT_FOUND


class NotAllowed(TournamentError):
    kind = ErrorKind.NOT_ALLOWED


@dataclass
class Outcome:
    """
    Tagged result returned by core and registry operations.

    Unpacks like the (success, payload) tuples used at the call sites:
        ok, rounds = generate_schedule(...)
    where payload is the value on success and the error on failure.
    """
    ok: bool
    value: Any = None
    error: Optional[TournamentError] = None

    @classmethod
    def success(cls, value: Any = None) -> "Outcome":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: TournamentError) -> "Outcome":
        return cls(ok=False, error=error)

    def unwrap(self):
        if not self.ok:
            raise self.error
        return self.value

    def __iter__(self):
        yield self.ok
        yield self.value if self.ok else self.error

    def __bool__(self) -> bool:
        return self.ok
