from enum import Enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
import json


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class Table(str, Enum):
    TOURNAMENTS = "tournaments"
    PLAYERS = "players"
    REGISTRATIONS = "registrations"
    MATCHES = "matches"


@dataclass
class ChangeEvent:
    table: str
    event_type: ChangeType
    row: dict = None
    tournament_id: Optional[str] = None
    timestamp: str = None

    def __post_init__(self):
        if isinstance(self.table, Table):
            self.table = self.table.value
        if not isinstance(self.event_type, ChangeType):
            self.event_type = ChangeType(self.event_type)
        if self.timestamp is None:
            self.timestamp = datetime.utcnow().isoformat() + "Z"
        if self.row is None:
            self.row = {}

    def to_dict(self) -> dict:
        return {
            "table": self.table,
            "event_type": self.event_type.value,
            "tournament_id": self.tournament_id,
            "timestamp": self.timestamp,
            "row": self.row
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: dict) -> "ChangeEvent":
        return cls(
            table=data["table"],
            event_type=ChangeType(data["event_type"]),
            row=data.get("row", {}),
            tournament_id=data.get("tournament_id"),
            timestamp=data.get("timestamp")
        )

    @classmethod
    def from_json(cls, json_str: str) -> "ChangeEvent":
        return cls.from_dict(json.loads(json_str))


def tournament_channel(tournament_id: str) -> str:
    return f"tournament:{tournament_id}:changes"


def table_channel(table: str) -> str:
    return f"changes:{table}"
