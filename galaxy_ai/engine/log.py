"""
Per-player choice log.

Every decision made on a real game state is appended to the deciding
player's log, so a game can be replayed or inspected afterwards.
"""
from typing import Dict, List

from pydantic import BaseModel, Field, TypeAdapter

from galaxy_ai.core.constants import ChoiceKind


class DecisionSample(BaseModel):
    """One logged decision."""
    kind: ChoiceKind
    value: int = 0
    candidates: List[int] = Field(default_factory=list)  # Items offered
    items: List[int] = Field(default_factory=list)  # Items returned
    special: List[int] = Field(default_factory=list)
    round: int = 0


class PlayerLog(BaseModel):
    player: int
    samples: List[DecisionSample] = Field(default_factory=list)


_PLAYER_LOGS = TypeAdapter(List[PlayerLog])


class ChoiceLog:
    """Append-only choice logs, one per player."""

    def __init__(self):
        self._logs: Dict[int, PlayerLog] = {}

    def append(self, who: int, sample: DecisionSample) -> None:
        self._logs.setdefault(who, PlayerLog(player=who)).samples.append(sample)

    def samples(self, who: int) -> List[DecisionSample]:
        log = self._logs.get(who)
        return list(log.samples) if log else []

    def __len__(self) -> int:
        return sum(len(log.samples) for log in self._logs.values())

    def clear(self) -> None:
        self._logs.clear()

    def to_dict(self) -> Dict[str, List[dict]]:
        return {
            str(who): [sample.model_dump(mode="json") for sample in log.samples]
            for who, log in sorted(self._logs.items())
        }

    def dump_json(self, path: str) -> None:
        """Write every player's log to a JSON file."""
        logs = [log for _, log in sorted(self._logs.items())]
        with open(path, 'wb') as f:
            f.write(_PLAYER_LOGS.dump_json(logs, indent=2))

    @staticmethod
    def load_json(path: str) -> List[PlayerLog]:
        """Read logs written by ``dump_json``."""
        with open(path, 'rb') as f:
            return _PLAYER_LOGS.validate_json(f.read())
