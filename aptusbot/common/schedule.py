"""
Pass schedule: which daily time interval each passNo stands for.

The portal only ever shows clock times; the pass number used by its
booking endpoints has to be recovered from the interval's end time.
"""
import logging
from datetime import date
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

# passNo values the portal accepts
MIN_PASS_NO = 0
MAX_PASS_NO = 7


class PassTime(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: str
    end: str
    # weekday (0 = Monday) -> alternative start time
    weekday_starts: Dict[int, str] = Field(default_factory=dict)
    closed_weekdays: Tuple[int, ...] = ()

    def label(self, day: Optional[date] = None) -> str:
        start = self.start
        if day is not None:
            start = self.weekday_starts.get(day.weekday(), start)
        return f"{start} - {self.end}"


DEFAULT_PASSES: Dict[int, PassTime] = {
    0: PassTime(start="07:00", end="10:00", weekday_starts={1: "09:00", 4: "09:00"}, closed_weekdays=(0,)),
    1: PassTime(start="10:00", end="12:00"),
    2: PassTime(start="12:00", end="14:00"),
    3: PassTime(start="14:00", end="16:00"),
    4: PassTime(start="16:00", end="18:00"),
    5: PassTime(start="18:00", end="20:00"),
    6: PassTime(start="20:00", end="21:00"),
    7: PassTime(start="21:00", end="22:00"),
}


class PassSchedule:
    """
    Immutable, ordered passNo <-> time table.

    Injected wherever times and pass numbers are translated so a deployment
    with different opening hours only needs a different table.
    """

    def __init__(self, passes: Optional[Mapping[int, PassTime]] = None):
        passes = DEFAULT_PASSES if passes is None else passes
        invalid = [n for n in passes if not MIN_PASS_NO <= n <= MAX_PASS_NO]
        if invalid:
            raise ValueError(f"Pass numbers must be between {MIN_PASS_NO} and {MAX_PASS_NO}, got {invalid}")
        ordered = dict(sorted(passes.items()))
        self._passes: Mapping[int, PassTime] = MappingProxyType(ordered)
        self._by_end: Mapping[str, int] = MappingProxyType(
            {p.end: pass_no for pass_no, p in ordered.items()}
        )
        if len(self._by_end) != len(ordered):
            raise ValueError("Pass end times must be unique")

    @property
    def pass_numbers(self) -> List[int]:
        return list(self._passes)

    def __contains__(self, pass_no: int) -> bool:
        return pass_no in self._passes

    def __len__(self) -> int:
        return len(self._passes)

    def get(self, pass_no: int) -> Optional[PassTime]:
        return self._passes.get(pass_no)

    def pass_for_end_time(self, end_time: str) -> Optional[int]:
        return self._by_end.get(end_time.strip())

    def pass_for_range(self, time_range: str) -> Optional[int]:
        """Map an "HH:MM - HH:MM" label to its pass number via the end time"""
        end = time_range.split(" - ")[1] if " - " in time_range else time_range
        return self.pass_for_end_time(end)

    def label(self, pass_no: int, day: Optional[date] = None) -> str:
        pass_time = self._passes.get(pass_no)
        if pass_time is None:
            return "Unknown"
        return pass_time.label(day)

    def is_open(self, pass_no: int, day: date) -> bool:
        pass_time = self._passes.get(pass_no)
        return pass_time is not None and day.weekday() not in pass_time.closed_weekdays

    def start_time(self, pass_no: int, day: Optional[date] = None) -> str:
        label = self.label(pass_no, day)
        return "23:59" if label == "Unknown" else label.split(" - ")[0]
