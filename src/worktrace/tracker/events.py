"""Activity events raised by the editor front-end."""

import enum
from dataclasses import dataclass
from datetime import datetime


class ActivityType(str, enum.Enum):
    """Kinds of editor activity that count as presence."""

    TEXT_CHANGE = "text_change"
    FILE_SAVE = "file_save"
    SELECTION_CHANGE = "selection_change"
    TERMINAL_INPUT = "terminal_input"
    WINDOW_FOCUS = "window_focus"
    WINDOW_BLUR = "window_blur"


@dataclass(frozen=True)
class ActivityEvent:
    """A single activity signal for one workspace root."""

    type: ActivityType
    timestamp: datetime
