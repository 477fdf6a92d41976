"""Centralized color constants for console rendering."""

import os

# GitHub Dark palette
ACCENT = "#7FA6D9"
BORDER = "#30363D"
DIM = "#6E7681"
TEXT = "#E6EDF3"
MUTED = "#8B949E"

SUCCESS = "#57DB9C"
WARN = "#E3B341"
ERROR = "#F85149"
INFO = "#58A6FF"

# Priority badges
PRIORITY_COLORS = {
    "High": ERROR,
    "Medium": WARN,
    "Low": INFO,
}

if os.environ.get("NO_COLOR"):
    ACCENT = BORDER = DIM = TEXT = MUTED = "default"
    SUCCESS = WARN = ERROR = INFO = "default"
    PRIORITY_COLORS = {k: "default" for k in PRIORITY_COLORS}
