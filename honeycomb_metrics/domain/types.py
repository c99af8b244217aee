"""Domain types and aliases."""

from datetime import datetime
from typing import Any, Callable

Timestamp = datetime

# Compiled predicate: takes the value bound to `result`, returns the raw output
Predicate = Callable[[int], Any]
