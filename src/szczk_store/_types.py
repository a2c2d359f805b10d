"""Type aliases used throughout szczk_store."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import BinaryIO, Union

WritableContent = Union[BinaryIO, bytes]  # noqa: UP007
ProgressCallback = Callable[[int, int], None]
Clock = Callable[[], datetime]
