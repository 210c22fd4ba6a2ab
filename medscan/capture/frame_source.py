"""Frame sources for the capture controller.

Device access itself is platform glue (browser camera, OpenCV capture,
uploaded photo). The controller only needs an exclusively-owned source it
can open, read frames from, and close again.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Protocol, Sequence, runtime_checkable

from medscan.common.errors import DeviceUnavailableError
from medscan.common.types import ImageInput

logger = logging.getLogger(__name__)


@runtime_checkable
class FrameSource(Protocol):
    """Exclusively-owned image source.

    ``open`` raises DeviceUnavailableError when the device cannot be
    acquired. ``read`` returns None when no frame is available right now.
    ``close`` must be safe to call more than once.
    """

    @property
    def is_open(self) -> bool:
        ...

    def open(self) -> None:
        ...

    def read(self) -> Optional[ImageInput]:
        ...

    def close(self) -> None:
        ...


class StaticFrameSource:
    """Frame source replaying a fixed sequence of images.

    Useful for uploaded photos and for replaying recorded sessions. Returns
    None once the sequence is exhausted.

    Args:
        frames: Images to hand out in order.
        name: Device name used in log messages.
    """

    def __init__(self, frames: Sequence[ImageInput], name: str = "static"):
        self.frames: List[ImageInput] = list(frames)
        self.name = name
        self._position = 0
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        if self._open:
            raise DeviceUnavailableError("device is already in use", device=self.name)
        self._open = True
        self._position = 0

    def read(self) -> Optional[ImageInput]:
        if not self._open:
            raise DeviceUnavailableError("device is not open", device=self.name)
        if self._position >= len(self.frames):
            return None
        frame = self.frames[self._position]
        self._position += 1
        return frame

    def close(self) -> None:
        self._open = False


@contextmanager
def device_scope(source: FrameSource) -> Iterator[FrameSource]:
    """Guarantee the source is closed on every exit path.

    Opening is left to the caller (the state machine decides when the device
    is acquired); this only ensures release, including when recognition
    raises or the loop is interrupted.
    """
    try:
        yield source
    finally:
        if source.is_open:
            logger.info("Releasing capture device")
            source.close()
