# kymoflow/io/video.py
"""
Frame-indexable video sources.

Frames are addressed 1-based (as in the interval files) and always returned
as 2-D float intensity arrays; colour frames are converted with the usual
luma weights. Sources carry writable calibration metadata (pixel size and
frame rate) so that the values from the configuration can be attached to the
recording.

Example:
    >>> with open_video("flow.tif") as video:
    ...     video.set_calibration(pixel_size=0.5, frame_rate=30.0)
    ...     stack = video.frames(1, 100)
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Tuple, Union

import cv2
import numpy as np
import tifffile

from ..errors import RangeError


logger = logging.getLogger(__name__)

_LUMA = np.array([0.299, 0.587, 0.114])


def to_intensity(frame: np.ndarray) -> np.ndarray:
    """Return a float 2-D intensity image for a grayscale or RGB(A) frame."""
    frame = np.asarray(frame)
    if frame.ndim == 3 and frame.shape[-1] in (3, 4):
        return frame[..., :3].astype(float) @ _LUMA
    if frame.ndim != 2:
        raise ValueError(f"Unsupported frame shape {frame.shape}")
    return frame.astype(float)


class VideoSource(ABC):
    """Abstract frame-indexable recording."""

    def __init__(self) -> None:
        self.pixel_size: Optional[float] = None
        self.frame_rate: Optional[float] = None

    @property
    @abstractmethod
    def frame_count(self) -> int:
        """Total number of frames."""

    @property
    @abstractmethod
    def frame_shape(self) -> Tuple[int, int]:
        """(height, width) of a frame."""

    @abstractmethod
    def _read(self, index0: int) -> np.ndarray:
        """Read frame ``index0`` (0-based) as stored."""

    def set_calibration(self, pixel_size: Optional[float] = None, frame_rate: Optional[float] = None) -> None:
        if pixel_size is not None:
            self.pixel_size = float(pixel_size)
        if frame_rate is not None:
            self.frame_rate = float(frame_rate)

    def _check_range(self, start: int, end: int) -> None:
        if start < 1 or end > self.frame_count or end < start:
            raise RangeError(f"Frame range {start}-{end} outside video frames 1-{self.frame_count}")

    def frame(self, index: int) -> np.ndarray:
        """Frame ``index`` (1-based) as float intensity."""
        self._check_range(index, index)
        return to_intensity(self._read(index - 1))

    def frames(self, start: int, end: int) -> np.ndarray:
        """Frames ``start``..``end`` (1-based, inclusive) as a (n, H, W) float stack."""
        self._check_range(start, end)
        return np.stack([to_intensity(self._read(i)) for i in range(start - 1, end)])

    def close(self) -> None:
        pass

    def __enter__(self) -> "VideoSource":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class ArrayVideo(VideoSource):
    """In-memory stack of shape (n, H, W) or (n, H, W, 3)."""

    def __init__(self, data: np.ndarray, pixel_size: Optional[float] = None, frame_rate: Optional[float] = None):
        super().__init__()
        data = np.asarray(data)
        if data.ndim not in (3, 4):
            raise ValueError(f"Expected (n, H, W[, C]) array, got shape {data.shape}")
        self._data = data
        self.set_calibration(pixel_size, frame_rate)

    @property
    def frame_count(self) -> int:
        return int(self._data.shape[0])

    @property
    def frame_shape(self) -> Tuple[int, int]:
        return (int(self._data.shape[1]), int(self._data.shape[2]))

    def _read(self, index0: int) -> np.ndarray:
        return self._data[index0]

    def frames(self, start: int, end: int) -> np.ndarray:
        self._check_range(start, end)
        block = self._data[start - 1 : end]
        if block.ndim == 4:
            return block[..., :3].astype(float) @ _LUMA
        return block.astype(float)


class TiffVideo(VideoSource):
    """Multi-page TIFF stack read page by page with tifffile."""

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self.path = Path(path)
        self._tif = tifffile.TiffFile(str(self.path))
        self._pages = self._tif.pages
        first = self._pages[0]
        self._shape = (int(first.shape[0]), int(first.shape[1]))
        self._read_metadata()

    def _read_metadata(self) -> None:
        meta = self._tif.imagej_metadata or {}
        finterval = meta.get("finterval")
        if finterval:
            self.frame_rate = 1.0 / float(finterval)
        fps = meta.get("fps")
        if fps and self.frame_rate is None:
            self.frame_rate = float(fps)
        unit = str(meta.get("unit", "")).lower()
        tag = self._pages[0].tags.get("XResolution")
        if tag is not None and unit in ("micron", "um", "\\u00b5m", "µm"):
            num, den = tag.value
            if num:
                self.pixel_size = float(den) / float(num)

    @property
    def frame_count(self) -> int:
        return len(self._pages)

    @property
    def frame_shape(self) -> Tuple[int, int]:
        return self._shape

    def _read(self, index0: int) -> np.ndarray:
        return self._pages[index0].asarray()

    def close(self) -> None:
        self._tif.close()


class OpenCVVideo(VideoSource):
    """Movie file (avi, mp4, ...) read through cv2.VideoCapture."""

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self.path = Path(path)
        self._cap = cv2.VideoCapture(str(self.path))
        if not self._cap.isOpened():
            raise IOError(f"Could not open video: {self.path}")
        self._count = int(self._cap.get(cv2.CAP_PROP_FRAME_COUNT))
        self._shape = (
            int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
        )
        fps = self._cap.get(cv2.CAP_PROP_FPS)
        if fps and fps > 0:
            self.frame_rate = float(fps)

    @property
    def frame_count(self) -> int:
        return self._count

    @property
    def frame_shape(self) -> Tuple[int, int]:
        return self._shape

    def _read(self, index0: int) -> np.ndarray:
        self._cap.set(cv2.CAP_PROP_POS_FRAMES, index0)
        ok, frame = self._cap.read()
        if not ok:
            raise RangeError(f"Could not read frame {index0 + 1} of {self.path}")
        return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)

    def frames(self, start: int, end: int) -> np.ndarray:
        self._check_range(start, end)
        self._cap.set(cv2.CAP_PROP_POS_FRAMES, start - 1)
        out = []
        for index in range(start, end + 1):
            ok, frame = self._cap.read()
            if not ok:
                raise RangeError(f"Could not read frame {index} of {self.path}")
            out.append(cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY).astype(float))
        return np.stack(out)

    def close(self) -> None:
        self._cap.release()


def open_video(path: Union[str, Path]) -> VideoSource:
    """Open ``path`` with the matching reader (TIFF stacks via tifffile, movies via OpenCV)."""
    path = Path(path)
    if path.suffix.lower() in (".tif", ".tiff"):
        video: VideoSource = TiffVideo(path)
    else:
        video = OpenCVVideo(path)
    logger.info(
        "Opened %s: %d frames of %dx%d",
        path.name,
        video.frame_count,
        video.frame_shape[1],
        video.frame_shape[0],
    )
    return video
