from dataclasses import dataclass
from typing import Sequence

import numpy
from av import VideoFrame

# frames smaller than this in both dimensions are not considered rendered
MIN_FRAME_SIZE = 10

# luma weights taken from testrtc
LUMA_WEIGHTS = numpy.array([0.21, 0.72, 0.07])


@dataclass
class Measurement:
    """
    The result of inspecting the remote video of an endpoint.
    """

    width: int
    height: int
    luma: float

    @classmethod
    def zero(cls) -> "Measurement":
        return cls(width=0, height=0, luma=0.0)

    def is_live(self) -> bool:
        return self.width > 0 and self.height > 0 and self.luma > 0


def measure_frame(rgb: numpy.ndarray) -> Measurement:
    """
    Measure a frame given as a ``(height, width, channels)`` array.

    Only the top-left tenth of the frame is inspected.
    """
    height, width = rgb.shape[:2]
    if width < MIN_FRAME_SIZE and height < MIN_FRAME_SIZE:
        return Measurement.zero()

    corner = rgb[: height // 10, : width // 10, :3].astype(numpy.float64)
    luma = float((corner * LUMA_WEIGHTS).sum())
    return Measurement(width=width, height=height, luma=luma)


def measure_rgba(data: Sequence[int], width: int, height: int) -> Measurement:
    """
    Measure RGBA pixel data as returned by a canvas ``getImageData()`` call
    on the top-left tenth of a ``width`` x ``height`` video.
    """
    if width < MIN_FRAME_SIZE and height < MIN_FRAME_SIZE:
        return Measurement.zero()

    pixels = numpy.asarray(data, dtype=numpy.float64).reshape(-1, 4)
    luma = float((pixels[:, :3] * LUMA_WEIGHTS).sum())
    return Measurement(width=width, height=height, luma=luma)


def measure_video_frame(frame: VideoFrame) -> Measurement:
    return measure_frame(frame.to_ndarray(format="rgb24"))
