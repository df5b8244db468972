from unittest import TestCase

import numpy
from av import VideoFrame
from rtcinterop.media import (
    Measurement,
    measure_frame,
    measure_rgba,
    measure_video_frame,
)


class MeasurementTest(TestCase):
    def test_is_live(self) -> None:
        self.assertTrue(Measurement(640, 480, 1.0).is_live())
        self.assertFalse(Measurement(640, 480, 0.0).is_live())
        self.assertFalse(Measurement(0, 480, 1.0).is_live())
        self.assertFalse(Measurement.zero().is_live())


class MeasureTest(TestCase):
    def test_measure_frame(self) -> None:
        frame = numpy.zeros((480, 640, 3), numpy.uint8)
        frame[:, :] = (100, 200, 50)
        measurement = measure_frame(frame)
        self.assertEqual(measurement.width, 640)
        self.assertEqual(measurement.height, 480)
        # 64 x 48 pixels are inspected
        self.assertAlmostEqual(
            measurement.luma, 64 * 48 * (0.21 * 100 + 0.72 * 200 + 0.07 * 50),
            delta=1e-6,
        )

    def test_measure_frame_only_top_left(self) -> None:
        frame = numpy.zeros((480, 640, 3), numpy.uint8)
        frame[48:, :] = 255
        frame[:, 64:] = 255
        measurement = measure_frame(frame)
        self.assertEqual(measurement.luma, 0.0)
        self.assertFalse(measurement.is_live())

    def test_measure_frame_too_small(self) -> None:
        frame = numpy.full((8, 8, 3), 255, numpy.uint8)
        self.assertEqual(measure_frame(frame), Measurement.zero())

    def test_measure_rgba(self) -> None:
        # alpha is ignored
        data = [10, 20, 30, 255] * 4
        measurement = measure_rgba(data, 20, 20)
        self.assertEqual(measurement.width, 20)
        self.assertEqual(measurement.height, 20)
        self.assertAlmostEqual(measurement.luma, 4 * (0.21 * 10 + 0.72 * 20 + 0.07 * 30))

    def test_measure_rgba_too_small(self) -> None:
        self.assertEqual(measure_rgba([], 0, 0), Measurement.zero())
        self.assertEqual(measure_rgba([255] * 4, 5, 5), Measurement.zero())

    def test_measure_video_frame(self) -> None:
        frame = VideoFrame.from_ndarray(
            numpy.full((480, 640, 3), 128, numpy.uint8), format="rgb24"
        )
        measurement = measure_video_frame(frame)
        self.assertEqual((measurement.width, measurement.height), (640, 480))
        self.assertAlmostEqual(measurement.luma, 64 * 48 * 128.0, delta=1e-6)
