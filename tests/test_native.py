from aiortc import RTCConfiguration, RTCSessionDescription
from rtcinterop.exceptions import EndpointError, NegotiationError
from rtcinterop.media import Measurement
from rtcinterop.native import NativeEndpoint, native_scenario
from rtcinterop.sequencer import NegotiationSequencer, NegotiationState

from .utils import TestCase, asynctest, no_delay


def local_configuration() -> RTCConfiguration:
    # no STUN server, only host candidates
    return RTCConfiguration(iceServers=[])


class NativeEndpointTest(TestCase):
    @asynctest
    async def test_renegotiation(self) -> None:
        a = NativeEndpoint("a", local_configuration())
        b = NativeEndpoint("b", local_configuration())
        await a.open()
        await b.open()
        try:
            sequencer = NegotiationSequencer(a, b, delay=no_delay)
            deliveries = await sequencer.run()
        finally:
            await a.close()
            await b.close()

        self.assertEqual(sequencer.state, NegotiationState.TERMINAL)
        self.assertEqual(
            [d.description.type for d in deliveries],
            ["offer", "answer", "offer", "answer"],
        )

        offer, answer, reoffer, reanswer = [d.description.sdp for d in deliveries]
        self.assertIn("m=audio ", offer)
        self.assertNotIn("m=video ", offer)
        self.assertIn("m=audio ", reoffer)
        self.assertIn("m=video ", reoffer)
        self.assertIn("m=video ", reanswer)

        # aiortc uses a=msid, the ssrc flavour was added on the way
        for line in offer.split("\r\n"):
            if line.startswith("a=msid:"):
                msid = line[7:]
                break
        else:
            self.fail("no a=msid line in offer")
        self.assertIn(f" msid:{msid}\r\n", offer)

    @asynctest
    async def test_not_open(self) -> None:
        endpoint = NativeEndpoint("a")
        with self.assertRaises(EndpointError):
            await endpoint.create_offer(["audio"])
        self.assertEqual(await endpoint.measure_video(), Measurement.zero())
        await endpoint.close()

    @asynctest
    async def test_unknown_kind(self) -> None:
        endpoint = NativeEndpoint("a", local_configuration())
        await endpoint.open()
        try:
            with self.assertRaises(EndpointError):
                await endpoint.create_offer(["bogus"])
        finally:
            await endpoint.close()

    @asynctest
    async def test_answer_without_offer(self) -> None:
        a = NativeEndpoint("a", local_configuration())
        b = NativeEndpoint("b", local_configuration())
        await a.open()
        await b.open()
        try:
            offer = await a.create_offer(["audio"])
            with self.assertRaises(EndpointError):
                # b has not made an offer
                await b.accept_answer(
                    RTCSessionDescription(sdp=offer.sdp, type="answer")
                )
        finally:
            await a.close()
            await b.close()

    @asynctest
    async def test_rejected_description_aborts(self) -> None:
        a = NativeEndpoint("a", local_configuration())
        b = NativeEndpoint("b", local_configuration())
        await a.open()
        await b.open()
        try:
            sequencer = NegotiationSequencer(
                a, b, delay=no_delay, mangler=lambda sdp: "v=0\r\n"
            )
            with self.assertRaises(NegotiationError) as cm:
                await sequencer.run()
        finally:
            await a.close()
            await b.close()
        self.assertEqual(cm.exception.state, "answer-pending")
        self.assertIsNotNone(cm.exception.__cause__)

    def test_scenario(self) -> None:
        scenario = native_scenario(local_configuration())
        self.assertEqual(scenario.name, "native")
