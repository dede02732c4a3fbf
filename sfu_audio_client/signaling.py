import asyncio
import json
import logging
from functools import partial
from typing import Callable, Optional

from aiortc import RTCIceCandidate, RTCSessionDescription
from aiortc.sdp import candidate_to_sdp

from . import common
from .config import SUBSCRIBE_INTERVAL
from .errors import ProtocolMismatch, SessionStale, TransportFailure
from .peer import PeerSessionController, SessionContext

logger = logging.getLogger(__name__)


# ----------------- Descriptor / candidate codecs -----------------
def serialize_description(description) -> str:
    return json.dumps({"type": description.type, "sdp": description.sdp})


def parse_description(payload) -> RTCSessionDescription:
    try:
        jsep = json.loads(payload) if isinstance(payload, str) else payload
        return RTCSessionDescription(sdp=jsep["sdp"], type=jsep["type"])
    except (TypeError, KeyError, ValueError) as e:
        raise ProtocolMismatch(f"malformed session description: {payload!r}") from e


def serialize_candidate(candidate) -> str:
    if isinstance(candidate, RTCIceCandidate):
        candidate = {
            "candidate": "candidate:" + candidate_to_sdp(candidate),
            "sdpMid": candidate.sdpMid,
            "sdpMLineIndex": candidate.sdpMLineIndex,
        }
    # anything else (dicts, None for end-of-candidates) goes out as is
    return json.dumps(candidate)


def _jsep_from(response) -> Optional[RTCSessionDescription]:
    data = response.data
    if not isinstance(data, dict) or not data.get("jsep"):
        return None
    return parse_description(data["jsep"])


# ----------------- Publish -----------------
async def publish(context: SessionContext, rpc, room: str, username: str) -> str:
    peer = context.peer

    offer = await peer.createOffer()
    logger.debug("OFFER %s", offer.sdp)
    await peer.setLocalDescription(offer)

    res = await rpc.call("publish", [room, username, serialize_description(peer.localDescription)])
    if res.error:
        raise ProtocolMismatch(f"publish rejected: {res.error}")

    jsep = _jsep_from(res)
    if jsep is None or jsep.type != "answer":
        raise ProtocolMismatch(f"publish response carries no answer: {res.data!r}")
    track = res.data.get("track")
    if not track:
        raise ProtocolMismatch("publish response carries no track handle")

    await peer.setRemoteDescription(jsep)
    context.track_handle = track
    logger.info("LOCAL TRACK %s", track)
    return track


# ----------------- Trickle -----------------
class IceTrickleRelay:
    def __init__(self, rpc, room: str, username: str):
        self.rpc = rpc
        self.room = room
        self.username = username
        self.pending = set()

    def attach(self, context: SessionContext):
        listener = partial(self.on_local_ice_candidate, track_handle=context.track_handle)
        context.peer.add_listener("icecandidate", listener)
        context.trickle_listener = listener

    def on_local_ice_candidate(self, candidate, track_handle):
        params = [self.room, self.username, track_handle, serialize_candidate(candidate)]
        return common.spawn(self.rpc.call("trickle", params), self.pending, f"trickle for {track_handle}")

    async def drain(self):
        while self.pending:
            await asyncio.gather(*list(self.pending), return_exceptions=True)


# ----------------- Subscribe -----------------
class SubscribeNegotiator:
    """
    Polls `subscribe` for offers the SFU wants answered (new participants
    joining, tracks leaving). A username the SFU no longer recognises means
    the session is gone on its side; `on_stale` is invoked once with the
    context so the caller can rebuild everything.
    """

    def __init__(self, rpc, controller: PeerSessionController, room: str, username: str,
                 on_stale: Callable[[SessionContext], None], interval: float = SUBSCRIBE_INTERVAL):
        self.rpc = rpc
        self.controller = controller
        self.room = room
        self.username = username
        self.on_stale = on_stale
        self.interval = interval

    def start(self, context: SessionContext) -> common.PollingTask:
        context.polling = common.PollingTask(partial(self.run_once, context), self.interval,
                                             context.generation, self.controller.is_current)
        return context.polling.start()

    async def run_once(self, context: SessionContext) -> bool:
        try:
            return await self._poll(context)
        except SessionStale as e:
            logger.warning("session is stale (%s), restarting", e)
            if context.polling is not None:
                context.polling.cancel()
            self.on_stale(context)
            return False
        except Exception:
            # e.g. aiortc refusing an offer it cannot apply; poll again next time
            logger.exception("subscribe iteration for %s failed", context.track_handle)
            return True

    async def _poll(self, context: SessionContext) -> bool:
        track = context.track_handle
        logger.debug("subscribing %s", track)
        try:
            res = await self.rpc.call("subscribe", [self.room, self.username, track])
        except TransportFailure as e:
            logger.warning("subscribe failed: %s", e)
            return True

        if res.error:
            logger.warning("subscribe returned error: %s", res.error)
            return True

        try:
            jsep = _jsep_from(res)
        except ProtocolMismatch as e:
            logger.warning("%s", e)
            return True
        if jsep is None or jsep.type != "offer":
            return True

        if not self.controller.is_current(context.generation):
            return False
        await self._answer(context, jsep)
        return True

    async def _answer(self, context: SessionContext, offer: RTCSessionDescription):
        peer = context.peer
        await peer.setRemoteDescription(offer)
        answer = await peer.createAnswer()
        await peer.setLocalDescription(answer)
        try:
            await self.rpc.call("answer", [self.room, self.username, context.track_handle,
                                           serialize_description(answer)])
        except TransportFailure as e:
            logger.warning("answer failed: %s", e)
