import asyncio
import json

import pytest
import requests
from aiortc import RTCSessionDescription

from sfu_audio_client.config import ClientConfig
from sfu_audio_client.identity import SessionIdentity
from sfu_audio_client.media import LocalAudio
from sfu_audio_client.peer import PeerSessionController
from sfu_audio_client.rpc import RpcResponse

OFFER_SDP = "v=0\r\no=- 1 1 IN IP4 0.0.0.0\r\ns=offer\r\n"
ANSWER_SDP = "v=0\r\no=- 2 2 IN IP4 0.0.0.0\r\ns=answer\r\n"


def jsep(type_, sdp=None):
    return json.dumps({"type": type_, "sdp": sdp or (OFFER_SDP if type_ == "offer" else ANSWER_SDP)})


class FakeTrack:
    kind = "audio"

    def __init__(self):
        self.enabled = True
        self.stopped = False

    def stop(self):
        self.stopped = True


class FakePeer:
    """Records every signaling step into a shared event list."""

    def __init__(self, events, ice_config=None):
        self.events = events
        self.ice_config = ice_config
        self.tracks = []
        self.listeners = {}
        self.localDescription = None
        self.remoteDescription = None
        self.iceConnectionState = "new"
        self.closed = False

    def addTrack(self, track):
        self.tracks.append(track)

    def add_listener(self, event, f):
        self.listeners.setdefault(event, []).append(f)

    def remove_listener(self, event, f):
        self.listeners[event].remove(f)

    def emit(self, event, *args):
        for f in list(self.listeners.get(event, [])):
            f(*args)

    async def createOffer(self):
        self.events.append("createOffer")
        return RTCSessionDescription(sdp=OFFER_SDP, type="offer")

    async def createAnswer(self):
        self.events.append("createAnswer")
        return RTCSessionDescription(sdp=ANSWER_SDP, type="answer")

    async def setLocalDescription(self, description):
        await asyncio.sleep(0)
        self.localDescription = description
        self.events.append(("setLocalDescription", description.type))

    async def setRemoteDescription(self, description):
        await asyncio.sleep(0)
        self.remoteDescription = description
        self.events.append(("setRemoteDescription", description.type))

    async def close(self):
        self.closed = True
        self.events.append("close")


class FakeRpc:
    """
    Scripted RPC client. `script[method]` is a list of responses consumed in
    order (the last one repeats); an exception instance is raised instead.
    """

    def __init__(self, events, script=None):
        self.events = events
        self.script = script or {}
        self.calls = []
        self.closed = False

    async def call(self, method, params):
        await asyncio.sleep(0)
        self.calls.append((method, list(params)))
        self.events.append(("rpc", method))
        queue = self.script.get(method) or [RpcResponse()]
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(result, Exception):
            raise result
        return result

    def methods(self):
        return [m for m, _ in self.calls]

    def close(self):
        self.closed = True


class FakeHttpResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeHttpSession:
    """
    Stands in for requests.Session. `handlers[method]` is either a payload or
    a callable taking the params and returning one.
    """

    def __init__(self, handlers=None):
        self.handlers = handlers or {}
        self.requests = []
        self.closed = False

    def post(self, url, data=None, headers=None, timeout=None):
        body = json.loads(data)
        self.requests.append(body)
        handler = self.handlers.get(body["method"], {"id": body["id"]})
        if isinstance(handler, Exception):
            raise handler
        payload = handler(body["params"]) if callable(handler) else handler
        if isinstance(payload, FakeHttpResponse):
            return payload
        return FakeHttpResponse(payload)

    def calls(self, method=None):
        return [r for r in self.requests if method is None or r["method"] == method]

    def close(self):
        self.closed = True


@pytest.fixture
def events():
    return []


@pytest.fixture
def peers(events):
    return []


@pytest.fixture
def controller(events, peers):
    def peer_factory(ice_config):
        peer = FakePeer(events, ice_config)
        peers.append(peer)
        return peer

    return PeerSessionController(
        username="u1:bmF0aXZl",
        peer_factory=peer_factory,
        media_factory=lambda: LocalAudio(tracks=[FakeTrack()]),
    )


@pytest.fixture
def identity():
    return SessionIdentity(display_name="native", id="u1")


@pytest.fixture
def client_config():
    return ClientConfig(room="test", display_name="native", subscribe_interval=0.01)


async def wait_until(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)
