import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from aiortc import RTCPeerConnection

from . import common
from .config import AUDIO_DEVICE, AUDIO_FORMAT
from .ice import IceConfiguration
from .media import LocalAudio, open_local_audio

logger = logging.getLogger(__name__)


def create_peer_connection(ice_config: IceConfiguration) -> RTCPeerConnection:
    return RTCPeerConnection(configuration=ice_config.to_rtc_configuration())


@dataclass
class SessionContext:
    """
    Everything that belongs to one negotiated session. Handed to the
    negotiators explicitly; dropped as a whole on teardown.
    """

    generation: int
    peer: Any
    local_audio: LocalAudio
    ice_config: IceConfiguration
    track_handle: Optional[str] = None
    polling: Any = None
    trickle_listener: Any = field(default=None, repr=False)


class PeerSessionController:
    def __init__(self, username: str = "",
                 peer_factory: Callable[[IceConfiguration], Any] = create_peer_connection,
                 media_factory: Callable[[], LocalAudio] = None):
        self.username = username
        self.peer_factory = peer_factory
        self.media_factory = media_factory or (lambda: open_local_audio(AUDIO_DEVICE, AUDIO_FORMAT))
        self.generation = 0
        self._context: Optional[SessionContext] = None

    @property
    def context(self) -> Optional[SessionContext]:
        return self._context

    @property
    def active(self) -> bool:
        return self._context is not None

    def is_current(self, generation: int) -> bool:
        return self._context is not None and self._context.generation == generation

    async def start(self, ice_config: IceConfiguration) -> SessionContext:
        if self._context is not None:
            await self.stop()

        # PermissionDenied propagates before any peer exists
        local_audio = self.media_factory()
        try:
            peer = self.peer_factory(ice_config)
            for track in local_audio.audio_tracks():
                peer.addTrack(track)
        except Exception:
            local_audio.stop()
            raise
        common.add_connection_state_handler(peer, self.username)

        self.generation += 1
        self._context = SessionContext(generation=self.generation, peer=peer,
                                       local_audio=local_audio, ice_config=ice_config)
        logger.info("STARTED CALL (generation %d)", self.generation)
        return self._context

    async def stop(self):
        context = self._context
        if context is None:
            return
        self._context = None
        self.generation += 1

        if context.polling is not None:
            context.polling.cancel()
        if context.trickle_listener is not None:
            context.peer.remove_listener("icecandidate", context.trickle_listener)
            context.trickle_listener = None
        context.local_audio.stop()
        context.track_handle = None
        await context.peer.close()
        logger.info("ENDED CALL (generation %d)", context.generation)

    def toggle_mute(self) -> Optional[bool]:
        if self._context is None:
            return None
        muted = False
        for track in self._context.local_audio.audio_tracks():
            logger.info("%s local track %s", "muting" if track.enabled else "unmuting", track)
            track.enabled = not track.enabled
            muted = not track.enabled
        return muted
