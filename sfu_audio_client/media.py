"""
Local audio capture.

The capture device is opened through aiortc's MediaPlayer. Its audio track is
wrapped so that muting replaces frames with silence instead of stopping the
track, which keeps the RTP stream alive while muted.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from aiortc import MediaStreamTrack
from aiortc.contrib.media import MediaPlayer

from .errors import PermissionDenied

logger = logging.getLogger(__name__)


class MutableAudioTrack(MediaStreamTrack):
    kind = "audio"

    def __init__(self, track: MediaStreamTrack):
        super().__init__()
        self.track = track
        self.enabled = True

    async def recv(self):
        frame = await self.track.recv()
        if not self.enabled:
            for plane in frame.planes:
                plane.update(bytes(plane.buffer_size))
        return frame

    def stop(self):
        super().stop()
        self.track.stop()


@dataclass
class LocalAudio:
    tracks: List[MutableAudioTrack] = field(default_factory=list)
    player: Optional[MediaPlayer] = None

    def audio_tracks(self):
        return [t for t in self.tracks if t.kind == "audio"]

    def stop(self):
        for track in self.tracks:
            track.stop()


def open_local_audio(device: str, format: Optional[str] = None, options: Optional[dict] = None) -> LocalAudio:
    try:
        player = MediaPlayer(device, format=format, options=options or {})
    except (OSError, ValueError) as e:
        # av raises OSError subclasses for busy or forbidden devices
        raise PermissionDenied(f"could not open audio device {device!r}: {e}") from e

    if player.audio is None:
        raise PermissionDenied(f"audio device {device!r} has no audio stream")

    logger.info("opened audio device %s (format=%s)", device, format)
    return LocalAudio(tracks=[MutableAudioTrack(player.audio)], player=player)
