import asyncio
import logging
from typing import Optional

from . import common
from .config import ClientConfig
from .errors import NegotiationError
from .ice import resolve_ice_config
from .identity import SessionIdentity, create_identity, percent_encode
from .media import open_local_audio
from .peer import PeerSessionController, SessionContext, create_peer_connection
from .rpc import RpcClient
from .signaling import IceTrickleRelay, SubscribeNegotiator, publish

logger = logging.getLogger(__name__)


class AudioSessionClient:
    """
    Joins a room on the SFU with one published audio track and keeps the
    session negotiated until stop() or close().

    start() runs the whole chain: turn credentials, peer connection with the
    local microphone, publish, then ICE trickling and the subscribe loop. When
    the SFU forgets us the subscribe loop tears the session down and start()
    is run again in the background.
    """

    def __init__(self, config: Optional[ClientConfig] = None, identity: Optional[SessionIdentity] = None,
                 rpc=None, controller: Optional[PeerSessionController] = None):
        self.config = config or ClientConfig()
        self.identity = identity or create_identity(self.config.display_name)
        self.room = percent_encode(self.config.room)
        self.username = self.identity.username_token

        self.rpc = rpc or RpcClient(self.config.rpc_endpoint,
                                    usernames=(self.identity.username, self.username),
                                    timeout=self.config.rpc_timeout)
        self.controller = controller or PeerSessionController(
            username=self.identity.username,
            peer_factory=create_peer_connection,
            media_factory=lambda: open_local_audio(self.config.audio_device, self.config.audio_format),
        )
        self.trickle = IceTrickleRelay(self.rpc, self.room, self.username)
        self.subscriber = SubscribeNegotiator(self.rpc, self.controller, self.room, self.username,
                                              on_stale=self._schedule_restart,
                                              interval=self.config.subscribe_interval)
        self.restarts = 0
        self._background = set()

    @property
    def context(self) -> Optional[SessionContext]:
        return self.controller.context

    async def start(self) -> str:
        ice_config = await resolve_ice_config(self.rpc, self.username, self.config.ice_policy)
        context = await self.controller.start(ice_config)
        try:
            track = await publish(context, self.rpc, self.room, self.username)
        except NegotiationError as e:
            # the session stays up without a track; no retry
            logger.error("publish failed: %s", e)
            raise

        self.trickle.attach(context)
        self.subscriber.start(context)
        return track

    async def restart(self, context: SessionContext):
        if not self.controller.is_current(context.generation):
            return
        self.restarts += 1
        await self.controller.stop()
        try:
            await self.start()
        except NegotiationError as e:
            logger.error("restart failed: %s", e)

    def _schedule_restart(self, context: SessionContext):
        common.spawn(self.restart(context), self._background, "session restart")

    async def stop(self):
        await self.controller.stop()

    def toggle_mute(self) -> Optional[bool]:
        muted = self.controller.toggle_mute()
        if muted is not None:
            logger.info("stream %s", "muted" if muted else "unmuted")
        return muted

    async def wait_restarts(self):
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def close(self):
        for task in list(self._background):
            task.cancel()
        await self.wait_restarts()
        context = self.controller.context
        await self.stop()
        if context is not None and context.polling is not None:
            await context.polling.wait()
        await self.trickle.drain()
        self.rpc.close()
