import argparse
import asyncio
import logging

from . import config
from .client import AudioSessionClient
from .errors import NegotiationError
from .log import configure_logging

logger = logging.getLogger("sfu_audio_client")


async def run(client_config: config.ClientConfig, duration: float):
    client = AudioSessionClient(client_config)
    try:
        try:
            track = await client.start()
        except NegotiationError as e:
            logger.error("could not join %s: %s", client_config.room, e)
            return 1
        logger.info("joined %s as %s (track %s)", client_config.room, client.identity.username, track)
        # keep the session alive; restarts happen in the background
        await asyncio.sleep(duration)
        return 0
    finally:
        await client.close()


# ----------------- CLI -----------------
def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="Join an SFU room with the local microphone")
    ap.add_argument("--rpc", default=config.DEFAULT_RPC_ENDPOINT,
                    help=f"SFU RPC endpoint (default: {config.DEFAULT_RPC_ENDPOINT})")
    ap.add_argument("--room", default=config.DEFAULT_ROOM)
    ap.add_argument("--name", default=config.DEFAULT_DISPLAY_NAME,
                    help="Display name embedded in the username")
    ap.add_argument("--ice-policy", choices=[config.ICE_POLICY_RELAY, config.ICE_POLICY_ALL],
                    default=config.ICE_POLICY)
    ap.add_argument("--device", default=config.AUDIO_DEVICE,
                    help="Capture device passed to MediaPlayer, e.g. 'default' or 'hw:0'")
    ap.add_argument("--format", default=config.AUDIO_FORMAT,
                    help="Capture format passed to MediaPlayer, e.g. 'pulse' or 'alsa'")
    ap.add_argument("--duration", type=float, default=100000,
                    help="Seconds to stay in the room")
    ap.add_argument("-v", "--verbose", action="store_true")
    return ap.parse_args(argv)


def build_config(args) -> config.ClientConfig:
    return config.ClientConfig(
        rpc_endpoint=args.rpc,
        room=args.room,
        display_name=args.name,
        ice_policy=args.ice_policy,
        audio_device=args.device,
        audio_format=args.format,
    )


def main(argv=None):
    args = parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)
    try:
        return asyncio.run(run(build_config(args), args.duration))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
