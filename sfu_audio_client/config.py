from dataclasses import dataclass
from typing import Optional

# ----------------- Settings -----------------
DEFAULT_RPC_ENDPOINT = "http://127.0.0.1:7000"
DEFAULT_ROOM = "test"
DEFAULT_DISPLAY_NAME = "native"

ICE_POLICY_RELAY = "relay"
ICE_POLICY_ALL = "all"
ICE_POLICY = ICE_POLICY_RELAY

SUBSCRIBE_INTERVAL = 3.0    # seconds between subscribe polls
RPC_TIMEOUT = 10.0          # seconds per HTTP request

# capture device handed to aiortc's MediaPlayer, e.g. ("default", "pulse")
AUDIO_DEVICE = "default"
AUDIO_FORMAT: Optional[str] = "pulse"


@dataclass(frozen=True)
class ClientConfig:
    rpc_endpoint: str = DEFAULT_RPC_ENDPOINT
    room: str = DEFAULT_ROOM
    display_name: str = DEFAULT_DISPLAY_NAME
    ice_policy: str = ICE_POLICY
    subscribe_interval: float = SUBSCRIBE_INTERVAL
    rpc_timeout: float = RPC_TIMEOUT
    audio_device: str = AUDIO_DEVICE
    audio_format: Optional[str] = AUDIO_FORMAT

    def __post_init__(self):
        if self.ice_policy not in (ICE_POLICY_RELAY, ICE_POLICY_ALL):
            raise ValueError(f"ice_policy must be '{ICE_POLICY_RELAY}' or '{ICE_POLICY_ALL}'")
        if self.subscribe_interval <= 0:
            raise ValueError("subscribe_interval must be positive")
