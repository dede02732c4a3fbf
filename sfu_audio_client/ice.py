import logging
from dataclasses import dataclass, field
from typing import List

from aiortc import RTCBundlePolicy, RTCConfiguration, RTCIceServer

from .config import ICE_POLICY, ICE_POLICY_ALL, ICE_POLICY_RELAY
from .errors import ConfigResolutionFailed, TransportFailure

logger = logging.getLogger(__name__)


def normalize_ice_server(server: dict) -> dict:
    d = dict(server)
    if "url" in d:
        if "urls" not in d:
            d["urls"] = [d.pop("url")]
        else:
            d.pop("url")
    return d


@dataclass(frozen=True)
class IceConfiguration:
    ice_servers: List[dict] = field(default_factory=list)
    ice_transport_policy: str = ICE_POLICY_ALL
    bundle_policy: str = "max-bundle"
    rtcp_mux_policy: str = "require"
    sdp_semantics: str = "unified-plan"

    def to_dict(self) -> dict:
        return {
            "iceServers": list(self.ice_servers),
            "iceTransportPolicy": self.ice_transport_policy,
            "bundlePolicy": self.bundle_policy,
            "rtcpMuxPolicy": self.rtcp_mux_policy,
            "sdpSemantics": self.sdp_semantics,
        }

    def to_rtc_configuration(self) -> RTCConfiguration:
        # aiortc only understands the server list and the bundle policy
        servers = []
        for s in map(normalize_ice_server, self.ice_servers):
            if not s.get("urls"):
                logger.warning("ignoring ice server without urls: %s", s)
                continue
            servers.append(RTCIceServer(urls=s["urls"], username=s.get("username"), credential=s.get("credential")))
        return RTCConfiguration(iceServers=servers, bundlePolicy=RTCBundlePolicy(self.bundle_policy))


async def resolve_ice_config(rpc, username_token: str, policy: str = ICE_POLICY) -> IceConfiguration:
    try:
        res = await rpc.call("turn", [username_token])
    except TransportFailure as e:
        raise ConfigResolutionFailed(f"could not fetch turn credentials: {e}") from e

    servers = res.data if isinstance(res.data, list) else []
    if policy == ICE_POLICY_RELAY and len(servers) > 0:
        configuration = IceConfiguration(ice_servers=list(servers), ice_transport_policy=ICE_POLICY_RELAY)
    else:
        configuration = IceConfiguration(ice_servers=[], ice_transport_policy=ICE_POLICY_ALL)

    logger.info("CONFIGURATION %s", configuration.to_dict())
    return configuration
