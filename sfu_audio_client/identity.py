import base64
import logging
import uuid
from dataclasses import dataclass, field
from urllib.parse import quote, unquote

logger = logging.getLogger(__name__)

# same unreserved set as encodeURIComponent
URI_COMPONENT_SAFE = "-_.!~*'()"


def percent_encode(value: str) -> str:
    return quote(value, safe=URI_COMPONENT_SAFE)


def encode_username(session_id, display_name: str) -> str:
    return percent_encode(f"{session_id}:{_b64(display_name)}")


def decode_username(token: str):
    """
    Reverse of encode_username: returns (session_id, display_name).
    """
    session_id, _, encoded_name = unquote(token).partition(":")
    return session_id, base64.b64decode(encoded_name).decode("utf-8")


def _b64(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


@dataclass(frozen=True)
class SessionIdentity:
    display_name: str
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @property
    def username(self) -> str:
        return f"{self.id}:{_b64(self.display_name)}"

    @property
    def username_token(self) -> str:
        return percent_encode(self.username)


def create_identity(display_name: str) -> SessionIdentity:
    identity = SessionIdentity(display_name=display_name)
    logger.info("uid %s", identity.id)
    logger.info("username %s", identity.username)
    logger.info("encoded username %s", identity.username_token)
    return identity
