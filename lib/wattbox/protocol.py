"""Message classification and outbound formatting for the WattBox protocol.

Every inbound line falls into exactly one class, checked in this order:

1. login prompts (answered with credentials, never surfaced)
2. login outcomes (published under ``LOGIN_KEY``)
3. query replies, ``?Name=...`` (published under ``?Name``)
4. control acknowledgements, ``OK`` / ``#Error``
5. unsolicited notifications, ``~Name=...``
6. anything else (diagnostics only)
"""

import enum
from dataclasses import dataclass

TELNET_PORT = 23

LOGIN_BANNER = "Please Login to Continue"
USERNAME_PROMPT = "Username:"
PASSWORD_PROMPT = "Password:"
LOGIN_PROMPTS = (LOGIN_BANNER, USERNAME_PROMPT, PASSWORD_PROMPT)

LOGIN_SUCCESS = "Successfully Logged In!"
LOGIN_FAILURE = "Invalid Login"

CONTROL_OK = "OK"
CONTROL_ERROR = "#Error"

QUERY_SIGIL = "?"
CONTROL_SIGIL = "!"
NOTIFICATION_SIGIL = "~"

# Reserved correlation keys; query keys always start with QUERY_SIGIL
LOGIN_KEY = "login"
CONTROL_KEY = "control"


class MessageKind(enum.Enum):
    """Class of an inbound protocol line."""

    LOGIN_PROMPT = "login_prompt"
    LOGIN_RESULT = "login_result"
    QUERY_REPLY = "query_reply"
    CONTROL_ACK = "control_ack"
    NOTIFICATION = "notification"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class InboundMessage:
    """A classified, trimmed inbound line."""

    kind: MessageKind
    line: str
    key: str | None = None
    ok: bool | None = None

    @property
    def body(self) -> str:
        """Text after the first ``=``, or an empty string."""
        _, _, body = self.line.partition("=")
        return body


def correlation_key(message: str) -> str:
    """Return the name part of a message (text before the first ``=``)."""
    return message.split("=", 1)[0]


def classify(line: str) -> InboundMessage:
    """Classify one trimmed inbound line.

    Parameters
    ----------
    line : str
        Line without its delimiter

    Returns
    -------
    InboundMessage
        Classified message
    """
    if line in LOGIN_PROMPTS:
        return InboundMessage(MessageKind.LOGIN_PROMPT, line, key=line)

    if line == LOGIN_SUCCESS:
        return InboundMessage(MessageKind.LOGIN_RESULT, line, key=LOGIN_KEY, ok=True)
    if line == LOGIN_FAILURE:
        return InboundMessage(MessageKind.LOGIN_RESULT, line, key=LOGIN_KEY, ok=False)

    if line.startswith(QUERY_SIGIL):
        return InboundMessage(MessageKind.QUERY_REPLY, line, key=correlation_key(line))

    if line == CONTROL_OK:
        return InboundMessage(MessageKind.CONTROL_ACK, line, key=CONTROL_KEY, ok=True)
    if line == CONTROL_ERROR:
        return InboundMessage(MessageKind.CONTROL_ACK, line, key=CONTROL_KEY, ok=False)

    if line.startswith(NOTIFICATION_SIGIL):
        return InboundMessage(MessageKind.NOTIFICATION, line, key=correlation_key(line))

    return InboundMessage(MessageKind.UNKNOWN, line)


def check_outbound(message: str, sigil: str) -> str:
    """Validate an outbound message before it is written.

    Parameters
    ----------
    message : str
        Query or control message without line ending
    sigil : str
        Required leading character (``?`` or ``!``)

    Returns
    -------
    str
        The message, unchanged

    Raises
    ------
    ValueError
        If the sigil is wrong or the message spans more than one line
    """
    if not message.startswith(sigil) or len(message) < 2:
        raise ValueError(f"Expected a message starting with {sigil!r}: {message!r}")
    if "\n" in message or "\r" in message:
        raise ValueError(f"Message must be a single line: {message!r}")
    return message


def encode_line(message: str, encoding: str = "utf-8") -> bytes:
    """Terminate a message with the protocol delimiter and encode it."""
    return f"{message}\n".encode(encoding)
