"""Per-call carried state and its continuation token.

The session is never stored server-side. It rides along on the capture
URL handed to the transport and comes back verbatim with the next turn,
so any worker can serve any turn of any call.
"""

from dataclasses import dataclass, replace
from urllib.parse import parse_qsl, quote, urlencode

# Query keys used on the capture URL, in fill order.
TOKEN_FIELDS = (
    ("caller_name", "name"),
    ("date_of_birth", "dob"),
    ("prescription_number", "rx"),
)


@dataclass(frozen=True)
class CallSession:
    # From name_capture
    caller_name: str = ""

    # From dob_capture
    date_of_birth: str = ""

    # From rx_number_capture
    prescription_number: str = ""

    # Setting a field clears every field filled after it, so the session
    # can only ever hold a prefix of name -> dob -> rx.

    def with_name(self, name: str) -> "CallSession":
        return CallSession(caller_name=name)

    def with_date_of_birth(self, dob: str) -> "CallSession":
        return CallSession(caller_name=self.caller_name, date_of_birth=dob)

    def with_prescription_number(self, rx_number: str) -> "CallSession":
        return replace(self, prescription_number=rx_number)


def encode_session(session: CallSession) -> str:
    """Serialize a session to a percent-encoded query string.

    Unset fields are omitted, so an empty session encodes to "".
    """
    pairs = [
        (key, getattr(session, attr))
        for attr, key in TOKEN_FIELDS
        if getattr(session, attr)
    ]
    return urlencode(pairs, quote_via=quote, safe="")


def decode_session(token: str | None) -> CallSession:
    """Rebuild a session from a query string produced by encode_session().

    Unknown keys are ignored; a missing or empty token yields an empty session.
    """
    if not token:
        return CallSession()
    values = dict(parse_qsl(token, keep_blank_values=True))
    return CallSession(**{
        attr: values.get(key, "")
        for attr, key in TOKEN_FIELDS
    })
