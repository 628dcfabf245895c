"""Shared decoding helpers and the direct-message decoder."""

from typing import Iterable, Mapping, Optional
from urllib.parse import urlparse

from mercury.channels.slack import USER_GROUPS
from mercury.errors import DecodeError, DecodeFailure
from mercury.events import DirectMessage

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")
JSON_CONTENT_TYPES = ("application/json",)


class UnsupportedContentType(DecodeError):
    def __init__(self, content_type: str):
        super().__init__(
            DecodeFailure.UNSUPPORTED, "content-type", f"unsupported media type '{content_type}'"
        )
        self.content_type = content_type


def get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup that also works on plain dicts."""
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, val in headers.items():
        if key.lower() == lowered:
            return val
    return None


def check_content_type(headers: Mapping[str, str], allowed: Iterable[str]) -> str:
    """Return the media type of the request, or raise if it is not one of ``allowed``."""
    raw = get_header(headers, "Content-Type")
    if not raw or not raw.strip():
        raise DecodeError.missing("content-type")
    media_type = raw.split(";", 1)[0].strip().lower()
    if media_type not in allowed:
        raise UnsupportedContentType(media_type)
    return media_type


def _form_str(form: Mapping[str, object], key: str, required: bool = True) -> Optional[str]:
    value = form.get(key)
    if value is None:
        if required:
            raise DecodeError.missing(key)
        return None
    if not isinstance(value, str):
        # File uploads in a multipart body
        raise DecodeError.malformed(key, "expected a text value")
    return value


def parse_link(value: str, field: str = "link") -> str:
    parsed = urlparse(value.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise DecodeError.malformed(field, "expected an absolute http(s) URL")
    return value.strip()


def parse_mention(value: str, field: str = "cc") -> str:
    key = value.strip()
    if key not in USER_GROUPS:
        raise DecodeError.unsupported(
            field, f"unknown mention '{value}', expected one of: {', '.join(USER_GROUPS)}"
        )
    return key


def decode_direct(form: Mapping[str, object]) -> DirectMessage:
    """Decode the ``channel``/``title``/``desc``/``link``/``cc`` fields of a form body.

    Presence and type are checked here. Emptiness of ``channel`` and
    ``title`` is left to the message builder.
    """
    channel = _form_str(form, "channel")
    title = _form_str(form, "title")
    desc = _form_str(form, "desc")

    link = _form_str(form, "link", required=False)
    if link is not None and link.strip():
        link = parse_link(link)
    else:
        link = None

    cc = _form_str(form, "cc", required=False)
    cc = parse_mention(cc) if cc is not None and cc.strip() else None

    return DirectMessage(channel=channel, title=title, description=desc, link=link, cc=cc)
