from typing import List, Optional

import attr
from aiortc import RTCSessionDescription

CRLF = "\r\n"
MEDIA_DELIMITER = CRLF + "m="

MSID_PREFIX = "a=msid:"
SSRC_PREFIX = "a=ssrc:"


@attr.s
class MediaSection:
    """
    The lines of a single ``m=`` section, in their original order.
    """

    lines = attr.ib(type=List[str])

    @property
    def kind(self) -> str:
        bits = self.lines[0][2:].split()
        return bits[0] if bits else ""

    def __str__(self) -> str:
        return CRLF.join(self.lines)


@attr.s
class Association:
    """
    The stream / track association lines found in a media section.

    Chrome (Plan B) carries the association on the SSRC:

        a=ssrc:12345 msid:stream track

    while Firefox (Unified Plan) uses a dedicated line:

        a=msid:stream track
    """

    ssrc_msid = attr.ib(default=None, type=Optional[str])
    msid = attr.ib(default=None, type=Optional[str])
    ssrc_cname = attr.ib(default=None, type=Optional[str])

    @classmethod
    def scan(cls, lines: List[str]) -> "Association":
        found = cls()
        for line in lines:
            if line.startswith(SSRC_PREFIX):
                # only take the first ssrc, later ones are FID / simulcast
                if found.ssrc_msid is None and " msid:" in line:
                    found.ssrc_msid = line
                if found.ssrc_cname is None and " cname:" in line:
                    found.ssrc_cname = line
            elif line.startswith(MSID_PREFIX) and found.msid is None:
                found.msid = line
        return found

    def ssrc_to_msid(self) -> Optional[str]:
        """
        a=ssrc:12345 msid:stream track -> a=msid:stream track

        but not if a=msid is already there
        """
        if self.ssrc_msid is None or self.msid is not None:
            return None
        return "a=" + self.ssrc_msid.split(" ", 1)[1]

    def msid_to_ssrc(self) -> Optional[str]:
        """
        a=ssrc:12345 cname:something + a=msid:stream track
        -> a=ssrc:12345 msid:stream track

        but not if an a=ssrc msid line is already there
        """
        if self.msid is None or self.ssrc_cname is None or self.ssrc_msid is not None:
            return None
        return self.ssrc_cname.split(" ", 1)[0] + " " + self.msid[2:]


@attr.s
class SessionDescription:
    header = attr.ib(type=str)
    media = attr.ib(factory=list, type=List[MediaSection])

    @classmethod
    def parse(cls, sdp: str) -> "SessionDescription":
        fragments = sdp.split(MEDIA_DELIMITER)
        session = cls(header=fragments[0].strip())
        for fragment in fragments[1:]:
            session.media.append(
                MediaSection(lines=("m=" + fragment.strip()).split(CRLF))
            )
        return session

    def __str__(self) -> str:
        parts = [self.header] + [str(m) for m in self.media]
        return CRLF.join(parts).strip() + CRLF


def mangle_section(section: MediaSection) -> MediaSection:
    # both directions look at the original lines only
    association = Association.scan(section.lines)
    lines = list(section.lines)
    for synthesized in [association.ssrc_to_msid(), association.msid_to_ssrc()]:
        if synthesized is not None:
            lines.append(synthesized)
    return MediaSection(lines=lines)


def mangle(sdp: str) -> str:
    """
    Rewrite a session description so that both the Chrome and the Firefox
    flavour of the stream / track association are present in every media
    section which carries one of them.

    Lines are only ever appended, the session header and the order of the
    existing lines are preserved.
    """
    session = SessionDescription.parse(sdp)
    session.media = [mangle_section(m) for m in session.media]
    return str(session)


def mangle_description(description: RTCSessionDescription) -> RTCSessionDescription:
    return RTCSessionDescription(sdp=mangle(description.sdp), type=description.type)


def rename_stream(sdp: str, old_id: str, new_id: str) -> str:
    """
    Present the track of stream `old_id` as belonging to stream `new_id`.

    Only the first occurrence is replaced.
    """
    if not old_id or old_id == new_id:
        return sdp
    return sdp.replace(old_id, new_id, 1)
