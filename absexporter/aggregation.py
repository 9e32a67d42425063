"""Roll listening sessions up into per-dimension totals.

Every session with positive listening time lands in exactly one bucket of each
dimension (user, library, book, device, weekday). Missing identifiers fall back
to ``UNKNOWN`` so a malformed record is still counted instead of dropped.
"""

from collections import defaultdict
from typing import Iterable, Mapping

from .models import DeviceKey, LibraryKey, ListeningSession, Rollups

UNKNOWN = "unknown"


def user_key(session: ListeningSession) -> str:
    if session.user is not None and session.user.username:
        return session.user.username
    return session.user_id or UNKNOWN


def library_key(session: ListeningSession, library_names: Mapping[str, str]) -> LibraryKey:
    library_id = session.library_id or UNKNOWN
    return LibraryKey(library_id, library_names.get(library_id) or library_id)


def book_key(session: ListeningSession) -> str:
    if session.media_metadata is not None and session.media_metadata.title:
        return session.media_metadata.title
    return UNKNOWN


def device_key(session: ListeningSession) -> DeviceKey:
    device = session.device_info
    if device is None:
        return DeviceKey(UNKNOWN, UNKNOWN)
    return DeviceKey(device.client_name or UNKNOWN, device.model or UNKNOWN)


def weekday_key(session: ListeningSession) -> str:
    return session.day_of_week or UNKNOWN


def aggregate(
    sessions: Iterable[ListeningSession], library_names: Mapping[str, str]
) -> Rollups:
    """Compute the rollups for one scrape cycle.

    ``total_sessions`` counts every session, including the ones skipped for
    having no listening time.
    """
    seconds_by_user: defaultdict[str, float] = defaultdict(float)
    count_by_user: defaultdict[str, int] = defaultdict(int)
    seconds_by_library: defaultdict[LibraryKey, float] = defaultdict(float)
    count_by_library: defaultdict[LibraryKey, int] = defaultdict(int)
    seconds_by_book: defaultdict[str, float] = defaultdict(float)
    seconds_by_device: defaultdict[DeviceKey, float] = defaultdict(float)
    seconds_by_weekday: defaultdict[str, float] = defaultdict(float)
    total = 0

    for session in sessions:
        total += 1
        listened = session.time_listening
        if listened <= 0:
            continue

        user = user_key(session)
        seconds_by_user[user] += listened
        count_by_user[user] += 1

        library = library_key(session, library_names)
        seconds_by_library[library] += listened
        count_by_library[library] += 1

        seconds_by_book[book_key(session)] += listened
        seconds_by_device[device_key(session)] += listened
        seconds_by_weekday[weekday_key(session)] += listened

    return Rollups(
        seconds_by_user=dict(seconds_by_user),
        count_by_user=dict(count_by_user),
        seconds_by_library=dict(seconds_by_library),
        count_by_library=dict(count_by_library),
        seconds_by_book=dict(seconds_by_book),
        seconds_by_device=dict(seconds_by_device),
        seconds_by_weekday=dict(seconds_by_weekday),
        total_sessions=total,
    )
