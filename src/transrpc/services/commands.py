"""RPC method table, argument allow-lists and envelope builders."""
import itertools
import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional, Union

from transrpc.core.exceptions import ValidationError
from transrpc.models.schemas import RpcEnvelope

logger = logging.getLogger(__name__)

TorrentId = Union[int, str]
TorrentIds = Union[TorrentId, Iterable[TorrentId]]

# Torrent methods
TORRENT_STOP = "torrent-stop"
TORRENT_START = "torrent-start"
TORRENT_START_NOW = "torrent-start-now"
TORRENT_VERIFY = "torrent-verify"
TORRENT_REANNOUNCE = "torrent-reannounce"
TORRENT_SET = "torrent-set"
TORRENT_ADD = "torrent-add"
TORRENT_RENAME = "torrent-rename-path"
TORRENT_REMOVE = "torrent-remove"
TORRENT_LOCATION = "torrent-set-location"
TORRENT_GET = "torrent-get"

# Session methods
SESSION_GET = "session-get"
SESSION_SET = "session-set"
SESSION_STATS = "session-stats"

# Misc methods
BLOCKLIST_UPDATE = "blocklist-update"
PORT_TEST = "port-test"
FREE_SPACE = "free-space"

RECENTLY_ACTIVE = "recently-active"

TORRENT_SET_KEYS = frozenset(
    {
        "bandwidthPriority",
        "downloadLimit",
        "downloadLimited",
        "files-wanted",
        "files-unwanted",
        "honorsSessionLimits",
        "ids",
        "location",
        "peer-limit",
        "priority-high",
        "priority-low",
        "priority-normal",
        "seedRatioLimit",
        "seedRatioMode",
        "uploadLimit",
        "uploadLimited",
    }
)

TORRENT_ADD_KEYS = frozenset(
    {
        "bandwidthPriority",
        "cookies",
        "download-dir",
        "filename",
        "files-wanted",
        "files-unwanted",
        "labels",
        "metainfo",
        "paused",
        "peer-limit",
        "priority-high",
        "priority-low",
        "priority-normal",
    }
)

SESSION_SET_KEYS = frozenset(
    {
        "start-added-torrents",
        "alt-speed-down",
        "alt-speed-enabled",
        "alt-speed-time-begin",
        "alt-speed-time-enabled",
        "alt-speed-time-end",
        "alt-speed-time-day",
        "alt-speed-up",
        "blocklist-enabled",
        "dht-enabled",
        "encryption",
        "download-dir",
        "peer-limit-global",
        "peer-limit-per-torrent",
        "pex-enabled",
        "peer-port",
        "peer-port-random-on-start",
        "port-forwarding-enabled",
        "seedRatioLimit",
        "seedRatioLimited",
        "speed-limit-down",
        "speed-limit-down-enabled",
        "speed-limit-up",
        "speed-limit-up-enabled",
    }
)

DEFAULT_FIELDS = (
    "activityDate",
    "addedDate",
    "bandwidthPriority",
    "comment",
    "corruptEver",
    "creator",
    "dateCreated",
    "desiredAvailable",
    "doneDate",
    "downloadDir",
    "downloadedEver",
    "downloadLimit",
    "downloadLimited",
    "error",
    "errorString",
    "eta",
    "files",
    "fileStats",
    "hashString",
    "haveUnchecked",
    "haveValid",
    "honorsSessionLimits",
    "id",
    "isFinished",
    "isPrivate",
    "leftUntilDone",
    "magnetLink",
    "manualAnnounceTime",
    "maxConnectedPeers",
    "metadataPercentComplete",
    "name",
    "peer-limit",
    "peers",
    "peersConnected",
    "peersFrom",
    "peersGettingFromUs",
    "peersKnown",
    "peersSendingToUs",
    "percentDone",
    "pieces",
    "pieceCount",
    "pieceSize",
    "priorities",
    "rateDownload",
    "rateUpload",
    "recheckProgress",
    "seedIdleLimit",
    "seedIdleMode",
    "seedRatioLimit",
    "seedRatioMode",
    "sizeWhenDone",
    "startDate",
    "status",
    "trackers",
    "trackerStats",
    "totalSize",
    "torrentFile",
    "uploadedEver",
    "uploadLimit",
    "uploadLimited",
    "uploadRatio",
    "wanted",
    "webseeds",
    "webseedsSendingToUs",
)

PEER_FIELDS = ("peers", "hashString", "id")

FILE_FIELDS = ("files", "fileStats", "hashString", "id")

FAST_FIELDS = (
    "id",
    "error",
    "errorString",
    "eta",
    "isFinished",
    "isStalled",
    "leftUntilDone",
    "metadataPercentComplete",
    "peersConnected",
    "peersGettingFromUs",
    "peersSendingToUs",
    "percentDone",
    "queuePosition",
    "rateDownload",
    "rateUpload",
    "recheckProgress",
    "seedRatioMode",
    "seedRatioLimit",
    "sizeWhenDone",
    "status",
    "trackers",
    "uploadedEver",
    "uploadRatio",
)

# Process-wide tag source; tags only need to be unique per in-flight request.
_tags = itertools.count(1)


def next_tag() -> int:
    """Return a fresh correlation tag."""
    return next(_tags)


def build_envelope(
    method: str, arguments: Optional[Mapping[str, Any]] = None
) -> RpcEnvelope:
    """Build a request envelope with a fresh tag."""
    return RpcEnvelope(method=method, arguments=dict(arguments or {}), tag=next_tag())


def normalize_ids(ids: TorrentIds) -> Union[list[TorrentId], str]:
    """
    Normalize caller-supplied ids to the daemon's form.

    A single id (integer or hash string) is wrapped in a list, any other
    iterable becomes a list. The ``recently-active`` selector is passed
    through untouched.
    """
    if ids == RECENTLY_ACTIVE:
        return RECENTLY_ACTIVE
    if isinstance(ids, (int, str)):
        return [ids]
    return list(ids)


def validate_options(
    operation: str, options: Any, allowed: Optional[frozenset[str]] = None
) -> dict[str, Any]:
    """
    Check a caller's option mapping.

    Args:
        operation: RPC method name, used in error messages
        options: Caller-supplied options
        allowed: Permitted keys, or None to accept any key

    Returns:
        A plain dict copy of the options

    Raises:
        ValidationError: If options is not a mapping or has an unknown key
    """
    if options is None:
        return {}
    if not isinstance(options, Mapping):
        raise ValidationError(f'Arguments mismatch for "{operation}"')

    if allowed is not None:
        for key in options:
            if key not in allowed:
                raise ValidationError(f'Cannot set "{key}" with "{operation}"')

    return dict(options)


def torrent_set(ids: TorrentIds, options: Any) -> RpcEnvelope:
    """Envelope for ``torrent-set``."""
    arguments: dict[str, Any] = {"ids": ids}
    arguments.update(validate_options(TORRENT_SET, options, TORRENT_SET_KEYS))
    arguments["ids"] = normalize_ids(arguments["ids"])
    return build_envelope(TORRENT_SET, arguments)


def torrent_add(source: Mapping[str, Any], options: Any) -> RpcEnvelope:
    """Envelope for ``torrent-add``: data source merged with caller options."""
    arguments = dict(source)
    arguments.update(validate_options(TORRENT_ADD, options, TORRENT_ADD_KEYS))
    return build_envelope(TORRENT_ADD, arguments)


def torrent_get(
    ids: Optional[TorrentIds] = None, fields: Optional[Iterable[str]] = None
) -> RpcEnvelope:
    """Envelope for ``torrent-get``; no fields means the default field list."""
    if fields is None:
        fields = []
    if isinstance(fields, (str, bytes)) or not isinstance(fields, Iterable):
        raise ValidationError("The fields parameter must be a list of field names")

    arguments: dict[str, Any] = {"fields": list(fields) or list(DEFAULT_FIELDS)}
    if ids is not None:
        arguments["ids"] = normalize_ids(ids)
    return build_envelope(TORRENT_GET, arguments)


def torrent_action(method: str, ids: Optional[TorrentIds] = None) -> RpcEnvelope:
    """Envelope for id-only torrent actions; no ids targets every torrent."""
    if ids is None:
        return build_envelope(method)
    return build_envelope(method, {"ids": normalize_ids(ids)})


def session_set(options: Any) -> RpcEnvelope:
    """Envelope for ``session-set``."""
    return build_envelope(
        SESSION_SET, validate_options(SESSION_SET, options, SESSION_SET_KEYS)
    )


def added_torrent(arguments: Mapping[str, Any]) -> Optional[dict[str, Any]]:
    """Pick the torrent record from a ``torrent-add`` reply, preferring the duplicate."""
    torrent = arguments.get("torrent-duplicate") or arguments.get("torrent-added")
    if torrent is None:
        logger.warning("torrent-add reply carried neither torrent-duplicate nor torrent-added")
    return torrent
