# catalog/detail.py
from .logger import get_logger
from .models import MarketplaceSummary, RecordDetail, Track, Video
from .projection import PLACEHOLDER_COVER
from .utils import is_number

DISCOGS_RELEASE_URL = "https://www.discogs.com/release/{id}"
MAX_VIDEOS = 3

logger = get_logger("catalog.detail")


def _as_list(value):
    return value if isinstance(value, list) else []


def _dicts(value):
    return [v for v in _as_list(value) if isinstance(v, dict)]


def _as_dict(value):
    return value if isinstance(value, dict) else {}


def _joined(value):
    return ", ".join(str(v) for v in _as_list(value) if v) or "—"


def _number(value):
    return value if is_number(value) else None


def fmt_usd_cents(n):
    return f"${n:.2f}" if is_number(n) else "—"


def describe_labels(labels):
    labels = _dicts(labels)
    if not labels:
        return "Unknown"
    parts = []
    for label in labels:
        name = label.get("name") or ""
        catno = label.get("catno")
        parts.append(f"{name} ({catno})" if catno else name)
    return ", ".join(parts)


def describe_formats(formats):
    formats = _dicts(formats)
    if not formats:
        return "—"
    parts = []
    for f in formats:
        bits = [f.get("name"), f.get("text"), *_as_list(f.get("descriptions"))]
        parts.append(" ".join(str(b) for b in bits if b))
    return " • ".join(parts)


def track_line(track):
    line = track.get("title") or ""
    if track.get("position"):
        line = f"{track['position']} - {line}"
    if track.get("duration"):
        line = f"{line} ({track['duration']})"
    return line


def marketplace_summary(stats):
    stats = stats if isinstance(stats, dict) else {}
    for_sale = stats.get("num_for_sale")
    if for_sale is None:
        for_sale = stats.get("number_for_sale")
    lowest, median, highest = (
        stats.get("lowest_price"),
        stats.get("median"),
        stats.get("highest_price"),
    )
    return MarketplaceSummary(
        lowest=lowest if is_number(lowest) else None,
        median=median if is_number(median) else None,
        highest=highest if is_number(highest) else None,
        for_sale=for_sale if is_number(for_sale) else None,
        lowest_text=fmt_usd_cents(lowest),
        median_text=fmt_usd_cents(median),
        highest_text=fmt_usd_cents(highest),
    )


def build_record_detail(release, stats=None, release_id=None):
    """
    Turn a release record (plus optional marketplace stats) into the detail view.

    Args:
        release (dict): full release record from the catalog API
        stats (dict, optional): marketplace stats; absent when unavailable
        release_id (int, optional): id the record was requested by; wins
            over the record's own ``id``

    Returns:
        RecordDetail: display-ready fields with "Unknown"/"—" placeholders
    """
    release = _as_dict(release)
    if release_id is None:
        release_id = release.get("id")
    images = _dicts(release.get("images"))
    cover = (images[0].get("uri") if images else None) or PLACEHOLDER_COVER
    community = _as_dict(release.get("community"))
    rating = _as_dict(community.get("rating"))

    tracklist = [
        Track(
            position=t.get("position") or "",
            title=t.get("title") or "",
            duration=t.get("duration") or "",
            line=track_line(t),
        )
        for t in _dicts(release.get("tracklist"))
    ]
    videos = [
        Video(uri=v.get("uri"), title=v.get("title") or "Watch on Discogs/YouTube")
        for v in _dicts(release.get("videos"))[:MAX_VIDEOS]
    ]

    year = release.get("year")
    return RecordDetail(
        id=release_id,
        title=release.get("title") or "",
        year=year if is_number(year) and year else None,
        country=release.get("country") or "Unknown",
        cover=cover,
        labels=describe_labels(release.get("labels")),
        formats=describe_formats(release.get("formats")),
        genres=_joined(release.get("genres")),
        styles=_joined(release.get("styles")),
        rating_average=_number(rating.get("average")),
        rating_count=_number(rating.get("count")),
        have=_number(community.get("have")),
        want=_number(community.get("want")),
        notes=release.get("notes") or None,
        tracklist=tracklist,
        videos=videos,
        marketplace=marketplace_summary(stats),
        discogs_url=DISCOGS_RELEASE_URL.format(id=release_id),
    )


async def load_record_detail(client, release_id):
    """
    Fetch a release and its marketplace stats and build the detail view.

    Errors fetching the release propagate. Stats are optional: any failure
    there just leaves the marketplace summary empty.
    """
    release = await client.get_item(release_id)
    try:
        stats = await client.get_marketplace_stats(release_id)
    except Exception as e:
        logger.debug(f"Marketplace stats unavailable for {release_id}: {e}")
        stats = None
    return build_record_detail(release, stats, release_id=release_id)
