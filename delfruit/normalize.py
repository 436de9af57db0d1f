"""Turn stored game rows into the shape clients receive."""
from datetime import date, datetime
from typing import Dict, List, Optional

# MySQL stores unknown dates as a zero date; drivers hand it back either as a
# string or as the smallest representable value.
_ZERO_DATE_PREFIX = '0000-00-00'


def normalize_date(raw):
    """Map a stored zero/sentinel date to ``None``; pass anything else through."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return None if raw == datetime.min else raw
    if isinstance(raw, date):
        return None if raw == date.min else raw
    if isinstance(raw, str):
        text = raw.strip()
        if not text or text.startswith(_ZERO_DATE_PREFIX):
            return None
        try:
            datetime.fromisoformat(text)
        except ValueError:
            return None
        return raw
    return raw


def normalize_author(raw: Optional[str], is_collab: bool) -> List[str]:
    """Split the stored author field into a list of names.

    Collaborations are split on single spaces, order kept. A single author
    is returned verbatim as a one-element list, even when empty.
    """
    if raw is None:
        return []
    if is_collab:
        return raw.split(' ') if raw else []
    return [raw]


def serialize_date(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def normalize_game(game, rating: Optional[float] = None,
                   difficulty: Optional[float] = None) -> Dict:
    """Build the client-facing dict for a :class:`database.Game` row.

    *rating* and *difficulty* are the averages over the game's visible
    ratings, or ``None`` when it has none.
    """
    return {
        'id': game.id,
        'name': game.name,
        'sortname': game.sort_name,
        'url': game.url,
        'urlSpdrn': game.url_spdrn,
        'author': normalize_author(game.author_raw, bool(game.collab)),
        'collab': bool(game.collab),
        'dateCreated': serialize_date(normalize_date(game.date_created)),
        'ownerId': game.owner_id,
        'adderId': game.adder_id,
        'removed': bool(game.removed),
        'rating': None if rating is None else float(rating),
        'difficulty': None if difficulty is None else float(difficulty),
    }
