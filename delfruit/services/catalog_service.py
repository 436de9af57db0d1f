"""Business logic for the game catalog: visibility, normalization and guarded mutations."""
from datetime import datetime, timezone
import logging
import random
from typing import Dict, List, Optional

from ..auth import AuthorizationContext
from ..exceptions import AuthorizationError, ClientInputError, NotFoundError
from ..normalize import normalize_game, serialize_date
from ..query import (
    DEFAULT_PAGE_SIZE, MAX_INT64, is_ascii_digits, page_offset, parse_limit, parse_page,
    resolve_sort,
)
from ..repositories.game_repository import GameRepository

logger = logging.getLogger('delfruit.service.catalog')

RANDOM_TOKEN = 'random'

REMOVED = 'removed'
ALREADY_REMOVED = 'already_removed'

# Client field -> Game column
_WRITABLE_FIELDS = {
    'name': 'name',
    'sortname': 'sort_name',
    'sortName': 'sort_name',
    'url': 'url',
    'urlSpdrn': 'url_spdrn',
    'author': 'author_raw',
    'collab': 'collab',
    'dateCreated': 'date_created',
    'ownerId': 'owner_id',
    'removed': 'removed',
}

# Present on every game we hand out; clients echo them back in patches.
_OUTPUT_ONLY_FIELDS = {'id', 'rating', 'difficulty', 'adderId'}


def parse_game_id(token) -> int:
    """Parse a numeric game id token, raising :class:`ClientInputError` otherwise."""
    value = None
    if isinstance(token, int) and not isinstance(token, bool):
        value = token
    elif isinstance(token, str) and is_ascii_digits(token.strip()):
        value = int(token.strip())
    if value is not None and 0 <= value <= MAX_INT64:
        return value
    raise ClientInputError('id must be a number', code='INVALID_ID')


def _check_text(key: str, value, required: bool) -> Optional[str]:
    if value is None and not required:
        return None
    if not isinstance(value, str) or (required and not value.strip()):
        raise ClientInputError(f'{key} must be a non-empty string' if required
                               else f'{key} must be a string', code='INVALID_FIELD')
    return value


def _check_bool(key: str, value) -> bool:
    if not isinstance(value, bool):
        raise ClientInputError(f'{key} must be a boolean', code='INVALID_FIELD')
    return value


def _check_author(value, collab: bool) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, list) and all(isinstance(name, str) for name in value):
        if not value:
            return None
        if len(value) == 1 and not collab:
            return value[0]
        # Collaborators are stored space separated, so a name may not contain one
        if any(not name or ' ' in name for name in value):
            raise ClientInputError('author names must be non-empty and contain no spaces',
                                   code='INVALID_FIELD')
        return ' '.join(value)
    raise ClientInputError('author must be a string or a list of strings', code='INVALID_FIELD')


def _check_date(value) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
        except ValueError:
            parsed = None
        if parsed is not None:
            # Stored naive, in UTC
            if parsed.tzinfo is not None:
                parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
            return parsed
    raise ClientInputError('dateCreated must be an ISO 8601 timestamp', code='INVALID_FIELD')


def _check_user_id(value) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= MAX_INT64:
        return value
    raise ClientInputError('ownerId must be an integer', code='INVALID_FIELD')


def game_fields(payload, creating: bool) -> Dict:
    """Validate a game payload and map it onto column names.

    Output-only keys are dropped. Unknown keys and wrongly typed values
    raise :class:`ClientInputError`.
    """
    if not isinstance(payload, dict):
        raise ClientInputError('payload must be a JSON object', code='INVALID_PAYLOAD')

    fields = {}
    for key, value in payload.items():
        if key in _OUTPUT_ONLY_FIELDS:
            continue
        column = _WRITABLE_FIELDS.get(key)
        if column is None:
            raise ClientInputError(f'unknown field: {key}', code='UNKNOWN_FIELD')
        if column in ('name', 'sort_name'):
            fields[column] = _check_text(key, value, required=True)
        elif column in ('url', 'url_spdrn'):
            fields[column] = _check_text(key, value, required=False)
        elif column == 'author_raw':
            multiple = isinstance(value, list) and len(value) > 1
            fields[column] = _check_author(value, multiple or payload.get('collab') is True)
            if multiple and 'collab' not in payload:
                fields['collab'] = True
        elif column in ('collab', 'removed'):
            fields[column] = _check_bool(key, value)
        elif column == 'date_created':
            fields[column] = _check_date(value)
        elif column == 'owner_id':
            fields[column] = _check_user_id(value)

    if creating:
        if 'name' not in fields:
            raise ClientInputError('name is required', code='INVALID_PAYLOAD')
        fields.setdefault('sort_name', fields['name'])
        fields['removed'] = False
    return fields


class CatalogService:
    """Lists, fetches and mutates games on behalf of one caller.

    Rules
    -----
    * Administrators see every game; everyone else only games whose
      ``removed`` flag is unset. A removed game is reported to a
      non-administrator exactly like a missing one.
    * Sort input is whitelisted before it reaches the repository.
    * Mutations require an administrator and are rejected before any
      storage access otherwise.
    """

    def __init__(self, repository: GameRepository,
                 default_page_size: int = DEFAULT_PAGE_SIZE,
                 max_page_size: Optional[int] = None,
                 rng: Optional[random.Random] = None) -> None:
        self._repo = repository
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size
        self._rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_games(self, context: AuthorizationContext, name_query: Optional[str] = None,
                   sort_column: Optional[str] = None, sort_direction: Optional[str] = None,
                   page=None, limit=None) -> List[Dict]:
        """Return one page of normalized games visible to *context*.

        *page* and *limit* are raw caller values; see
        :func:`~delfruit.query.parse_page` and :func:`~delfruit.query.parse_limit`.
        """
        column, direction = resolve_sort(sort_column, sort_direction)
        page = parse_page(page)
        limit = parse_limit(limit, self._default_page_size, self._max_page_size)
        if not isinstance(name_query, str):
            name_query = None

        rows = self._repo.search(
            name_query, column, direction,
            offset=page_offset(page, limit), limit=limit,
            include_removed=context.is_admin,
        )
        return [normalize_game(game, rating, difficulty) for game, rating, difficulty in rows]

    def get_game(self, token, context: AuthorizationContext) -> Optional[Dict]:
        """Return the normalized game for *token*, or ``None`` if not visible.

        *token* is a numeric id or ``"random"``; anything else raises
        :class:`ClientInputError` before storage is touched.
        """
        if token == RANDOM_TOKEN:
            return self._random_game(context)
        game_id = parse_game_id(token)
        row = self._repo.get_rated(game_id, include_removed=context.is_admin)
        return normalize_game(*row) if row else None

    def _random_game(self, context: AuthorizationContext) -> Optional[Dict]:
        total = self._repo.count(include_removed=context.is_admin)
        if total == 0:
            return None
        row = self._repo.get_rated_at(self._rng.randrange(total), include_removed=context.is_admin)
        return normalize_game(*row) if row else None

    def _require_visible(self, token, context: AuthorizationContext) -> int:
        game_id = parse_game_id(token)
        game = self._repo.get(game_id)
        if game is None or (game.removed and not context.is_admin):
            raise NotFoundError('Game not found')
        return game_id

    def list_reviews(self, token, context: AuthorizationContext,
                     page=None, limit=None) -> List[Dict]:
        """Reviews of a visible game, newest first."""
        game_id = self._require_visible(token, context)
        page = parse_page(page)
        limit = parse_limit(limit, self._default_page_size, self._max_page_size)
        rows = self._repo.list_reviews(game_id, page_offset(page, limit), limit,
                                       include_removed=context.is_admin)
        return [{
            'id': review.id,
            'gameId': review.game_id,
            'userId': review.user_id,
            'userName': user_name,
            'rating': review.rating,
            'difficulty': review.difficulty,
            'comment': review.comment,
            'dateCreated': serialize_date(review.date_created),
            'removed': bool(review.removed),
        } for review, user_name in rows]

    def list_screenshots(self, token, context: AuthorizationContext) -> List[Dict]:
        """Approved screenshots of a visible game, newest first."""
        game_id = self._require_visible(token, context)
        rows = self._repo.list_screenshots(game_id, include_removed=context.is_admin)
        return [{
            'id': shot.id,
            'gameId': shot.game_id,
            'gameName': game_name,
            'addedById': shot.added_by_id,
            'userName': user_name,
            'description': shot.description,
            'approved': bool(shot.approved),
            'removed': bool(shot.removed),
            'dateCreated': serialize_date(shot.date_created),
        } for shot, user_name, game_name in rows]

    def list_tags(self, token) -> List[Dict]:
        """Tags applied to a game; a removed game has none."""
        game_id = parse_game_id(token)
        return [{
            'id': game_tag.id,
            'gameId': game_tag.game_id,
            'tagId': game_tag.tag_id,
            'userId': game_tag.user_id,
            'name': name,
        } for game_tag, name in self._repo.list_tags(game_id)]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @staticmethod
    def _require_admin(is_admin: bool, action: str) -> None:
        if not is_admin:
            logger.warning("Rejected %s: administrator required", action)
            raise AuthorizationError('Unauthorized')

    def add_game(self, payload, creator_id: Optional[int],
                 context: AuthorizationContext) -> Dict:
        """Create a game attributed to *creator_id* and return it normalized."""
        self._require_admin(context.is_admin, 'add game')
        fields = game_fields(payload, creating=True)
        fields['adder_id'] = creator_id
        game = self._repo.create(fields)
        return normalize_game(game)

    def update_game(self, patch, is_admin: bool) -> bool:
        """Apply a partial update keyed by ``patch['id']``.

        Returns:
            ``True`` if the game exists (even when nothing changed);
            ``False`` if no game has that id.
        """
        self._require_admin(is_admin, 'update game')
        if not isinstance(patch, dict):
            raise ClientInputError('payload must be a JSON object', code='INVALID_PAYLOAD')
        game_id = parse_game_id(patch.get('id'))
        fields = game_fields(patch, creating=False)
        return self._repo.update(game_id, fields)

    def patch_game(self, token, patch, context: AuthorizationContext) -> Dict:
        """Patch the game identified by *token* and return its full new state."""
        self._require_admin(context.is_admin, 'update game')
        game_id = parse_game_id(token)
        if not isinstance(patch, dict):
            raise ClientInputError('payload must be a JSON object', code='INVALID_PAYLOAD')
        patch = dict(patch, id=game_id)
        if not self.update_game(patch, context.is_admin):
            raise NotFoundError('Game not found')
        row = self._repo.get_rated(game_id, include_removed=True)
        if row is None:
            raise NotFoundError('Game not found')
        return normalize_game(*row)

    def remove_game(self, token, context: AuthorizationContext) -> str:
        """Soft-delete a game.

        Returns:
            :data:`REMOVED`, or :data:`ALREADY_REMOVED` when the flag was
            already set, in which case nothing is written.
        """
        self._require_admin(context.is_admin, 'remove game')
        game_id = parse_game_id(token)
        game = self._repo.get(game_id)
        if game is None:
            raise NotFoundError('Game not found')
        if game.removed:
            return ALREADY_REMOVED
        if not self.update_game({'id': game_id, 'removed': True}, context.is_admin):
            raise NotFoundError('Game not found')
        logger.info("Game %s removed by user %s", game_id, context.subject_id)
        return REMOVED
