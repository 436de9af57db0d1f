"""Business logic for user owned game lists."""
import logging
from typing import Dict, List

from ..auth import AuthorizationContext
from ..exceptions import AuthenticationError, ClientInputError
from ..normalize import serialize_date
from ..repositories.game_repository import GameRepository
from ..repositories.list_repository import ListRepository
from .catalog_service import parse_game_id

logger = logging.getLogger('delfruit.service.lists')

ADDED = 'added'
ALREADY_PRESENT = 'already_present'
FORBIDDEN = 'forbidden'
NOT_FOUND = 'not_found'


def _list_dict(user_list) -> Dict:
    return {
        'id': user_list.id,
        'userId': user_list.user_id,
        'name': user_list.name,
        'description': user_list.description,
        'dateCreated': serialize_date(user_list.date_created),
    }


class ListMembershipService:
    """Creates lists and adds games to them, delegating persistence to
    :class:`~delfruit.repositories.list_repository.ListRepository`.

    Rules
    -----
    * Every operation needs an authenticated caller.
    * Only the owner may change a list; being an administrator does not
      help.
    * Adding a game is idempotent: a list holds each game at most once,
      including when two identical requests race.
    """

    def __init__(self, repository: ListRepository, games: GameRepository) -> None:
        self._repo = repository
        self._games = games

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_list(self, payload, owner_id) -> Dict:
        """Create a list owned by *owner_id*.

        Raises:
            AuthenticationError: *owner_id* is ``None``.
            ClientInputError:    the payload has no usable ``name``.
        """
        if owner_id is None:
            raise AuthenticationError()
        if not isinstance(payload, dict):
            raise ClientInputError('payload must be a JSON object', code='INVALID_PAYLOAD')
        name = payload.get('name')
        if not isinstance(name, str) or not name.strip():
            raise ClientInputError('name is required', code='INVALID_PAYLOAD')
        description = payload.get('description')
        if description is not None and not isinstance(description, str):
            raise ClientInputError('description must be a string', code='INVALID_FIELD')
        return _list_dict(self._repo.create(owner_id, name.strip(), description))

    def get_list_games(self, list_id: int) -> List[int]:
        return self._repo.game_ids(list_id)

    def add_game_to_list(self, list_id, game_id, context: AuthorizationContext) -> str:
        """Add *game_id* to the caller's list *list_id*.

        Returns:
            One of :data:`ADDED`, :data:`ALREADY_PRESENT`, :data:`FORBIDDEN`
            or :data:`NOT_FOUND`.

        Raises:
            AuthenticationError: the caller is anonymous.
            ClientInputError:    either id is not a number.
        """
        if not context.is_authenticated:
            raise AuthenticationError()
        list_id = parse_game_id(list_id)
        game_id = parse_game_id(game_id)

        user_list = self._repo.get(list_id)
        if user_list is None:
            return NOT_FOUND
        if user_list.user_id != context.subject_id:
            logger.warning("User %s tried to modify list %s owned by %s",
                           context.subject_id, list_id, user_list.user_id)
            return FORBIDDEN

        game = self._games.get(game_id)
        if game is None or (game.removed and not context.is_admin):
            return NOT_FOUND

        if game_id in self.get_list_games(list_id):
            return ALREADY_PRESENT
        if not self._repo.add_game(list_id, game_id):
            return ALREADY_PRESENT
        logger.info("Added game %s to list %s", game_id, list_id)
        return ADDED
