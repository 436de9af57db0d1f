"""Repository for user lists and their game membership."""
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from database import ListGame, UserList
from .base import BaseRepository


class ListRepository(BaseRepository):
    """Persists :class:`database.UserList` rows and ``(list, game)`` membership.

    Membership is unique per ``(list_id, game_id)`` at the schema level;
    :meth:`add_game` reports a violated constraint as "not added" instead of
    failing.
    """

    def get(self, list_id: int) -> Optional[UserList]:
        with self._storage('get list', list_id):
            return self._session.get(UserList, list_id)

    def create(self, user_id: int, name: str, description: Optional[str] = None) -> UserList:
        with self._storage('create list'):
            user_list = UserList(user_id=user_id, name=name, description=description)
            self._session.add(user_list)
            self._session.commit()
            self._session.refresh(user_list)
            self._log.info("User %s created list %s", user_id, user_list.id)
            return user_list

    def game_ids(self, list_id: int) -> List[int]:
        """Member game ids in insertion order."""
        with self._storage('get list games', list_id):
            rows = (self._session.query(ListGame.game_id)
                    .filter(ListGame.list_id == list_id)
                    .order_by(ListGame.id.asc())
                    .all())
            return [row[0] for row in rows]

    def add_game(self, list_id: int, game_id: int) -> bool:
        """Insert the membership row.

        Returns:
            ``True`` if inserted; ``False`` if a concurrent request already
            inserted the same ``(list_id, game_id)`` pair.
        """
        with self._storage('add game to list', list_id):
            self._session.add(ListGame(list_id=list_id, game_id=game_id))
            try:
                self._session.commit()
            except IntegrityError:
                self._session.rollback()
                self._log.info("Game %s already in list %s (unique constraint)", game_id, list_id)
                return False
            return True
