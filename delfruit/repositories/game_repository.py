"""Repository for catalog games and the rows hanging off them."""
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, func

from database import Game, GameTag, Rating, Screenshot, Tag, User
from ..query import ASC, SORT_DATE_CREATED, SORT_NAME
from .base import BaseRepository

# Canonical sort identifier -> column. Only whitelisted identifiers exist here.
_ORDER_COLUMNS = {
    SORT_NAME: Game.sort_name,
    SORT_DATE_CREATED: Game.date_created,
}

RatedGame = Tuple[Game, Optional[float], Optional[float]]


class GameRepository(BaseRepository):
    """Reads and writes :class:`database.Game` rows.

    ``include_removed`` is the visibility switch: callers pass ``True`` only
    for administrators.
    """

    def _rated(self, include_removed: bool):
        query = (
            self._session.query(
                Game,
                func.avg(Rating.rating).label('rating'),
                func.avg(Rating.difficulty).label('difficulty'),
            )
            .outerjoin(Rating, and_(Rating.game_id == Game.id, Rating.removed.is_(False)))
            .group_by(Game.id)
        )
        if not include_removed:
            query = query.filter(Game.removed.is_(False))
        return query

    def search(self, name_query: Optional[str], sort_column: str, sort_direction: str,
               offset: int, limit: int, include_removed: bool) -> List[RatedGame]:
        """Return one page of games with their rating averages."""
        with self._storage('search games'):
            query = self._rated(include_removed)
            if name_query:
                query = query.filter(Game.name.icontains(name_query, autoescape=True))
            column = _ORDER_COLUMNS[sort_column]
            ordering = column.asc() if sort_direction == ASC else column.desc()
            rows = query.order_by(ordering, Game.id.asc()).offset(offset).limit(limit).all()
            return [tuple(row) for row in rows]

    def get_rated(self, game_id: int, include_removed: bool) -> Optional[RatedGame]:
        with self._storage('get game', game_id):
            row = self._rated(include_removed).filter(Game.id == game_id).first()
            return tuple(row) if row else None

    def count(self, include_removed: bool) -> int:
        with self._storage('count games'):
            query = self._session.query(func.count(Game.id))
            if not include_removed:
                query = query.filter(Game.removed.is_(False))
            return query.scalar() or 0

    def get_rated_at(self, position: int, include_removed: bool) -> Optional[RatedGame]:
        """Return the game at *position* in id order among visible games."""
        with self._storage('get game at position', position):
            row = (self._rated(include_removed)
                   .order_by(Game.id.asc())
                   .offset(position)
                   .limit(1)
                   .first())
            return tuple(row) if row else None

    def get(self, game_id: int) -> Optional[Game]:
        """Return the raw row regardless of its removed flag."""
        with self._storage('get game', game_id):
            return self._session.get(Game, game_id)

    def create(self, fields: Dict) -> Game:
        with self._storage('create game'):
            game = Game(**fields)
            self._session.add(game)
            self._session.commit()
            self._session.refresh(game)
            self._log.info("Created game %s (%s)", game.id, game.name)
            return game

    def update(self, game_id: int, fields: Dict) -> bool:
        """Apply *fields* to the game. Returns ``False`` when no row matches."""
        with self._storage('update game', game_id):
            game = self._session.get(Game, game_id)
            if game is None:
                return False
            for key, value in fields.items():
                setattr(game, key, value)
            self._session.commit()
            self._log.info("Updated game %s: %s", game_id, sorted(fields))
            return True

    def list_reviews(self, game_id: int, offset: int, limit: int,
                     include_removed: bool) -> List[Tuple[Rating, str]]:
        with self._storage('list reviews', game_id):
            query = (self._session.query(Rating, User.name)
                     .join(User, Rating.user_id == User.id)
                     .filter(Rating.game_id == game_id))
            if not include_removed:
                query = query.filter(Rating.removed.is_(False))
            rows = (query.order_by(Rating.date_created.desc(), Rating.id.desc())
                    .offset(offset).limit(limit).all())
            return [tuple(row) for row in rows]

    def list_screenshots(self, game_id: int,
                         include_removed: bool) -> List[Tuple[Screenshot, str, str]]:
        with self._storage('list screenshots', game_id):
            query = (self._session.query(Screenshot, User.name, Game.name)
                     .join(User, Screenshot.added_by_id == User.id)
                     .join(Game, Screenshot.game_id == Game.id)
                     .filter(Screenshot.game_id == game_id, Screenshot.approved.is_(True)))
            if not include_removed:
                query = query.filter(Screenshot.removed.is_(False))
            rows = query.order_by(Screenshot.date_created.desc(), Screenshot.id.desc()).all()
            return [tuple(row) for row in rows]

    def list_tags(self, game_id: int) -> List[Tuple[GameTag, str]]:
        """Tags of *game_id*; empty when the game is removed."""
        with self._storage('list tags', game_id):
            rows = (self._session.query(GameTag, Tag.name)
                    .join(Game, and_(Game.id == GameTag.game_id, Game.removed.is_(False)))
                    .join(Tag, Tag.id == GameTag.tag_id)
                    .filter(GameTag.game_id == game_id)
                    .order_by(GameTag.id.asc())
                    .all())
            return [tuple(row) for row in rows]
