"""Shared fixtures: an in-memory database and row builders."""
import os
import sys
from datetime import datetime

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database


def make_session():
    engine = database.make_engine('sqlite://')
    database.init_db(engine)
    return database.make_session_factory(engine)()


def add_user(db, name='alice', role='user'):
    user = database.User(name=name, role=role)
    db.add(user)
    db.commit()
    return user


def add_game(db, name, sort_name=None, removed=False, author='', collab=False,
             date_created=None):
    game = database.Game(
        name=name,
        sort_name=sort_name or name,
        author_raw=author,
        collab=collab,
        removed=removed,
        date_created=date_created,
    )
    db.add(game)
    db.commit()
    return game


def add_rating(db, game, user, rating=None, difficulty=None, removed=False,
               comment=None, date_created=None):
    row = database.Rating(
        game_id=game.id, user_id=user.id, rating=rating, difficulty=difficulty,
        removed=removed, comment=comment, date_created=date_created or datetime.utcnow(),
    )
    db.add(row)
    db.commit()
    return row


def add_list(db, user, name='Favourites'):
    user_list = database.UserList(user_id=user.id, name=name)
    db.add(user_list)
    db.commit()
    return user_list
