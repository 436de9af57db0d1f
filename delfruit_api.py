#!/usr/bin/env python3
"""
HTTP boundary for the Delicious Fruit catalog.

Resolves the caller's identity once per request, opens one database session
per request, and maps service results and exceptions onto JSON responses.
"""

import argparse
import logging
import os
import uuid
from typing import Dict, Optional

from flask import Blueprint, Flask, current_app, g, jsonify, request
from werkzeug.exceptions import HTTPException

import database
from delfruit.auth import AuthorizationContext, resolve_context
from delfruit.config import DEFAULT_CONFIG, load_config, setup_logging
from delfruit.exceptions import AuthenticationError, ClientInputError, DelfruitError, NotFoundError
from delfruit.repositories import GameRepository, ListRepository
from delfruit.services import CatalogService, ListMembershipService
from delfruit.services.catalog_service import ALREADY_REMOVED
from delfruit.services.list_service import ADDED, ALREADY_PRESENT, FORBIDDEN

api_logger = logging.getLogger('delfruit.api')

api = Blueprint('api', __name__, url_prefix='/api')


# ===========================================================================================
# Per-request plumbing
# ===========================================================================================

def _settings() -> Dict:
    return current_app.config['DELFRUIT']


def _db():
    """Database session for the current request, opened on first use."""
    if 'db_session' not in g:
        g.db_session = current_app.extensions['delfruit.sessionmaker']()
    return g.db_session


def _context() -> AuthorizationContext:
    return g.auth_context


def _catalog() -> CatalogService:
    settings = _settings()
    return CatalogService(
        GameRepository(_db()),
        default_page_size=settings['default_page_size'],
        max_page_size=settings['max_page_size'],
    )


def _lists() -> ListMembershipService:
    session = _db()
    return ListMembershipService(ListRepository(session), GameRepository(session))


@api.before_app_request
def resolve_identity():
    """Attach the caller's AuthorizationContext to this request."""
    g.auth_context = resolve_context(
        request.headers.get('Authorization'),
        current_app.secret_key,
        _settings()['token_max_age'],
    )


# ===========================================================================================
# Game Endpoints
# ===========================================================================================

@api.route('/games', methods=['GET'])
def api_list_games():
    """List games. Query: ``q``, ``page``, ``limit``, ``order_col``, ``order_dir``."""
    args = request.args
    games = _catalog().list_games(
        _context(),
        name_query=args.get('q'),
        sort_column=args.get('order_col', args.get('sortColumn')),
        sort_direction=args.get('order_dir', args.get('sortDirection')),
        page=args.get('page'),
        limit=args.get('limit'),
    )
    return jsonify(games)


@api.route('/games', methods=['POST'])
def api_add_game():
    """Create a game (administrators only)."""
    context = _context()
    game = _catalog().add_game(request.get_json(silent=True), context.subject_id, context)
    api_logger.info('Game %s added by user %s', game['id'], context.subject_id)
    return jsonify(game), 201


@api.route('/games/<game_id>', methods=['GET'])
def api_get_game(game_id: str):
    """Fetch one game by numeric id, or a random visible game for ``random``."""
    game = _catalog().get_game(game_id, _context())
    if game is None:
        raise NotFoundError('Game not found')
    return jsonify(game)


@api.route('/games/<game_id>', methods=['PATCH'])
def api_patch_game(game_id: str):
    """Partially update a game (administrators only); returns the full game."""
    game = _catalog().patch_game(game_id, request.get_json(silent=True), _context())
    return jsonify(game)


@api.route('/games/<game_id>', methods=['DELETE'])
def api_remove_game(game_id: str):
    """Soft-delete a game (administrators only)."""
    outcome = _catalog().remove_game(game_id, _context())
    if outcome == ALREADY_REMOVED:
        return jsonify({'message': 'Game is already deleted'})
    return '', 204


@api.route('/games/<game_id>/reviews', methods=['GET'])
def api_game_reviews(game_id: str):
    reviews = _catalog().list_reviews(
        game_id, _context(),
        page=request.args.get('page'),
        limit=request.args.get('limit'),
    )
    return jsonify(reviews)


@api.route('/games/<game_id>/screenshots', methods=['GET'])
def api_game_screenshots(game_id: str):
    return jsonify(_catalog().list_screenshots(game_id, _context()))


@api.route('/games/<game_id>/tags', methods=['GET'])
def api_game_tags(game_id: str):
    return jsonify(_catalog().list_tags(game_id))


# ===========================================================================================
# List Endpoints
# ===========================================================================================

@api.route('/lists', methods=['POST'])
def api_create_list():
    """Create a list owned by the caller. Expects JSON ``{"name": "..."}``."""
    created = _lists().create_list(request.get_json(silent=True), _context().subject_id)
    return jsonify(created), 201


@api.route('/lists/<list_id>/games', methods=['PUT'])
def api_add_to_list(list_id: str):
    """Add a game to a list. Expects JSON ``{"gameId": <int>}``."""
    context = _context()
    if not context.is_authenticated:
        raise AuthenticationError()
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ClientInputError('gameId is required', code='INVALID_PAYLOAD')
    outcome = _lists().add_game_to_list(list_id, data.get('gameId'), context)
    if outcome in (ADDED, ALREADY_PRESENT):
        return '', 204
    if outcome == FORBIDDEN:
        return jsonify({'error': 'Forbidden', 'code': 'FORBIDDEN'}), 403
    return jsonify({'error': 'List not found', 'code': 'NOT_FOUND'}), 404


@api.route('/ping', methods=['GET'])
def api_ping():
    return jsonify({'status': 'ok'})


# ===========================================================================================
# Error handling
# ===========================================================================================

def _internal_error(error: Exception):
    """Log *error* in full under a fresh correlation id; tell the client only the id."""
    error_id = str(uuid.uuid4())
    api_logger.error('severe error: id %s on %s %s', error_id, request.method, request.path,
                     exc_info=error)
    return jsonify({'error': 'Internal Server Error', 'id': error_id}), 500


def register_error_handlers(app: Flask) -> None:

    @app.errorhandler(DelfruitError)
    def handle_delfruit_error(e: DelfruitError):
        if e.status >= 500:
            return _internal_error(e)
        return jsonify(e.to_dict()), e.status

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        if isinstance(e, HTTPException):
            return jsonify({
                'error': e.description,
                'code': e.name.upper().replace(' ', '_'),
            }), e.code
        return _internal_error(e)


def _close_session(exc: Optional[BaseException]) -> None:
    session = g.pop('db_session', None)
    if session is not None:
        if exc is not None:
            session.rollback()
        session.close()


# ===========================================================================================
# Application factory
# ===========================================================================================

def create_app(config: Optional[Dict] = None) -> Flask:
    """Build the Flask application.

    Args:
        config: Settings overriding :data:`~delfruit.config.DEFAULT_CONFIG`.
            When omitted, :func:`~delfruit.config.load_config` is used.
    """
    settings = dict(DEFAULT_CONFIG)
    settings.update(load_config() if config is None else config)
    setup_logging(settings['log_level'], settings.get('log_file'))

    app = Flask(__name__)
    app.config['DELFRUIT'] = settings
    if settings['secret_key']:
        app.secret_key = settings['secret_key']
    else:
        api_logger.warning('No secret key configured; issued tokens will not survive a restart')
        app.secret_key = os.urandom(24).hex()

    engine = database.make_engine(settings['database_url'])
    database.init_db(engine)
    app.extensions['delfruit.engine'] = engine
    app.extensions['delfruit.sessionmaker'] = database.make_session_factory(engine)

    app.register_blueprint(api)
    register_error_handlers(app)
    app.teardown_appcontext(_close_session)
    return app


def main():
    """Main entry point for the API server"""
    parser = argparse.ArgumentParser(description='Delicious Fruit catalog API')
    parser.add_argument('--config', default='config.json', help='Path to config file')
    parser.add_argument('--host', default='127.0.0.1', help='Interface to bind')
    parser.add_argument('--port', type=int, default=None, help='Port (overrides config)')
    args = parser.parse_args()

    settings = load_config(args.config)
    app = create_app(settings)
    port = args.port or settings['port']
    api_logger.info('Server starting at %s:%s', args.host, port)
    app.run(host=args.host, port=port, debug=False)


if __name__ == "__main__":
    main()
