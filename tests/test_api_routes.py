#!/usr/bin/env python3
"""
Tests for the Flask API in delfruit_api.py, driven through the test client.

Run with:
    python -m pytest tests/test_api_routes.py
"""
import os
import sys
import unittest
from unittest.mock import patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database
import delfruit_api
from delfruit.auth import issue_token
from delfruit.exceptions import StorageError
from helpers import add_game, add_list, add_rating, add_user

SECRET = 'route-test-secret'


class ApiTestCase(unittest.TestCase):

    def setUp(self):
        self.app = delfruit_api.create_app({
            'database_url': 'sqlite://',
            'secret_key': SECRET,
            'log_level': 'CRITICAL',
        })
        self.client = self.app.test_client()
        self.db = self.app.extensions['delfruit.sessionmaker']()
        self.admin = add_user(self.db, 'admin', role='admin')
        self.user = add_user(self.db, 'bob')

    def tearDown(self):
        self.db.close()
        self.app.extensions['delfruit.engine'].dispose()

    def _auth(self, user, is_admin=False):
        return {'Authorization': f'Bearer {issue_token(SECRET, user.id, is_admin)}'}

    def _admin(self):
        return self._auth(self.admin, is_admin=True)


# ===========================================================================
# Identity
# ===========================================================================

class TestIdentity(ApiTestCase):

    def test_ping_anonymous(self):
        resp = self.client.get('/api/ping')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json(), {'status': 'ok'})

    def test_invalid_token_is_401(self):
        resp = self.client.get('/api/games', headers={'Authorization': 'Bearer nonsense'})
        self.assertEqual(resp.status_code, 401)
        self.assertIn('error', resp.get_json())

    def test_token_from_other_secret_is_401(self):
        token = issue_token('someone-else', self.admin.id, True)
        resp = self.client.get('/api/games', headers={'Authorization': f'Bearer {token}'})
        self.assertEqual(resp.status_code, 401)


# ===========================================================================
# Games
# ===========================================================================

class TestGameRoutes(ApiTestCase):

    def test_list_with_bogus_sort(self):
        for name in ('C', 'A', 'B'):
            add_game(self.db, name)
        resp = self.client.get('/api/games?order_col=bogus&page=0&limit=2')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([g['name'] for g in resp.get_json()], ['A', 'B'])

    def test_list_accepts_camel_case_sort_aliases(self):
        for name in ('A', 'B'):
            add_game(self.db, name)
        resp = self.client.get('/api/games?sortColumn=sortName&sortDirection=desc')
        self.assertEqual([g['name'] for g in resp.get_json()], ['B', 'A'])

    def test_list_hides_removed_from_users(self):
        add_game(self.db, 'Visible')
        add_game(self.db, 'Hidden', removed=True)
        resp = self.client.get('/api/games', headers=self._auth(self.user))
        self.assertEqual([g['name'] for g in resp.get_json()], ['Visible'])
        resp = self.client.get('/api/games', headers=self._admin())
        self.assertEqual(len(resp.get_json()), 2)

    def test_get_game(self):
        game = add_game(self.db, 'Collab', author='A B', collab=True)
        add_rating(self.db, game, self.user, rating=6)
        resp = self.client.get(f'/api/games/{game.id}')
        self.assertEqual(resp.status_code, 200)
        body = resp.get_json()
        self.assertEqual(body['author'], ['A', 'B'])
        self.assertEqual(body['rating'], 6.0)

    def test_huge_page_or_limit_is_not_an_error(self):
        add_game(self.db, 'Only')
        for query in ('page=99999999999999999999&limit=50', 'limit=99999999999999999999'):
            resp = self.client.get(f'/api/games?{query}')
            self.assertEqual(resp.status_code, 200)
            self.assertEqual([g['name'] for g in resp.get_json()], ['Only'])

    def test_huge_id_is_400(self):
        resp = self.client.get('/api/games/99999999999999999999')
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()['code'], 'INVALID_ID')

    def test_get_non_numeric_id_is_400(self):
        resp = self.client.get('/api/games/abc')
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()['code'], 'INVALID_ID')

    def test_get_removed_is_404_for_user(self):
        game = add_game(self.db, 'Gone', removed=True)
        self.assertEqual(self.client.get(f'/api/games/{game.id}').status_code, 404)
        resp = self.client.get(f'/api/games/{game.id}', headers=self._admin())
        self.assertEqual(resp.status_code, 200)

    def test_random_with_only_removed_is_404(self):
        add_game(self.db, 'Gone', removed=True)
        self.assertEqual(self.client.get('/api/games/random').status_code, 404)

    def test_add_game(self):
        resp = self.client.post('/api/games', json={'name': 'Brand New'}, headers=self._admin())
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.get_json()['adderId'], self.admin.id)

    def test_add_game_requires_admin(self):
        resp = self.client.post('/api/games', json={'name': 'x'}, headers=self._auth(self.user))
        self.assertEqual(resp.status_code, 403)
        resp = self.client.post('/api/games', json={'name': 'x'})
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(self.db.query(database.Game).count(), 0)

    def test_add_game_bad_payload_is_400(self):
        resp = self.client.post('/api/games', json={'name': 'x', 'bogus': 1},
                                headers=self._admin())
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()['code'], 'UNKNOWN_FIELD')

    def test_patch_game(self):
        game = add_game(self.db, 'Before')
        resp = self.client.patch(f'/api/games/{game.id}', json={'name': 'After'},
                                 headers=self._admin())
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()['name'], 'After')

    def test_patch_missing_is_404(self):
        resp = self.client.patch('/api/games/999', json={'name': 'x'}, headers=self._admin())
        self.assertEqual(resp.status_code, 404)

    def test_patch_requires_admin(self):
        game = add_game(self.db, 'Locked')
        resp = self.client.patch(f'/api/games/{game.id}', json={'removed': True},
                                 headers=self._auth(self.user))
        self.assertEqual(resp.status_code, 403)

    def test_delete_twice(self):
        game = add_game(self.db, 'Doomed')
        first = self.client.delete(f'/api/games/{game.id}', headers=self._admin())
        self.assertEqual(first.status_code, 204)
        second = self.client.delete(f'/api/games/{game.id}', headers=self._admin())
        self.assertEqual(second.status_code, 200)
        self.assertEqual(second.get_json(), {'message': 'Game is already deleted'})

    def test_delete_missing_is_404(self):
        self.assertEqual(self.client.delete('/api/games/999', headers=self._admin()).status_code,
                         404)

    def test_sub_resources(self):
        game = add_game(self.db, 'Rich')
        add_rating(self.db, game, self.user, rating=5, comment='fun')
        reviews = self.client.get(f'/api/games/{game.id}/reviews').get_json()
        self.assertEqual([r['comment'] for r in reviews], ['fun'])
        self.assertEqual(self.client.get(f'/api/games/{game.id}/screenshots').get_json(), [])
        self.assertEqual(self.client.get(f'/api/games/{game.id}/tags').get_json(), [])

    def test_reviews_of_removed_game_is_404(self):
        game = add_game(self.db, 'Gone', removed=True)
        self.assertEqual(self.client.get(f'/api/games/{game.id}/reviews').status_code, 404)


# ===========================================================================
# Lists
# ===========================================================================

class TestListRoutes(ApiTestCase):

    def setUp(self):
        super().setUp()
        self.game = add_game(self.db, 'Kamilia')
        self.user_list = add_list(self.db, self.user)

    def _put(self, body, headers=None, list_id=None):
        return self.client.put(f'/api/lists/{list_id or self.user_list.id}/games',
                               json=body, headers=headers or {})

    def test_create_list(self):
        resp = self.client.post('/api/lists', json={'name': 'Mine'}, headers=self._auth(self.user))
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.get_json()['userId'], self.user.id)

    def test_create_list_anonymous_is_401(self):
        self.assertEqual(self.client.post('/api/lists', json={'name': 'x'}).status_code, 401)

    def test_add_is_idempotent(self):
        headers = self._auth(self.user)
        self.assertEqual(self._put({'gameId': self.game.id}, headers).status_code, 204)
        self.assertEqual(self._put({'gameId': self.game.id}, headers).status_code, 204)
        self.db.expire_all()
        self.assertEqual(self.db.query(database.ListGame).count(), 1)

    def test_anonymous_is_401(self):
        self.assertEqual(self._put({'gameId': self.game.id}).status_code, 401)

    def test_non_owner_is_403(self):
        resp = self._put({'gameId': self.game.id}, self._auth(self.admin, is_admin=True))
        self.assertEqual(resp.status_code, 403)

    def test_missing_list_is_404(self):
        resp = self._put({'gameId': self.game.id}, self._auth(self.user), list_id=999)
        self.assertEqual(resp.status_code, 404)

    def test_bad_game_id_is_400(self):
        headers = self._auth(self.user)
        self.assertEqual(self._put({'gameId': 'abc'}, headers).status_code, 400)
        self.assertEqual(self._put({}, headers).status_code, 400)
        self.assertEqual(self._put(['x'], headers).status_code, 400)


# ===========================================================================
# Error handling
# ===========================================================================

class TestErrorHandling(ApiTestCase):

    def test_unknown_route_is_json_404(self):
        resp = self.client.get('/api/nowhere')
        self.assertEqual(resp.status_code, 404)
        self.assertIn('error', resp.get_json())

    def test_unexpected_error_is_500_with_id(self):
        with patch.object(delfruit_api.CatalogService, 'list_games',
                          side_effect=RuntimeError('secret detail')):
            resp = self.client.get('/api/games')
        self.assertEqual(resp.status_code, 500)
        body = resp.get_json()
        self.assertEqual(body['error'], 'Internal Server Error')
        self.assertTrue(body['id'])
        self.assertNotIn('secret detail', resp.get_data(as_text=True))

    def test_storage_error_is_500_with_id(self):
        with patch.object(delfruit_api.CatalogService, 'get_game',
                          side_effect=StorageError('get game', 1)):
            resp = self.client.get('/api/games/1')
        self.assertEqual(resp.status_code, 500)
        self.assertIn('id', resp.get_json())


if __name__ == '__main__':
    unittest.main()
