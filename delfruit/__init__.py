"""
Delicious Fruit catalog package.

Layered the same way throughout:

  delfruit/repositories/ : storage: parameterized SQLAlchemy queries and writes.
  delfruit/services/     : business logic: visibility, authorization, normalization.

``delfruit_api.py`` is the HTTP boundary: it resolves an
:class:`~delfruit.auth.AuthorizationContext` once per request, builds the
repositories around that request's database session, and hands the context
to the services explicitly.
"""

__version__ = '2.0.0'
