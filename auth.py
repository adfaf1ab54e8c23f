"""
Authentication gate.

The identity provider itself lives outside this service; all the app needs
is an object answering ``is_authenticated()`` and ``logout()``. One is
built from ``AUTH_BACKEND`` or passed to ``create_app(auth=...)``.
"""
from functools import wraps

from flask import current_app, session

import errors


class SessionAuth:
    """Signed in while the identity widget's entry is present in the session."""

    def __init__(self, session_key='identity'):
        self.session_key = session_key

    def is_authenticated(self):
        return bool(session.get(self.session_key))

    def logout(self):
        session.pop(self.session_key, None)


class StaticAuth:
    """Fixed answer, for development and tests."""

    def __init__(self, authenticated=True):
        self.authenticated = authenticated

    def is_authenticated(self):
        return self.authenticated

    def logout(self):
        self.authenticated = False


def build_auth(config):
    backend = config['AUTH_BACKEND']
    if backend == 'session':
        return SessionAuth(config['AUTH_SESSION_KEY'])
    if backend == 'static':
        return StaticAuth()
    raise ValueError(f'Unknown AUTH_BACKEND {backend!r}')


def login_required(f):
    @wraps(f)
    def wrap(*args, **kwargs):
        if not current_app.extensions['meditrack.auth'].is_authenticated():
            raise errors.AuthenticationRequired()
        return f(*args, **kwargs)
    return wrap
