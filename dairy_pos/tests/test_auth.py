import time
from types import SimpleNamespace

import pytest
from supabase import AuthError

from dairy_pos.app_container import AppContainer, get_container
from dairy_pos.services import AuthService


class ProviderError(AuthError):
    def __init__(self, message):
        Exception.__init__(self, message)
        self.message = message


class AuthDirectory:
    """Lado del proveedor: usuarios, sesiones emitidas y consultas recibidas."""

    def __init__(self, confirm_email=False):
        self.users = {}
        self.confirm_email = confirm_email
        self.expires_in = 3600
        self.issued = 0
        self.active = {}
        self.revoked = []
        self.queries = []
        self.clients = 0

    def add_user(self, email, password):
        user = SimpleNamespace(id=f"user-{len(self.users) + 1}", email=email)
        self.users[email] = (user, password)
        return user

    def new_session(self, user):
        self.issued += 1
        session = SimpleNamespace(
            access_token=f"access-{user.id}-{self.issued}",
            refresh_token=f"refresh-{user.id}",
            expires_in=self.expires_in,
            expires_at=int(time.time()) + self.expires_in,
        )
        self.active[user.id] = session.access_token
        return session


class FakeAuth:
    """Imita `client.auth` de supabase sobre un AuthDirectory."""

    def __init__(self, directory):
        self.directory = directory
        self.admin = SimpleNamespace(sign_out=self._admin_sign_out)

    def sign_up(self, credentials):
        if credentials['email'] in self.directory.users:
            raise ProviderError('User already registered')
        user = self.directory.add_user(credentials['email'], credentials['password'])
        session = None if self.directory.confirm_email else self.directory.new_session(user)
        return SimpleNamespace(user=user, session=session)

    def sign_in_with_password(self, credentials):
        user, password = self.directory.users.get(credentials['email'], (None, None))
        if user is None or password != credentials['password']:
            raise ProviderError('Invalid login credentials')
        return SimpleNamespace(user=user, session=self.directory.new_session(user))

    def refresh_session(self, refresh_token):
        for user, _ in self.directory.users.values():
            if refresh_token == f"refresh-{user.id}" and user.id in self.directory.active:
                return SimpleNamespace(user=user, session=self.directory.new_session(user))
        raise ProviderError('Invalid Refresh Token')

    def _admin_sign_out(self, jwt, scope='global'):
        self.directory.revoked.append((jwt, scope))
        self.directory.active = {k: v for k, v in self.directory.active.items() if v != jwt}


class FakeQuery:
    """Consulta encadenable; anota con qué token salió."""

    def __init__(self, client, table):
        self.client = client
        self.table_name = table
        self.rows = []

    def insert(self, rows):
        self.rows = rows if isinstance(rows, list) else [rows]
        return self

    def __getattr__(self, name):
        # select, eq, order, limit, update, delete
        return lambda *args, **kwargs: self

    def execute(self):
        self.client.directory.queries.append((self.table_name, self.client.token))
        return SimpleNamespace(data=self.rows, count=len(self.rows))


class FakeClient:
    def __init__(self, directory, access_token=None):
        directory.clients += 1
        self.directory = directory
        self.token = access_token
        self.auth = FakeAuth(directory)

    def table(self, name):
        return FakeQuery(self, name)


@pytest.fixture
def directory():
    return AuthDirectory()


@pytest.fixture
def auth(directory, audit):
    return AuthService(lambda: FakeClient(directory), audit)


# ==============================================================================
# SERVICIO
# ==============================================================================

@pytest.mark.parametrize('email, password, message', [
    ('', 'secret1', 'Email and password are required.'),
    ('a@b.com', '', 'Email and password are required.'),
    ('a@b.com', '123', 'Password must be at least 6 characters.'),
])
def test_sign_up_validation(auth, email, password, message):
    assert auth.sign_up(email, password) == {'ok': False, 'error': message}


def test_sign_up_and_sign_in(auth, repos):
    created = auth.sign_up(' owner@dairy.in ', 'secret1')
    assert created['ok']
    assert created['user'] == {'id': 'user-1', 'email': 'owner@dairy.in'}
    assert created['needs_confirmation'] is False

    assert auth.sign_up('owner@dairy.in', 'secret1') == {'ok': False, 'error': 'User already registered'}

    assert auth.sign_in('owner@dairy.in', 'wrong-pass') == {'ok': False, 'error': 'Invalid login credentials'}
    logged = auth.sign_in('owner@dairy.in', 'secret1')
    assert logged['ok']
    assert logged['user']['id'] == 'user-1'
    assert any(e['message'] == 'Signed in: user-1' for e in repos['audit'].load('user-1'))


def test_sign_in_returns_tokens_from_a_fresh_client(auth, directory):
    directory.add_user('a@dairy.in', 'secret1')
    before = directory.clients

    logged = auth.sign_in('a@dairy.in', 'secret1')

    assert directory.clients == before + 1
    tokens = logged['session']
    assert tokens['access_token'] == directory.active['user-1']
    assert tokens['refresh_token'] == 'refresh-user-1'
    assert tokens['expires_at'] > time.time()


def test_sign_up_with_email_confirmation(audit):
    service = AuthService(lambda: FakeClient(AuthDirectory(confirm_email=True)), audit)
    created = service.sign_up('owner@dairy.in', 'secret1')
    assert created['needs_confirmation'] is True
    assert created['message'] == 'Check your email to confirm your account.'


def test_refresh_session(auth, directory):
    directory.add_user('a@dairy.in', 'secret1')
    first = auth.sign_in('a@dairy.in', 'secret1')['session']

    renewed = auth.refresh_session(first['refresh_token'])
    assert renewed['ok']
    assert renewed['session']['access_token'] != first['access_token']

    assert auth.refresh_session('refresh-nobody') == {'ok': False, 'error': 'Session expired. Please sign in again.'}
    assert auth.refresh_session('')['ok'] is False


def test_sign_out_revokes_only_the_current_session(auth, directory):
    directory.add_user('a@dairy.in', 'secret1')
    token = auth.sign_in('a@dairy.in', 'secret1')['session']['access_token']

    assert auth.sign_out('user-1', token) == {'ok': True}
    assert directory.revoked == [(token, 'local')]


def test_sign_out_without_token(auth, directory):
    assert auth.sign_out('user-1') == {'ok': True}
    assert directory.revoked == []


# ==============================================================================
# SESIONES POR PETICIÓN (rutas en modo online)
# ==============================================================================

@pytest.fixture
def online(client, data_dir, directory, monkeypatch):
    monkeypatch.setenv('SUPABASE_URL', 'https://dairy.supabase.co')
    monkeypatch.setenv('SUPABASE_ANON_KEY', 'anon-key')
    monkeypatch.setattr(
        'dairy_pos.app_container.build_client',
        lambda url, key, access_token=None: FakeClient(directory, access_token),
    )
    AppContainer.reset_instance()
    get_container(data_dir, 'supabase')
    directory.add_user('a@dairy.in', 'secret1')
    directory.add_user('b@dairy.in', 'secret1')
    return directory


def sign_in(test_client, email):
    csrf = test_client.get('/api/session').get_json()['csrf_token']
    r = test_client.post('/api/auth/login', json={'email': email, 'password': 'secret1'},
                         headers={'X-CSRF-Token': csrf})
    assert r.status_code == 200, r.get_json()
    assert 'session' not in r.get_json()
    return csrf


def tokens_used(directory, test_client, url='/api/products'):
    directory.queries.clear()
    r = test_client.get(url)
    return r.status_code, {token for _, token in directory.queries}


def test_each_session_queries_with_its_own_token(client, online):
    from dairy_pos.main import app

    other = app.test_client()
    sign_in(client, 'a@dairy.in')
    sign_in(other, 'b@dairy.in')

    assert tokens_used(online, client) == (200, {online.active['user-1']})
    assert tokens_used(online, other) == (200, {online.active['user-2']})


def test_logout_does_not_touch_other_sessions(client, online):
    from dairy_pos.main import app

    other = app.test_client()
    sign_in(client, 'a@dairy.in')
    csrf_b = sign_in(other, 'b@dairy.in')
    token_b = online.active['user-2']

    r = other.post('/api/auth/logout', json={}, headers={'X-CSRF-Token': csrf_b})
    assert r.status_code == 200
    assert online.revoked == [(token_b, 'local')]

    assert tokens_used(online, client) == (200, {online.active['user-1']})
    status, used = tokens_used(online, other)
    assert status == 401
    assert used == set()


def test_expiring_token_is_refreshed_before_the_request(client, online):
    online.expires_in = 10
    sign_in(client, 'a@dairy.in')
    login_token = online.active['user-1']

    status, used = tokens_used(online, client)

    assert status == 200
    assert used == {online.active['user-1']}
    assert login_token not in used


def test_failed_refresh_signs_the_user_out(client, online):
    online.expires_in = 10
    sign_in(client, 'a@dairy.in')
    online.active.clear()

    status, used = tokens_used(online, client)

    assert status == 401
    assert used == set()
    assert client.get('/api/session').get_json()['owner'] is None
