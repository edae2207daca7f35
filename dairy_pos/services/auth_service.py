# ==============================================================================
# SERVICIO DE AUTENTICACIÓN (modo online)
# ==============================================================================
# Registro, inicio y cierre de sesión con Supabase Auth (email + password).
# El id del usuario autenticado es el dueño de todos sus datos.
#
# El cliente de Supabase guarda la sesión que inicia, así que cada operación
# usa un cliente nuevo de `client_factory` y devuelve los tokens: quien
# llama los guarda en la sesión de Flask y cada petición consulta con un
# cliente propio autenticado con ellos (ver app_container.request_client).
#
# En modo offline no hay autenticación: todas las sesiones pertenecen al
# dueño implícito 'local' (ver main.py).
# ==============================================================================

import time
from typing import Any, Callable, Dict

from supabase import AuthError, Client

from dairy_pos.services.audit_service import AuditService
from dairy_pos.performance_logger import log_error


MIN_PASSWORD_LENGTH = 6
SESSION_EXPIRED_MESSAGE = 'Session expired. Please sign in again.'


def _user_dict(user) -> Dict[str, Any]:
    return {'id': user.id, 'email': getattr(user, 'email', None)}


def _tokens(session) -> Dict[str, Any]:
    """Tokens de la sesión del proveedor, listos para la sesión de Flask."""
    expires_at = getattr(session, 'expires_at', None)
    if not expires_at:
        expires_at = int(time.time()) + int(getattr(session, 'expires_in', None) or 3600)
    return {
        'access_token': session.access_token,
        'refresh_token': session.refresh_token,
        'expires_at': int(expires_at),
    }


class AuthService:
    """
    Servicio de autenticación sobre `client.auth`.

    Responsabilidades:
    - Validar credenciales antes de llamar al proveedor
    - Traducir errores del proveedor a resultados {'ok': False, 'error': ...}
    - Entregar y renovar los tokens del usuario
    - Registrar inicios y cierres de sesión
    """

    def __init__(self, client_factory: Callable[[], Client], audit_service: AuditService = None):
        """
        Args:
            client_factory: Crea un cliente de Supabase sin sesión
            audit_service: Servicio de auditoría (opcional)
        """
        self.client_factory = client_factory
        self.audit_service = audit_service

    @staticmethod
    def _validate(email: str, password: str):
        if not email or not password:
            return 'Email and password are required.'
        if len(password) < MIN_PASSWORD_LENGTH:
            return f'Password must be at least {MIN_PASSWORD_LENGTH} characters.'
        return None

    def sign_up(self, email: str, password: str) -> Dict[str, Any]:
        """
        Crea una cuenta nueva.

        Returns:
            Dict con ok y user. `needs_confirmation` es True cuando el
            proveedor exige confirmar el email antes de iniciar sesión.
        """
        email = (email or '').strip()
        error = self._validate(email, password)
        if error:
            return {'ok': False, 'error': error}

        try:
            resp = self.client_factory().auth.sign_up({'email': email, 'password': password})
        except AuthError as e:
            return {'ok': False, 'error': e.message}

        if resp.user is None:
            return {'ok': False, 'error': 'Sign up failed.'}
        needs_confirmation = resp.session is None
        return {
            'ok': True,
            'user': _user_dict(resp.user),
            'needs_confirmation': needs_confirmation,
            'message': 'Check your email to confirm your account.' if needs_confirmation else 'Account created.',
        }

    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        """
        Inicia sesión con email y password.

        Returns:
            Dict con ok, user y session (access_token, refresh_token,
            expires_at), o error
        """
        email = (email or '').strip()
        if not email or not password:
            return {'ok': False, 'error': 'Email and password are required.'}

        try:
            resp = self.client_factory().auth.sign_in_with_password({'email': email, 'password': password})
        except AuthError as e:
            return {'ok': False, 'error': e.message}

        if resp.user is None or resp.session is None:
            return {'ok': False, 'error': 'Invalid login credentials'}
        if self.audit_service:
            self.audit_service.log_user_login(resp.user.id)
        return {'ok': True, 'user': _user_dict(resp.user), 'session': _tokens(resp.session)}

    def refresh_session(self, refresh_token: str, owner: str = None) -> Dict[str, Any]:
        """Canjea el refresh token por tokens nuevos."""
        if not refresh_token:
            return {'ok': False, 'error': SESSION_EXPIRED_MESSAGE}
        try:
            resp = self.client_factory().auth.refresh_session(refresh_token)
        except AuthError as e:
            log_error('auth:refresh', e, owner)
            return {'ok': False, 'error': SESSION_EXPIRED_MESSAGE}
        if resp.session is None:
            return {'ok': False, 'error': SESSION_EXPIRED_MESSAGE}
        return {'ok': True, 'session': _tokens(resp.session)}

    def sign_out(self, owner: str = None, access_token: str = None) -> Dict[str, Any]:
        """
        Revoca la sesión de este usuario en el proveedor (solo la actual).
        La sesión de Flask la limpia quien llama.
        """
        if access_token:
            try:
                self.client_factory().auth.admin.sign_out(access_token, 'local')
            except AuthError as e:
                log_error('auth:sign_out', e, owner)
        if self.audit_service and owner:
            self.audit_service.log_user_logout(owner)
        return {'ok': True}
