# ==============================================================================
# CONFIGURACIÓN
# ==============================================================================
# Lee variables de entorno (y un archivo .env si existe, vía python-dotenv).
#
#   POS_SECRET_KEY        Clave de sesión de Flask
#   SUPABASE_URL          URL del proyecto Supabase
#   SUPABASE_ANON_KEY     API key pública de Supabase
#   POS_BACKEND           local | supabase (por defecto: supabase si hay
#                         credenciales, si no local)
#   POS_DATA_DIR          Carpeta de los archivos JSON (modo local)
#   POS_LOGS_DIR          Carpeta de logs
#   POS_PUBLIC_ORIGIN     Origen para los enlaces /invoice/<no>
#   POS_ENABLE_PROFILING  1/0
# ==============================================================================

import os

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

BACKEND_LOCAL = 'local'
BACKEND_SUPABASE = 'supabase'

# Dueño implícito del modo offline
LOCAL_OWNER = 'local'

# True = avisa si falta la clave secreta
PRODUCTION_MODE = os.environ.get('POS_PRODUCTION_MODE', '1') == '1'

_DEFAULT_SECRET = "dairy_pos_dev_secret_key_change_in_production"


def _flag(name: str, default: str = '1') -> bool:
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


def get_secret_key() -> str:
    secret = os.environ.get('POS_SECRET_KEY')
    if PRODUCTION_MODE and not secret:
        print("[ADVERTENCIA] PRODUCTION_MODE activo sin POS_SECRET_KEY definida")
        print("[ADVERTENCIA] Define la variable de entorno para mayor seguridad")
    return secret or _DEFAULT_SECRET


def get_supabase_url() -> str:
    return (os.environ.get('SUPABASE_URL') or '').strip()


def get_supabase_key() -> str:
    return (os.environ.get('SUPABASE_ANON_KEY') or '').strip()


def is_supabase_configured() -> bool:
    return bool(get_supabase_url() and get_supabase_key())


def get_supabase_config_error():
    """
    Mensaje de configuración faltante, o None si las credenciales existen.
    """
    url, key = get_supabase_url(), get_supabase_key()
    if not url and not key:
        return ('Missing Supabase URL and API key. Please set SUPABASE_URL and '
                'SUPABASE_ANON_KEY in your .env file.')
    if not url:
        return 'Missing Supabase URL. Please set SUPABASE_URL in your .env file.'
    if not key:
        return 'Missing Supabase API key. Please set SUPABASE_ANON_KEY in your .env file.'
    return None


def get_backend() -> str:
    """
    Backend de persistencia solicitado.
    Sin POS_BACKEND se usa Supabase solo si hay credenciales.
    """
    requested = (os.environ.get('POS_BACKEND') or '').strip().lower()
    if requested in (BACKEND_LOCAL, BACKEND_SUPABASE):
        return requested
    return BACKEND_SUPABASE if is_supabase_configured() else BACKEND_LOCAL


def get_data_dir() -> str:
    return os.environ.get('POS_DATA_DIR') or os.path.join(BASE_DIR, 'data')


def get_logs_dir() -> str:
    return os.environ.get('POS_LOGS_DIR') or os.path.join(BASE_DIR, 'logs')


def get_public_origin():
    """Origen público configurado (sin barra final) o None."""
    origin = (os.environ.get('POS_PUBLIC_ORIGIN') or '').strip()
    return origin.rstrip('/') or None


def profiling_enabled() -> bool:
    return _flag('POS_ENABLE_PROFILING', '1')
