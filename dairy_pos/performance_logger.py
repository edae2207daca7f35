# ==============================================================================
# SISTEMA DE PROFILING Y LOG DE ERRORES
# ==============================================================================
# Tiempos de rutas y de funciones clave, escritos como bloques legibles en
# la carpeta de logs:
#   performance.log      una entrada por petición
#   slow_routes.log      peticiones sobre el umbral
#   slow_functions.log   checkout y PDF sobre el umbral
#   errors.log           fallos de persistencia devueltos al usuario
#
# POS_ENABLE_PROFILING=0 apaga los tiempos; errors.log se escribe siempre.
# ==============================================================================

import os
import time
import threading
from collections import defaultdict
from datetime import datetime
from functools import wraps

from dairy_pos import config

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════

ENABLE_PROFILING = config.profiling_enabled()

# Umbrales en ms
SLOW_MS = 300
CRITICAL_MS = 700

LOGS_DIR = config.get_logs_dir()
os.makedirs(LOGS_DIR, exist_ok=True)

PERFORMANCE_LOG = os.path.join(LOGS_DIR, 'performance.log')
SLOW_ROUTES_LOG = os.path.join(LOGS_DIR, 'slow_routes.log')
SLOW_FUNCTIONS_LOG = os.path.join(LOGS_DIR, 'slow_functions.log')
ERRORS_LOG = os.path.join(LOGS_DIR, 'errors.log')

# Nombre humano por regla de Flask
ACTIONS = {
    'GET /api/session': 'Ver sesión',
    'GET /api/setup': 'Ver configuración pendiente',
    'POST /api/auth/signup': 'Crear cuenta',
    'POST /api/auth/login': 'Iniciar sesión',
    'POST /api/auth/logout': 'Cerrar sesión',

    'GET /api/products': 'Ver productos',
    'POST /api/products': 'Crear producto',
    'PUT /api/products/<product_id>': 'Editar producto',
    'DELETE /api/products/<product_id>': 'Eliminar producto',

    'GET /api/customers': 'Ver clientes',
    'POST /api/customers': 'Crear cliente',
    'PUT /api/customers/<customer_id>': 'Editar cliente',
    'DELETE /api/customers/<customer_id>': 'Eliminar cliente',

    'GET /api/cart': 'Ver carrito',
    'POST /api/cart/add': 'Agregar al carrito',
    'POST /api/cart/update': 'Cambiar cantidad',
    'POST /api/cart/remove': 'Quitar del carrito',
    'POST /api/cart/clear': 'Vaciar carrito',
    'POST /api/checkout': 'Confirmar venta',

    'GET /api/bills': 'Ver facturas',
    'GET /api/bills/<invoice_no>/pdf': 'Descargar factura PDF',
    'GET /api/bills/<invoice_no>/reminder': 'Recordatorio de pago',
    'GET /invoice/<invoice_no>': 'Ver factura',

    'GET /api/dashboard': 'Ver panel principal',
    'GET /api/marketing/recipients': 'Ver destinatarios',
    'POST /api/marketing/links': 'Generar enlaces WhatsApp',
    'GET /api/shop': 'Ver tienda',
    'PUT /api/shop': 'Guardar tienda',

    'GET /api/deliveries': 'Ver repartos',
    'POST /api/deliveries': 'Registrar reparto',

    'GET /api/backup/export': 'Exportar respaldo',
    'POST /api/backup/import': 'Restaurar respaldo',
    'POST /api/migrate': 'Migrar datos locales',
}

# {funcion: {calls, total_ms, max_ms}}
_timings = defaultdict(lambda: {'calls': 0, 'total_ms': 0.0, 'max_ms': 0.0})
_timings_lock = threading.Lock()
_file_lock = threading.Lock()

RULE = '─' * 40


# ═══════════════════════════════════════════════════════════════════════════
# ESCRITURA
# ═══════════════════════════════════════════════════════════════════════════

def _append(path, header, fields):
    """
    Agrega un bloque al log:

        <header> 2024-10-05 10:30:00
        ────────────────
        Campo: valor
        ────────────────
    """
    stamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
    body = '\n'.join(f"{label}: {value}" for label, value in fields)
    block = f"\n{header} {stamp}\n{RULE}\n{body}\n{RULE}\n"
    try:
        with _file_lock, open(path, 'a', encoding='utf-8') as f:
            f.write(block)
    except OSError:
        pass  # sin log, la petición sigue


def _level(ms):
    """('🔴', 'CRITICAL') / ('⚠️', 'WARNING') / None según los umbrales."""
    if ms >= CRITICAL_MS:
        return '🔴', 'CRITICAL'
    if ms >= SLOW_MS:
        return '⚠️', 'WARNING'
    return None


def action_name(method, path, rule=None):
    for key in (f"{method} {rule}" if rule else None, f"{method} {path}"):
        if key in ACTIONS:
            return ACTIONS[key]
    return f"{method} {path}"


def log_request(method, path, rule, ms, owner=None):
    """Registra una petición y, si fue lenta, también en slow_routes.log."""
    fields = [
        ('Acción', action_name(method, path, rule)),
        ('Usuario', owner or 'anónimo'),
        ('Ruta', f"{method} {path}"),
        ('Tiempo', f"{ms:.0f} ms"),
    ]
    _append(PERFORMANCE_LOG, '[PERFORMANCE]', fields)

    level = _level(ms)
    if level:
        emoji, tag = level
        limit = CRITICAL_MS if tag == 'CRITICAL' else SLOW_MS
        fields[-1] = ('Tiempo', f"{ms:.0f} ms (umbral: {limit} ms)")
        _append(SLOW_ROUTES_LOG, f"{emoji} [{tag}]", fields)


def log_error(context, error, owner=None):
    """
    Registra un fallo en errors.log antes de devolverlo al usuario.

    Args:
        context: Operación que falló (p. ej. "checkout:stock")
        error: Excepción o texto
        owner: Dueño de los datos (opcional)
    """
    _append(ERRORS_LOG, '🔴 [ERROR]', [
        ('Operación', context),
        ('Usuario', owner or 'anónimo'),
        ('Error', error),
    ])
    print(f"[ERROR] {context}: {error}")


# ═══════════════════════════════════════════════════════════════════════════
# HOOKS DE FLASK
# ═══════════════════════════════════════════════════════════════════════════

def init_profiling(app):
    """
    Cronometra cada petición de la app (before/after request).
    No hace nada con el profiling desactivado.
    """
    if not ENABLE_PROFILING:
        return

    from flask import g, request, session

    @app.before_request
    def _start_clock():
        g.request_started = time.perf_counter()

    @app.after_request
    def _stop_clock(response):
        started = getattr(g, 'request_started', None)
        if started is None or request.path.startswith('/static'):
            return response
        ms = (time.perf_counter() - started) * 1000
        rule = str(request.url_rule) if request.url_rule else None
        log_request(request.method, request.path, rule, ms, session.get('owner'))
        return response


# ═══════════════════════════════════════════════════════════════════════════
# FUNCIONES CLAVE
# ═══════════════════════════════════════════════════════════════════════════

def profile_function(func=None, name=None):
    """
    Mide cada llamada de la función decorada: acumula llamadas, tiempo
    total y máximo, y anota en slow_functions.log las que pasan el umbral.

    Uso:
        @profile_function
        def render(): ...

        @profile_function(name="Checkout del carrito")
        def checkout(): ...
    """
    def decorator(fn):
        if not ENABLE_PROFILING:
            return fn
        label = name or fn.__name__

        @wraps(fn)
        def timed(*args, **kwargs):
            started = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                ms = (time.perf_counter() - started) * 1000
                with _timings_lock:
                    entry = _timings[label]
                    entry['calls'] += 1
                    entry['total_ms'] += ms
                    entry['max_ms'] = max(entry['max_ms'], ms)
                level = _level(ms)
                if level:
                    _append(SLOW_FUNCTIONS_LOG, f"{level[0]} [{level[1]}]", [
                        ('Función', label),
                        ('Tiempo', f"{ms:.0f} ms"),
                    ])

        return timed

    return decorator(func) if func is not None else decorator


def get_function_stats():
    """{funcion: {calls, avg_ms, max_ms}} de las funciones medidas."""
    with _timings_lock:
        return {
            label: {
                'calls': t['calls'],
                'avg_ms': round(t['total_ms'] / t['calls'], 2) if t['calls'] else 0,
                'max_ms': round(t['max_ms'], 2),
            }
            for label, t in _timings.items()
        }


def reset_stats():
    with _timings_lock:
        _timings.clear()


__all__ = [
    'ENABLE_PROFILING',
    'init_profiling',
    'profile_function',
    'log_request',
    'log_error',
    'get_function_stats',
    'reset_stats',
]
