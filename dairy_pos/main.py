from flask import Flask, g, request, session, send_file, Response
from functools import wraps
from werkzeug.utils import secure_filename
import os
import io
import json
import uuid
import time
import datetime

from dairy_pos import config
from dairy_pos.repositories import RepositoryError

# Sistema de profiling interno
from dairy_pos.performance_logger import init_profiling, log_error

# Sistema de backups automáticos
from dairy_pos.services.backup_service import run_startup_backup

# ═══════════════════════════════════════════════════════════════════════════
# CONTENEDOR DE DEPENDENCIAS - Servicios y Repositorios
# ═══════════════════════════════════════════════════════════════════════════
# La lógica de negocio vive en services/, no en las rutas. Cambiar de
# backend (JSON local / Supabase) no afecta las rutas.
# ═══════════════════════════════════════════════════════════════════════════
from dairy_pos.app_container import get_container

app = Flask(__name__)

# ═══════════════════════════════════════════════════════════════════════════
# INICIALIZAR SISTEMA DE PROFILING
# ═══════════════════════════════════════════════════════════════════════════
# Mide rendimiento de rutas y funciones. Logs en POS_LOGS_DIR.
# Para desactivar: POS_ENABLE_PROFILING=0
init_profiling(app)

# ═══════════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN DE SESIONES
# ═══════════════════════════════════════════════════════════════════════════════
# SECRET_KEY: En producción DEBE definirse via variable de entorno
# Comando: export POS_SECRET_KEY="tu_clave_secreta_muy_larga_y_aleatoria"
app.secret_key = config.get_secret_key()

app.config.update(
    SESSION_COOKIE_HTTPONLY=True,      # Protege contra XSS
    SESSION_COOKIE_SECURE=False,       # False para HTTP local (True solo para HTTPS)
    SESSION_COOKIE_SAMESITE='Lax',     # Protección CSRF básica
    SESSION_COOKIE_DOMAIN=None,        # None = acepta cualquier dominio/IP
    PERMANENT_SESSION_LIFETIME=86400,  # 24 horas
)

# Límite de subida (archivos de respaldo)
app.config['MAX_CONTENT_LENGTH'] = 5 * 1024 * 1024  # 5 MB

MUTATING_METHODS = ('POST', 'PUT', 'DELETE')

# Claves de la sesión de Flask que pertenecen al usuario de Supabase
AUTH_SESSION_KEYS = ('owner', 'email', 'access_token', 'refresh_token', 'expires_at')

# Se renueva el token si vence en menos de esto (segundos)
TOKEN_REFRESH_MARGIN = 60


# ═══════════════════════════════════════════════════════════════════════════════
# ARRANQUE
# ═══════════════════════════════════════════════════════════════════════════════

def startup():
    """
    Tareas de arranque:
    - Aviso si falta configuración de Supabase
    - Modo offline: backup diario y catálogo por defecto en instalación nueva
    """
    container = get_container()
    if container.setup_error:
        print(f"[ADVERTENCIA] {container.setup_error}")
        return
    if container.is_online:
        return

    run_startup_backup(container.data_dir)
    if container.is_new_install and not container.inventory_service.list_products(config.LOCAL_OWNER):
        seeded = container.inventory_service.seed_defaults(config.LOCAL_OWNER)
        print(f"[INICIO] Catálogo por defecto cargado ({len(seeded)} productos)")


startup()


# ═══════════════════════════════════════════════════════════════════════════════
# SESIÓN, SEGURIDAD Y RESPUESTAS
# ═══════════════════════════════════════════════════════════════════════════════

def current_owner():
    """
    Dueño de la sesión actual.
    En modo offline todas las sesiones pertenecen a 'local'.
    """
    container = get_container()
    if not container.is_online:
        if session.get('owner') != config.LOCAL_OWNER:
            session['owner'] = config.LOCAL_OWNER
        return config.LOCAL_OWNER
    # Sin token las consultas irían como anónimo
    if not session.get('access_token'):
        return None
    return session.get('owner')


def clear_auth_session():
    for key in AUTH_SESSION_KEYS:
        session.pop(key, None)
    g.pop('supabase_client', None)


@app.before_request
def refresh_auth_session():
    """Modo online: renueva el token de Supabase antes de que venza."""
    container = get_container()
    if not container.is_online or container.setup_error or not session.get('refresh_token'):
        return None
    if (session.get('expires_at') or 0) > time.time() + TOKEN_REFRESH_MARGIN:
        return None

    result = container.auth_service.refresh_session(session['refresh_token'], session.get('owner'))
    if result.get('ok'):
        session.update(result['session'])
        g.pop('supabase_client', None)
    else:
        clear_auth_session()
    return None


def login_required(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        container = get_container()
        if container.setup_error:
            return {"ok": False, "error": container.setup_error, "setup_required": True}, 503
        if not current_owner():
            return {"ok": False, "error": "Please sign in."}, 401
        return f(*args, **kwargs)
    return wrapper


def offline_only(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if get_container().is_online:
            return {"ok": False, "error": "Only available in offline mode."}, 400
        return f(*args, **kwargs)
    return wrapper


def online_only(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        container = get_container()
        if container.setup_error:
            return {"ok": False, "error": container.setup_error, "setup_required": True}, 503
        if not container.is_online:
            return {"ok": False, "error": "Only available with the Supabase backend."}, 400
        return f(*args, **kwargs)
    return wrapper


def generate_csrf_token():
    if 'csrf_token' not in session:
        session['csrf_token'] = uuid.uuid4().hex
    return session['csrf_token']


def verify_csrf(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if request.method in MUTATING_METHODS:
            token = session.get('csrf_token')
            # Check multiple sources for CSRF token
            form_token = (
                request.form.get('csrf_token') or
                request.headers.get('X-CSRF-Token') or
                request.headers.get('X-CSRFToken')  # Common JS naming
            )
            # Also check JSON body for AJAX calls
            if not form_token and request.is_json:
                json_data = request.get_json(silent=True) or {}
                form_token = json_data.get('csrf_token')

            if not token or not form_token or token != form_token:
                return {"ok": False, "error": "Invalid CSRF token"}, 403
        return f(*args, **kwargs)
    return wrapper


@app.after_request
def set_security_headers(response):
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'
    response.headers['Permissions-Policy'] = 'geolocation=(), microphone=()'
    # NOTA: HSTS solo en producción con HTTPS real
    if request.is_secure:
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    return response


def json_body():
    return request.get_json(silent=True) or {}


def respond(result, status=200):
    """
    Convierte el resultado de un servicio en respuesta JSON.
    ok=False -> 400, o 502 si falló la persistencia.
    """
    if result.get('ok'):
        return result, status
    if result.get('error_type') == 'persistence':
        return result, 502
    return result, 400


def public_origin():
    return config.get_public_origin() or request.host_url.rstrip('/')


def internal_error(context, e):
    """
    Excepción que escapó de un servicio.
    Fallos de persistencia (lecturas del backend) -> 502, el resto -> 500.
    """
    log_error(context, e, session.get('owner'))
    if isinstance(e, RepositoryError):
        return {"ok": False, "error": str(e), "error_type": "persistence"}, 502
    return {"ok": False, "error": f"Internal error: {str(e)}"}, 500


# ═══════════════════════════════════════════════════════════════════════════════
# SESIÓN Y AUTENTICACIÓN
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/api/session", methods=["GET"])
def api_session():
    container = get_container()
    if container.setup_error:
        return {"ok": False, "error": container.setup_error, "setup_required": True}, 503
    return {
        "ok": True,
        "backend": container.backend,
        "owner": current_owner(),
        "email": session.get("email"),
        "csrf_token": generate_csrf_token(),
    }


@app.route("/api/setup", methods=["GET"])
def api_setup():
    container = get_container()
    return {
        "ok": not container.setup_error,
        "backend": container.backend,
        "setup_required": bool(container.setup_error),
        "error": container.setup_error,
    }


@app.route("/api/auth/signup", methods=["POST"])
@online_only
@verify_csrf
def api_auth_signup():
    try:
        data = json_body()
        result = get_container().auth_service.sign_up(data.get("email"), data.get("password"))
        return respond(result)
    except Exception as e:
        return internal_error('auth:signup', e)


@app.route("/api/auth/login", methods=["POST"])
@online_only
@verify_csrf
def api_auth_login():
    try:
        data = json_body()
        container = get_container()
        result = container.auth_service.sign_in(data.get("email"), data.get("password"))
        if not result.get("ok"):
            return result, 401

        user = result["user"]
        csrf_token = session.get("csrf_token")
        session.clear()
        g.pop("supabase_client", None)
        session["owner"] = user["id"]
        session["email"] = user.get("email")
        session.update(result.pop("session"))
        if csrf_token:
            session["csrf_token"] = csrf_token

        # Migración única de los datos locales
        result["migration"] = container.migration_service.migrate_local_to_remote(user["id"])
        return result
    except Exception as e:
        return internal_error('auth:login', e)


@app.route("/api/auth/logout", methods=["POST"])
@online_only
@verify_csrf
def api_auth_logout():
    try:
        get_container().auth_service.sign_out(session.get("owner"), session.get("access_token"))
        clear_auth_session()
        session.pop("cart", None)
        return {"ok": True}
    except Exception as e:
        return internal_error('auth:logout', e)


# ═══════════════════════════════════════════════════════════════════════════════
# PRODUCTOS
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/api/products", methods=["GET", "POST"])
@login_required
@verify_csrf
def api_products():
    try:
        inventory = get_container().inventory_service
        owner = current_owner()
        if request.method == "POST":
            return respond(inventory.save_product(owner, json_body()), 201)

        query = request.args.get("q", "")
        products = inventory.search_products(owner, query)
        return {
            "ok": True,
            "products": [p.to_dict() for p in products],
            "low_stock": [p.id for p in products if p.is_low_stock],
        }
    except Exception as e:
        return internal_error('products', e)


@app.route("/api/products/<product_id>", methods=["PUT", "DELETE"])
@login_required
@verify_csrf
def api_product_detail(product_id):
    try:
        inventory = get_container().inventory_service
        owner = current_owner()
        if request.method == "DELETE":
            return respond(inventory.delete_product(owner, product_id))
        if inventory.get_product(owner, product_id) is None:
            return {"ok": False, "error": "Product not found"}, 404
        return respond(inventory.save_product(owner, json_body(), product_id))
    except Exception as e:
        return internal_error('products:detail', e)


# ═══════════════════════════════════════════════════════════════════════════════
# CLIENTES
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/api/customers", methods=["GET", "POST"])
@login_required
@verify_csrf
def api_customers():
    try:
        customers = get_container().customer_service
        owner = current_owner()
        if request.method == "POST":
            return respond(customers.save_customer(owner, json_body()), 201)
        return {"ok": True, "customers": [c.to_dict() for c in customers.list_customers(owner)]}
    except Exception as e:
        return internal_error('customers', e)


@app.route("/api/customers/<customer_id>", methods=["PUT", "DELETE"])
@login_required
@verify_csrf
def api_customer_detail(customer_id):
    try:
        customers = get_container().customer_service
        owner = current_owner()
        if request.method == "DELETE":
            return respond(customers.delete_customer(owner, customer_id))
        result = customers.save_customer(owner, json_body(), customer_id)
        if result.get("error") == "Customer not found":
            return result, 404
        return respond(result)
    except Exception as e:
        return internal_error('customers:detail', e)


# ═══════════════════════════════════════════════════════════════════════════════
# CARRITO Y CHECKOUT
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/api/cart", methods=["GET"])
@login_required
def api_cart():
    """Ver contenido actual del carrito"""
    try:
        return {"ok": True, "cart": get_container().cart_service.get_cart()}
    except Exception as e:
        return internal_error('cart', e)


@app.route("/api/cart/add", methods=["POST"])
@login_required
@verify_csrf
def api_cart_add():
    """
    Body JSON:
    {"product_id": "...", "qty": 2}                     precio fijo
    {"product_id": "...", "quantity_text": "250gm"}     por unidad, texto libre
    {"product_id": "...", "value": 500, "unit": "ml"}   por unidad, explícito
    """
    try:
        data = json_body()
        result = get_container().cart_service.add_item(
            current_owner(),
            str(data.get("product_id") or ""),
            qty=data.get("qty", 1),
            quantity_text=data.get("quantity_text"),
            value=data.get("value"),
            unit=data.get("unit"),
        )
        if result.get("error") == "Product not found":
            return result, 404
        return respond(result)
    except Exception as e:
        return internal_error('cart:add', e)


@app.route("/api/cart/update", methods=["POST"])
@login_required
@verify_csrf
def api_cart_update():
    try:
        data = json_body()
        result = get_container().cart_service.update_quantity(
            current_owner(), str(data.get("product_id") or ""), data.get("qty", 1)
        )
        return respond(result)
    except Exception as e:
        return internal_error('cart:update', e)


@app.route("/api/cart/remove", methods=["POST"])
@login_required
@verify_csrf
def api_cart_remove():
    """Eliminar una línea del carrito"""
    try:
        data = json_body()
        result = get_container().cart_service.remove_item(
            str(data.get("product_id") or ""), data.get("purchase_unit")
        )
        return respond(result)
    except Exception as e:
        return internal_error('cart:remove', e)


@app.route("/api/cart/clear", methods=["POST"])
@login_required
@verify_csrf
def api_cart_clear():
    """Vaciar el carrito"""
    try:
        return get_container().cart_service.clear_cart()
    except Exception as e:
        return internal_error('cart:clear', e)


@app.route("/api/checkout", methods=["POST"])
@login_required
@verify_csrf
def api_checkout():
    """
    Confirmar carrito y crear la factura.
    SIEMPRE devuelve JSON.

    Body JSON opcional:
    {
        "customer_name": "...",
        "customer_phone": "...",
        "religion": "...",
        "general": true,
        "status": "Paid" | "Pending",
        "due_date": "YYYY-MM-DD",
        "discount": 10
    }

    Respuesta (ok): bill, invoice_no, total, pdf_url, share_link
    Si la factura quedó guardada pero falló el stock, el carrito también
    se vacía y la respuesta incluye bill + unreconciled_products.
    """
    try:
        container = get_container()
        cart = container.cart_service
        owner = current_owner()
        data = json_body()

        result = container.checkout_service.checkout(
            owner,
            cart.get_lines(),
            customer_name=data.get("customer_name", ""),
            customer_phone=data.get("customer_phone", ""),
            status=data.get("status") or "Paid",
            due_date=data.get("due_date") or None,
            discount=data.get("discount", 0),
            religion=data.get("religion", ""),
            general=data.get("general", True) not in (False, "false", "0", 0),
        )

        # La factura existe: no se puede volver a cobrar el mismo carrito
        if result.get("ok") or result.get("bill"):
            cart.clear_cart()

        if result.get("bill"):
            invoice_no = result["bill"]["invoice_no"]
            result["pdf_url"] = f"/api/bills/{invoice_no}/pdf"
            bill = container.bill_service.get_bill(owner, invoice_no)
            if bill is not None:
                result["share_link"] = container.messaging_service.invoice_share_link(bill, public_origin())

        return respond(result)
    except Exception as e:
        return internal_error('checkout', e)


# ═══════════════════════════════════════════════════════════════════════════════
# FACTURAS
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/api/bills", methods=["GET"])
@login_required
def api_bills():
    try:
        bills = get_container().bill_service.list_bills(current_owner())
        status = request.args.get("status")
        if status:
            bills = [b for b in bills if b.status.value == status]
        return {"ok": True, "bills": [b.to_dict() for b in bills]}
    except Exception as e:
        return internal_error('bills', e)


def _bill_pdf_response(invoice_no, as_attachment):
    container = get_container()
    owner = current_owner()
    bill = container.bill_service.get_bill(owner, invoice_no)
    if bill is None:
        return {"ok": False, "error": "Bill not found"}, 404
    shop = container.shop_service.get_shop(owner)
    pdf = container.checkout_service.render_pdf(bill, shop)
    return send_file(
        io.BytesIO(pdf),
        mimetype='application/pdf',
        as_attachment=as_attachment,
        download_name=secure_filename(f"{bill.invoice_no}.pdf"),
    )


@app.route("/api/bills/<invoice_no>/pdf", methods=["GET"])
@login_required
def api_bill_pdf(invoice_no):
    try:
        return _bill_pdf_response(invoice_no, as_attachment=True)
    except Exception as e:
        return internal_error('bills:pdf', e)


@app.route("/invoice/<invoice_no>", methods=["GET"])
@login_required
def invoice_page(invoice_no):
    """Enlace compartido por WhatsApp: PDF en el navegador."""
    try:
        return _bill_pdf_response(invoice_no, as_attachment=False)
    except Exception as e:
        return internal_error('invoice', e)


@app.route("/api/bills/<invoice_no>/reminder", methods=["GET"])
@login_required
def api_bill_reminder(invoice_no):
    try:
        container = get_container()
        bill = container.bill_service.get_bill(current_owner(), invoice_no)
        if bill is None:
            return {"ok": False, "error": "Bill not found"}, 404
        return respond(container.messaging_service.payment_reminder_link(bill, public_origin()))
    except Exception as e:
        return internal_error('bills:reminder', e)


# ═══════════════════════════════════════════════════════════════════════════════
# PANEL, MARKETING Y TIENDA
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/api/dashboard", methods=["GET"])
@login_required
def api_dashboard():
    try:
        stats = get_container().stats_service.dashboard(current_owner())
        return dict(stats, ok=True)
    except Exception as e:
        return internal_error('dashboard', e)


@app.route("/api/marketing/recipients", methods=["GET"])
@login_required
def api_marketing_recipients():
    try:
        segment = get_container().messaging_service.segment(current_owner(), request.args.get("tag"))
        return dict(segment, ok=True)
    except Exception as e:
        return internal_error('marketing:recipients', e)


@app.route("/api/marketing/links", methods=["POST"])
@login_required
@verify_csrf
def api_marketing_links():
    try:
        data = json_body()
        result = get_container().messaging_service.marketing_links(
            current_owner(), data.get("tag"), data.get("message")
        )
        return respond(result)
    except Exception as e:
        return internal_error('marketing:links', e)


@app.route("/api/shop", methods=["GET", "PUT"])
@login_required
@verify_csrf
def api_shop():
    try:
        shop_service = get_container().shop_service
        owner = current_owner()
        if request.method == "PUT":
            return respond(shop_service.update_shop(owner, json_body()))
        return {"ok": True, "shop": shop_service.get_shop(owner).to_dict()}
    except Exception as e:
        return internal_error('shop', e)


# ═══════════════════════════════════════════════════════════════════════════════
# REPARTOS
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/api/deliveries", methods=["GET", "POST"])
@login_required
@verify_csrf
def api_deliveries():
    try:
        deliveries = get_container().delivery_service
        owner = current_owner()
        if request.method == "POST":
            data = json_body()
            result = deliveries.record_delivery(
                owner,
                data.get("customer_name"),
                data.get("customer_phone"),
                data.get("products") or [],
                data.get("date") or None,
            )
            return respond(result, 201)
        return {"ok": True, "deliveries": [d.to_dict() for d in deliveries.list_deliveries(owner)]}
    except Exception as e:
        return internal_error('deliveries', e)


# ═══════════════════════════════════════════════════════════════════════════════
# RESPALDO Y MIGRACIÓN
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/api/backup/export", methods=["GET"])
@login_required
@offline_only
def api_backup_export():
    try:
        state = get_container().backup_service.export_state(current_owner())
        stamp = datetime.datetime.now().strftime('%Y%m%d-%H%M%S')
        return Response(
            json.dumps(state, indent=2, ensure_ascii=False),
            mimetype='application/json',
            headers={'Content-Disposition': f'attachment; filename=govinda-backup-{stamp}.json'},
        )
    except Exception as e:
        return internal_error('backup:export', e)


@app.route("/api/backup/import", methods=["POST"])
@login_required
@offline_only
@verify_csrf
def api_backup_import():
    """Acepta el archivo en el campo `file` o el documento JSON como body."""
    try:
        upload = request.files.get("file")
        raw = upload.read() if upload else request.get_data()
        result = get_container().backup_service.import_state(current_owner(), raw)
        if result.get("ok"):
            session.pop("cart", None)
        return respond(result)
    except Exception as e:
        return internal_error('backup:import', e)


@app.route("/api/migrate", methods=["POST"])
@online_only
@login_required
@verify_csrf
def api_migrate():
    try:
        result = get_container().migration_service.migrate_local_to_remote(current_owner())
        return respond(result)
    except Exception as e:
        return internal_error('migrate', e)


if __name__ == "__main__":
    # Configuración para desarrollo local y acceso desde red WiFi
    # En producción usar WSGI (gunicorn)
    DEBUG = os.environ.get('FLASK_DEBUG', '0') == '1'
    HOST = os.environ.get('FLASK_HOST', '0.0.0.0')  # Escucha en todas las interfaces
    PORT = int(os.environ.get('FLASK_PORT', 5000))

    if not DEBUG:
        print(f"\n{'='*50}")
        print(f"  Servidor iniciado en http://{HOST}:{PORT}")
        print(f"  Acceso local: http://localhost:{PORT}")
        print(f"  Backend: {get_container().backend}")
        print(f"{'='*50}\n")

    app.run(debug=DEBUG, host=HOST, port=PORT)
