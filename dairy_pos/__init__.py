# ==============================================================================
# DAIRY POS - Punto de venta para una lechería
# ==============================================================================
# Catálogo con precio fijo o por peso/volumen, carrito, facturas en PDF,
# enlaces de WhatsApp, panel, repartos y respaldo.
#
#   from dairy_pos.main import app
# ==============================================================================

__version__ = '1.0.0'
