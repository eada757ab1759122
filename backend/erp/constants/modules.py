"""Central enum-like definitions for module codes, access levels and screen limits.
Module codes double as collection names (CMAT01, INV01 ...); never rename one silently.
"""
from __future__ import annotations
import re
from typing import Dict

# Ordinal ranking used by every module check
ACCESS_LEVELS: Dict[str, int] = {'r': 1, 'rw': 2, 'admin': 3}
LEVEL_READ = 'r'
LEVEL_READ_WRITE = 'rw'
LEVEL_ADMIN = 'admin'

ADMIN_ROLE_ID = 'admin'
ADMIN_ROLE_LABEL = 'Administrador'
NO_ROLE_LABEL = 'Sin rol asignado'
WILDCARD_MODULE = '*'

MODULE_CODE_RE = re.compile(r'^[A-Z][A-Z0-9]{2,9}$')
RESERVED_MODULE_PREFIX = 'INDEX'

# Modules that have a server-side handler in this package
IMPLEMENTED_MODULES: Dict[str, str] = {
    'CMAT01': 'Catálogo de materiales',
    'INV01': 'Inventario',
    'EMAT01': 'Entrada de materiales',
    'AEMAT01': 'Aprobación de entradas',
    'SMAT01': 'Salida de materiales',
    'ASMAT01': 'Aprobación de salidas',
    'CORD01': 'Órdenes de trabajo',
    'ECOM01': 'Entrada de combustible',
    'SCOM01': 'Salida de combustible',
}

# Registry status priority (lower sorts first)
MODULE_STATUS_ORDER = {'available': 0, 'file-missing': 1, 'not-in-registry': 2, 'unknown': 3}

# Date range screens
INVENTORY_RANGE_MAX_DAYS = 90
FUEL_RANGE_MAX_DAYS = 31

# Fuel quantity validation
FUEL_MAX_LITRES = 50000
FUEL_MAX_DECIMALS = 3

# Default role presets seeded by scripts/seed_defaults.py
ROLE_PRESETS: Dict[str, Dict[str, object]] = {
    'admin': {'label': ADMIN_ROLE_LABEL, 'modules': {WILDCARD_MODULE: LEVEL_ADMIN},
              'description': 'Acceso total al sistema'},
    'bodega': {'label': 'Bodega', 'modules': {
        'CMAT01': 'rw', 'INV01': 'r', 'EMAT01': 'rw', 'SMAT01': 'rw', 'CORD01': 'r'},
        'description': 'Operación de bodega'},
    'supervisor': {'label': 'Supervisor', 'modules': {
        'CMAT01': 'r', 'INV01': 'rw', 'AEMAT01': 'rw', 'ASMAT01': 'rw', 'CORD01': 'rw',
        'ECOM01': 'r', 'SCOM01': 'r'},
        'description': 'Aprobaciones y reportes'},
    'combustible': {'label': 'Combustible', 'modules': {'ECOM01': 'rw', 'SCOM01': 'rw'},
                    'description': 'Recepción y despacho de combustible'},
}
