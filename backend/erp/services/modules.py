from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional
from flask import current_app
from erp.constants.modules import MODULE_CODE_RE, RESERVED_MODULE_PREFIX, IMPLEMENTED_MODULES, MODULE_STATUS_ORDER


@dataclass
class ModuleInfo:
    code: str
    configured: bool
    implemented: bool
    status: str
    title: Optional[str] = None

    def as_dict(self):
        return {
            'code': self.code,
            'title': self.title,
            'configured': self.configured,
            'implemented': self.implemented,
            'status': self.status,
        }


def is_valid_module_code(code: str) -> bool:
    return bool(code) and bool(MODULE_CODE_RE.match(code)) and not code.startswith(RESERVED_MODULE_PREFIX)


def _status(configured: bool, implemented: bool) -> str:
    if configured and implemented:
        return 'available'
    if configured:
        return 'file-missing'
    if implemented:
        return 'not-in-registry'
    return 'unknown'


def build_registry(configured_codes: Iterable[str], implemented: Optional[Dict[str, str]] = None) -> Dict[str, ModuleInfo]:
    """Merge configured codes with server-side handlers; invalid codes are skipped."""
    implemented = IMPLEMENTED_MODULES if implemented is None else implemented
    configured = set()
    for code in configured_codes:
        code_u = str(code).strip().upper()
        if not is_valid_module_code(code_u):
            current_app.logger.warning('[ModuleRegistry] skipping invalid module code %r', code)
            continue
        configured.add(code_u)
    registry: Dict[str, ModuleInfo] = {}
    for code in configured | set(implemented):
        in_cfg = code in configured
        has_handler = code in implemented
        registry[code] = ModuleInfo(code, in_cfg, has_handler, _status(in_cfg, has_handler), implemented.get(code))
    current_app.logger.debug(
        '[ModuleRegistry] total=%d available=%d', len(registry),
        sum(1 for m in registry.values() if m.status == 'available'),
    )
    return registry


def sorted_modules(registry: Dict[str, ModuleInfo]) -> List[ModuleInfo]:
    return sorted(registry.values(), key=lambda m: (MODULE_STATUS_ORDER.get(m.status, 99), m.code))
