"""Static sample data served by the mock endpoint."""
from __future__ import annotations

from typing import Any, Dict, List

from .schemas import AdminUser, Material

MATERIALS_TABLE = "Materiales"
TOKEN_PREFIX = "mock-jwt-token-"

# (id, sku, descripcion, categoria, unidad, costo_ref, stock_actual, stock_minimo, proveedor_principal)
_MATERIAL_ROWS = (
    ("1", "MAT001", "Cemento Portland Tipo I", "Construcción", "Bolsa", 25.50, 100, 20, "Cementos Lima"),
    ("2", "MAT002", 'Fierro de Construcción 1/2"', "Construcción", "Varilla", 35.00, 50, 10, "Aceros Arequipa"),
    ("3", "MAT003", "Ladrillo King Kong 18 huecos", "Construcción", "Unidad", 0.85, 5, 100, "Ladrillera Norte"),
    ("4", "MAT004", "Arena Gruesa", "Agregados", "m³", 45.00, 0, 5, "Agregados del Sur"),
    ("5", "MAT005", "Pintura Látex Blanco", "Acabados", "Galón", 85.00, 15, 5, "Pinturas Tekno"),
)


def list_materials(now_iso: str) -> List[Dict[str, Any]]:
    """Return the five sample materials stamped with ``now_iso``."""
    materials: list[Dict[str, Any]] = []
    for mid, sku, desc, cat, unit, cost, stock, stock_min, supplier in _MATERIAL_ROWS:
        materials.append(
            Material(
                id=mid,
                sku=sku,
                descripcion=desc,
                categoria=cat,
                unidad=unit,
                costo_ref=cost,
                stock_actual=stock,
                stock_minimo=stock_min,
                proveedor_principal=supplier,
                activo=True,
                fecha_creacion=now_iso,
                fecha_actualizacion=now_iso,
            ).model_dump()
        )
    return materials


def admin_user(email: str) -> Dict[str, Any]:
    return AdminUser(id="1", email=email, nombre="Administrador", rol="admin", activo=True).model_dump()
