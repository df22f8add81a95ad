"""Pydantic schemas for the mock API request/response contracts."""
import json
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Request schemas
class ApiRequest(BaseModel):
    """Merged query/body parameters of one call to the endpoint.

    Identity fields are plain strings. ``data`` and ``filters`` are the only
    structured fields: a string that looks like JSON is decoded, and kept
    as-is when it does not decode. Anything else is carried through as a
    record field.
    """

    model_config = ConfigDict(extra="allow")

    token: Optional[str] = None
    action: Optional[str] = None
    table: Optional[str] = None
    operation: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    id: Optional[str] = None
    data: Any = None
    filters: Any = None

    @field_validator("token", "action", "table", "operation", "email", "password", "id", mode="before")
    @classmethod
    def _to_str(cls, v: Any) -> Any:
        if v is None or isinstance(v, str):
            return v
        if isinstance(v, (bool, dict, list)):
            return json.dumps(v)
        return str(v)

    @field_validator("data", "filters", mode="before")
    @classmethod
    def _decode_json_string(cls, v: Any) -> Any:
        if isinstance(v, str) and v[:1] in ("{", "["):
            try:
                return json.loads(v)
            except ValueError:
                return v
        return v

    @property
    def record_fields(self) -> Dict[str, Any]:
        """Fields outside the declared schema, e.g. material columns on create."""
        return dict(self.model_extra or {})


# Domain models
class AdminUser(BaseModel):
    id: str
    email: str
    nombre: str
    rol: str
    activo: bool = True


class Material(BaseModel):
    id: str
    sku: str
    descripcion: str
    categoria: str
    unidad: str
    costo_ref: float
    stock_actual: int
    stock_minimo: int
    proveedor_principal: str
    activo: bool = True
    fecha_creacion: str
    fecha_actualizacion: str


class AuthPayload(BaseModel):
    user: AdminUser
    token: str = Field(..., description="Fake session token, prefix plus epoch millis")
    message: str = "Login successful"


# Response schemas
class SuccessEnvelope(BaseModel):
    ok: Literal[True] = True
    data: Any
    timestamp: str


class ErrorEnvelope(BaseModel):
    ok: Literal[False] = False
    message: str
    status: int
    timestamp: str


Envelope = Union[SuccessEnvelope, ErrorEnvelope]
