"""Models for LibreLinkUp API requests and responses."""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator


class LibreModel(BaseModel):
    """Base for wire models: server keys are camelCase/PascalCase, unknown keys are ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AuthTicket(LibreModel):
    """Bearer credential issued on login and rotated on every connections fetch."""

    token: SecretStr = Field(..., description="Bearer token for API calls")
    duration: int = Field(0, description="Ticket lifetime in seconds")
    expires: int = Field(0, description="Expiry as unix epoch seconds")

    def has_token(self) -> bool:
        """A non-empty token may still be valid; expiry is only discovered by a failed request."""
        return bool(self.token.get_secret_value())


class UserIdentity(LibreModel):
    """Patient-account identity returned by login."""

    id: str = Field(..., description="Opaque account identifier")
    email: Optional[str] = Field(None, description="Account email")
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class Sensor(LibreModel):
    device_id: Optional[str] = Field(None, alias="deviceId")
    sn: Optional[str] = None


class GlucoseMeasurement(LibreModel):
    """Raw measurement snapshot as reported by the server."""

    factory_timestamp: Optional[str] = Field(None, alias="FactoryTimestamp")
    timestamp: Optional[str] = Field(None, alias="Timestamp")
    type: int = 0
    value_in_mg_per_dl: int = Field(..., alias="ValueInMgPerDl")
    trend_arrow: int = Field(0, alias="TrendArrow")
    trend_message: Optional[str] = Field(None, alias="TrendMessage")
    measurement_color: int = Field(0, alias="MeasurementColor")
    glucose_units: int = Field(0, alias="GlucoseUnits")
    value: float = Field(0.0, alias="Value")
    is_high: bool = Field(False, alias="isHigh")
    is_low: bool = Field(False, alias="isLow")

    @field_validator("factory_timestamp", "timestamp", mode="before")
    @classmethod
    def coerce_timestamp_to_str(cls, value: Any) -> Any:
        """Timestamps arrive either as formatted strings or as epoch-millisecond numbers."""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(int(value))
        return value


class Connection(LibreModel):
    """A linked patient/monitoring relationship."""

    id: Optional[str] = None
    patient_id: Optional[str] = Field(None, alias="patientId")
    country: Optional[str] = None
    status: int = 0
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    sensor: Optional[Sensor] = None
    glucose_measurement: Optional[GlucoseMeasurement] = Field(None, alias="glucoseMeasurement")
    glucose_item: Optional[GlucoseMeasurement] = Field(None, alias="glucoseItem")


class ErrorDetail(LibreModel):
    message: Optional[str] = None


class LibreLinkUpResult(LibreModel):
    """Common response envelope; status 0 means success."""

    status: int
    error: Optional[ErrorDetail] = None

    @property
    def ok(self) -> bool:
        return self.status == 0

    @property
    def error_message(self) -> Optional[str]:
        return self.error.message if self.error else None


class LoginData(LibreModel):
    user: Optional[UserIdentity] = None
    auth_ticket: Optional[AuthTicket] = Field(None, alias="authTicket")


class LoginResult(LibreLinkUpResult):
    data: Optional[LoginData] = None


class ConnectionsResult(LibreLinkUpResult):
    data: List[Connection] = Field(default_factory=list)
    ticket: Optional[AuthTicket] = None


class LoginRequest(LibreModel):
    email: str
    password: SecretStr

    def to_payload(self) -> dict:
        return {"email": self.email, "password": self.password.get_secret_value()}
