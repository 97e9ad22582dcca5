"""Shared configuration schemas."""

from typing import Any, Dict
from urllib.parse import quote

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from shared_lib.errors import ConfigValidationError
from shared_lib.url_validation import validate_ddns_target

DEFAULT_INTERVAL = 300
MIN_INTERVAL = 60
MAX_INTERVAL = 7 * 24 * 60 * 60
DEFAULT_HEALTH_PORT = 8080
DEFAULT_CHECK_IP_URL = "https://api.ipify.org"

_http_url = TypeAdapter(HttpUrl)


class AgentConfig(BaseModel):
    """One snapshot of the agent configuration file."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    user: str = ""
    password: str = Field(default="", alias="pass")
    ddns: str = ""
    interval: int = Field(default=DEFAULT_INTERVAL, le=MAX_INTERVAL)
    health_port: int = Field(default=DEFAULT_HEALTH_PORT, ge=0, le=65535)
    check_ip_url: str = DEFAULT_CHECK_IP_URL

    @field_validator("interval")
    @classmethod
    def normalize_interval(cls, value: int) -> int:
        # Short intervals are replaced, not rejected.
        if value < MIN_INTERVAL:
            return DEFAULT_INTERVAL
        return value

    def check_required(self) -> None:
        problems = [
            f"{name} is missing"
            for name, value in (
                ("user", self.user),
                ("pass", self.password),
                ("ddns", self.ddns),
            )
            if not value
        ]
        if self.ddns:
            try:
                validate_ddns_target(self.ddns)
            except ValueError as exc:
                problems.append(f"ddns: {exc}")
        try:
            _http_url.validate_python(self.check_ip_url)
        except ValidationError as exc:
            problems.append(f"check_ip_url: {exc.errors()[0]['msg']}")
        if problems:
            raise ConfigValidationError(problems)

    def update_url(self, ip_address: str) -> str:
        return "https://{user}:{password}@{ddns}?myip={ip}".format(
            user=quote(self.user, safe=""),
            password=quote(self.password, safe=""),
            ddns=self.ddns,
            ip=ip_address,
        )

    def describe(self) -> Dict[str, Any]:
        """Return a log-safe view of the config with the password masked."""
        return {
            "user": self.user or "<empty>",
            "pass": "<set>" if self.password else "<empty>",
            "ddns": self.ddns or "<empty>",
            "interval": self.interval,
            "health_port": self.health_port,
            "check_ip_url": self.check_ip_url,
        }
