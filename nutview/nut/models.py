"""
Data models for NUT (Network UPS Tools) integration.

This module defines the Pydantic models for representing and validating
connection parameters and UPS data polled from the NUT server.
"""

from datetime import datetime, timezone
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import Settings, settings

# NUT variable names projected into named DeviceSummary fields.
WELL_KNOWN_VARIABLES = (
    "ups.status",
    "ups.model",
    "ups.mfr",
    "ups.serial",
    "ups.type",
    "ups.load",
    "ups.realpower",
    "battery.charge",
    "battery.runtime",
    "battery.voltage",
    "input.voltage",
    "output.voltage",
    "input.frequency",
    "output.frequency",
)


class ConnectionParameters(BaseModel):
    """
    Where and how to connect to a NUT server.

    An empty username skips authentication, an empty password skips the
    PASSWORD step.
    """

    model_config = ConfigDict(frozen=True, hide_input_in_errors=True)

    host: str
    port: int = Field(3493, ge=0, le=65535)
    username: str = ""
    password: str = Field("", repr=False)

    @field_validator("username", "password")
    @classmethod
    def single_line(cls, v: str) -> str:
        # Sent verbatim as USERNAME/PASSWORD arguments
        if "\n" in v or "\r" in v:
            raise ValueError("must not contain line breaks")
        return v

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "ConnectionParameters":
        return cls(
            host=config.NUT_HOST,
            port=config.NUT_PORT,
            username=config.NUT_USERNAME,
            password=config.NUT_PASSWORD,
        )


class DeviceRecord(BaseModel):
    """A UPS as announced by LIST UPS."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""


class DeviceSummary(BaseModel):
    """
    High-level view of a UPS' most common values.

    All fields are optional as they may not be available from all UPS devices.
    Every variable without a named field ends up in ``extra``, sorted by name.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ups_name: str

    status: Optional[str] = Field(None, alias="ups.status")
    model: Optional[str] = Field(None, alias="ups.model")
    manufacturer: Optional[str] = Field(None, alias="ups.mfr")
    serial: Optional[str] = Field(None, alias="ups.serial")
    ups_type: Optional[str] = Field(None, alias="ups.type")

    load_percent: Optional[str] = Field(None, alias="ups.load")
    realpower_watts: Optional[str] = Field(None, alias="ups.realpower")

    battery_charge_percent: Optional[str] = Field(None, alias="battery.charge")
    battery_runtime_seconds: Optional[str] = Field(None, alias="battery.runtime")
    battery_voltage: Optional[str] = Field(None, alias="battery.voltage")

    input_voltage: Optional[str] = Field(None, alias="input.voltage")
    output_voltage: Optional[str] = Field(None, alias="output.voltage")
    input_frequency_hz: Optional[str] = Field(None, alias="input.frequency")
    output_frequency_hz: Optional[str] = Field(None, alias="output.frequency")

    extra: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def from_variables(cls, ups_name: str, variables: Mapping[str, str]) -> "DeviceSummary":
        """
        Project a LIST VAR table into a summary.

        Args:
            ups_name: The name of the UPS the table belongs to.
            variables: Variable name to value mapping.
        """
        remaining = dict(variables)
        known = {key: remaining.pop(key) for key in WELL_KNOWN_VARIABLES if key in remaining}
        return cls.model_validate(
            {"ups_name": ups_name, **known, "extra": tuple(sorted(remaining.items()))}
        )

    def to_variables(self) -> Dict[str, str]:
        """Rebuild the variable table this summary was projected from."""
        table: Dict[str, str] = {}
        for name, field in type(self).model_fields.items():
            value = getattr(self, name)
            if field.alias in WELL_KNOWN_VARIABLES and value is not None:
                table[field.alias] = value
        table.update(self.extra)
        return table


class PollSnapshot(BaseModel):
    """
    The variable tables of every known UPS, captured in one poll tick.

    The tables are read-only views, so a snapshot cannot change after it
    has been published.
    """

    model_config = ConfigDict(frozen=True)

    taken_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    devices: Tuple[DeviceRecord, ...]
    variables: Mapping[str, Mapping[str, str]]

    @field_validator("variables")
    @classmethod
    def read_only_tables(cls, v: Mapping[str, Mapping[str, str]]) -> Mapping[str, Mapping[str, str]]:
        return MappingProxyType({name: MappingProxyType(dict(table)) for name, table in v.items()})

    def summary(self, ups_name: str) -> DeviceSummary:
        """
        Raises:
            KeyError: If the UPS is not part of this snapshot.
        """
        return DeviceSummary.from_variables(ups_name, self.variables[ups_name])

    def summaries(self) -> Dict[str, DeviceSummary]:
        return {device.name: self.summary(device.name) for device in self.devices}
