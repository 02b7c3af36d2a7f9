"""Configuration and catalog models for serial and remote-shell transports."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator

from termgate.shared.enums import AuthMethod, FlowControl, Parity

VALID_STOP_BITS: tuple[float, ...] = (1, 1.5, 2)


class SerialConfig(BaseModel):
    """Settings for opening one serial device.

    Doubles as the params model of the ``connect`` control action; every field
    except ``port`` has a default.
    """

    model_config = {"frozen": True}

    port: str = Field(min_length=1)
    baud_rate: int = Field(default=115200, gt=0)
    data_bits: int = Field(default=8, ge=5, le=8)
    stop_bits: float = 1
    parity: Parity = Parity.NONE
    flow_control: FlowControl = FlowControl.NONE
    read_timeout: float = Field(default=0.1, gt=0)

    @field_validator("stop_bits")
    @classmethod
    def _check_stop_bits(cls, value: float) -> float:
        if value not in VALID_STOP_BITS:
            raise ValueError(f"stop_bits must be one of {VALID_STOP_BITS}, got {value}")
        return value


class RemoteShellConfig(BaseModel):
    """Settings for one SSH shell; also the params model of ``connect_remote``."""

    model_config = {"frozen": True}

    host: str = Field(min_length=1)
    port: int = Field(default=22, ge=1, le=65535)
    username: str = Field(min_length=1)
    auth_method: AuthMethod = AuthMethod.PASSWORD

    # Password / keyboard-interactive
    password: str | None = None

    # Public key: PEM text or a file path, optionally encrypted
    private_key: str | None = None
    private_key_path: str | None = None
    private_key_passphrase: str | None = None

    # Terminal
    terminal_type: str = "xterm-256color"
    cols: int = Field(default=80, ge=1)
    rows: int = Field(default=24, ge=1)

    connect_timeout: int = Field(default=30, gt=0)

    @model_validator(mode="after")
    def _check_credentials(self) -> RemoteShellConfig:
        if self.auth_method == AuthMethod.PUBLIC_KEY and not (self.private_key or self.private_key_path):
            raise ValueError("publickey authentication needs private_key or private_key_path")
        return self


class PortInfo(BaseModel):
    """One entry of the serial device catalog."""

    model_config = {"frozen": True}

    name: str
    description: str
    is_usb: bool = False
    vid: str | None = None
    pid: str | None = None
    serial_number: str | None = None
