"""Typed form of a decoded Monit status report.

Field defaults here are the single place where missing report fields are
filled in. The decoder only passes values it actually found.
"""
import time
from enum import IntEnum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator


class ServiceKind(IntEnum):
    """Monit service type codes."""
    FILESYSTEM = 0
    DIRECTORY = 1
    FILE = 2
    PROCESS = 3
    HOST = 4  # remote host, checked through network ports
    SYSTEM = 5
    FIFO = 6
    PROGRAM = 7
    NET = 8


class LoadAverage(BaseModel):
    avg01: Optional[float] = None
    avg05: Optional[float] = None
    avg15: Optional[float] = None


SYSTEM_CPU_FIELDS = ("user", "system", "nice", "wait", "hardirq", "softirq", "steal", "guest", "guestnice")


class SystemCpu(BaseModel):
    """CPU usage split, percent."""
    user: Optional[float] = None
    system: Optional[float] = None
    nice: Optional[float] = None
    wait: Optional[float] = None
    hardirq: Optional[float] = None
    softirq: Optional[float] = None
    steal: Optional[float] = None
    guest: Optional[float] = None
    guestnice: Optional[float] = None


class MemoryUsage(BaseModel):
    percent: Optional[float] = None
    kilobyte: Optional[float] = None


class SystemPayload(BaseModel):
    """Host-wide resource usage (the 'system' service)."""
    kind: Literal["system"] = "system"
    load: LoadAverage = Field(default_factory=LoadAverage)
    cpu: SystemCpu = Field(default_factory=SystemCpu)
    memory: MemoryUsage = Field(default_factory=MemoryUsage)
    swap: MemoryUsage = Field(default_factory=MemoryUsage)


class ProcessPayload(BaseModel):
    kind: Literal["process"] = "process"
    pid: Optional[int] = None
    ppid: Optional[int] = None
    uptime: Optional[int] = None
    children: Optional[int] = None
    memory: MemoryUsage = Field(default_factory=MemoryUsage)
    cpu_percent: Optional[float] = None


class FilesystemPayload(BaseModel):
    kind: Literal["filesystem"] = "filesystem"
    percent: Optional[float] = None
    usage: Optional[float] = None  # MB
    total: Optional[float] = None  # MB


class ProgramPayload(BaseModel):
    kind: Literal["program"] = "program"
    started: Optional[int] = None
    status: Optional[int] = None  # exit code
    output: str = ""


class PortPayload(BaseModel):
    """Result of a network port test."""
    kind: Literal["port"] = "port"
    hostname: str = ""
    portnumber: Optional[int] = None
    request: str = ""
    protocol: str = ""
    type: str = ""
    responsetime: Optional[float] = None  # seconds


ServicePayload = Annotated[
    Union[SystemPayload, ProcessPayload, FilesystemPayload, ProgramPayload, PortPayload],
    Field(discriminator="kind"),
]


class FileDescriptors(BaseModel):
    allocated: Optional[int] = None
    unused: Optional[int] = None
    maximum: Optional[int] = None


class ServiceDescriptor(BaseModel):
    """One <service> element of the report."""
    name: str = "unknown"
    type: int = 0
    status: int = 0
    status_hint: int = 0
    monitor: int = 0
    monitor_mode: int = 0
    on_reboot: int = 0
    collected_sec: Optional[int] = None  # None = use ingestion time
    collected_usec: int = 0
    payload: Optional[ServicePayload] = None
    filedescriptors: FileDescriptors = Field(default_factory=FileDescriptors)

    @property
    def kind(self) -> Optional[ServiceKind]:
        """The service kind, or None for a type code this collector does not know."""
        try:
            return ServiceKind(self.type)
        except ValueError:
            return None


class EventDescriptor(BaseModel):
    """One <event> element of the report."""
    service: str = "unknown"
    type: int = 0
    id: int = 0
    state: int = 0
    action: int = 0
    message: str = ""
    collected_sec: Optional[int] = None  # None = use ingestion time
    collected_usec: int = 0


class ServiceGroupDescriptor(BaseModel):
    name: str = "unknown"
    services: List[str] = Field(default_factory=list)


class HttpdInfo(BaseModel):
    """Where the agent's own HTTP interface listens."""
    address: str = "0.0.0.0"
    port: int = 2812
    ssl: bool = False


class Credentials(BaseModel):
    username: str = ""
    password: str = ""


class PlatformInfo(BaseModel):
    name: str = ""
    release: str = ""
    version: str = ""
    machine: str = ""
    cpu: int = 0
    memory: int = 0  # KB
    swap: int = 0  # KB


class HostDescriptor(BaseModel):
    """The reporting agent and its machine."""
    localhostname: str = "unknown"
    monit_id: str = ""
    incarnation: int = 0
    control_file: str = ""
    description: str = ""
    httpd: HttpdInfo = Field(default_factory=HttpdInfo)
    credentials: Credentials = Field(default_factory=Credentials)
    poll: int = 120
    start_delay: int = 0
    uptime: float = 0
    version: str = ""
    platform: PlatformInfo = Field(default_factory=PlatformInfo)

    @model_validator(mode="after")
    def synthesize_monit_id(self):
        """Agents that do not send an id get one from hostname and time."""
        if not self.monit_id:
            self.monit_id = f"{self.localhostname}-{int(time.time() * 1000)}"
        return self


class MonitReport(BaseModel):
    """A fully decoded report."""
    host: HostDescriptor = Field(default_factory=HostDescriptor)
    services: List[ServiceDescriptor] = Field(default_factory=list)
    events: List[EventDescriptor] = Field(default_factory=list)
    groups: List[ServiceGroupDescriptor] = Field(default_factory=list)
