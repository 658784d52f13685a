"""Report decoder - turns a Monit XML status document into a MonitReport.

Monit has shipped several layouts of the same document over the years:
fields appear either as attributes (``<service name="x" type="3">``) or as
child elements (``<service type="3"><name>x</name>``), services may sit
directly under ``<monit>`` or inside ``<services>``, and process metrics may
or may not be wrapped in ``<process>``. The decoder accepts all of them.

Repeated elements are always read with ``findall`` so one ``<service>`` and
twenty decode the same way. Numeric-looking text becomes int or float; a
numeric field holding anything else is treated as missing and gets its
default from the report models.
"""
import logging
import math
import re
import xml.etree.ElementTree as ET
from typing import Callable, Dict, List, Optional, Union

from ..errors import MalformedPayload
from ..schemas.report import (
    Credentials,
    EventDescriptor,
    FileDescriptors,
    FilesystemPayload,
    HostDescriptor,
    HttpdInfo,
    LoadAverage,
    MemoryUsage,
    MonitReport,
    PlatformInfo,
    PortPayload,
    ProcessPayload,
    ProgramPayload,
    ServiceDescriptor,
    ServiceGroupDescriptor,
    ServiceKind,
    SystemCpu,
    SystemPayload,
    SYSTEM_CPU_FIELDS,
)

logger = logging.getLogger(__name__)

_INT_RE = re.compile(r"^[-+]?\d+$")
_FLOAT_RE = re.compile(r"^[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?$")

# Range of the BIGINT columns integer fields are stored in
BIGINT_MIN = -(2 ** 63)
BIGINT_MAX = 2 ** 63 - 1

Scalar = Union[int, float, str]


def coerce(text: Optional[str]) -> Optional[Scalar]:
    """Convert numeric-looking text to int or float, leave other text alone."""
    if text is None:
        return None
    value = text.strip()
    if _INT_RE.match(value):
        return int(value)
    if _FLOAT_RE.match(value):
        return float(value)
    return value


def _lookup(elem: Optional[ET.Element], name: str) -> Optional[str]:
    """Read a field from an attribute or, failing that, a child element."""
    if elem is None:
        return None
    if name in elem.attrib:
        return elem.attrib[name]
    child = elem.find(name)
    if child is None or child.text is None:
        return None
    return child.text.strip()


def _str(elem: Optional[ET.Element], name: str) -> Optional[str]:
    return _lookup(elem, name)


def _int(elem: Optional[ET.Element], name: str) -> Optional[int]:
    value = coerce(_lookup(elem, name))
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (int, float)):
        value = int(value)
        # Integers that do not fit a BIGINT column count as missing
        if BIGINT_MIN <= value <= BIGINT_MAX:
            return value
    return None


def _float(elem: Optional[ET.Element], name: str) -> Optional[float]:
    value = coerce(_lookup(elem, name))
    if isinstance(value, (int, float)):
        return float(value)
    return None


def _bool(elem: Optional[ET.Element], name: str) -> Optional[bool]:
    value = _lookup(elem, name)
    if value is None:
        return None
    return value.lower() in ("1", "true", "yes", "on")


def _present(**fields) -> dict:
    """Keep only the fields found in the document."""
    return {key: value for key, value in fields.items() if value is not None}


def _first(elem: ET.Element, *paths: str) -> Optional[ET.Element]:
    for path in paths:
        found = elem.find(path)
        if found is not None:
            return found
    return None


def _all(elem: ET.Element, *paths: str) -> List[ET.Element]:
    """Collect elements from every path, in document order per path."""
    found = []
    for path in paths:
        found.extend(elem.findall(path))
    return found


def parse_document(payload: Union[bytes, str]) -> ET.Element:
    """Parse raw XML and check that it is a Monit document."""
    try:
        root = ET.fromstring(payload)
    except ET.ParseError as e:
        raise MalformedPayload(f"XML parsing error: {e}") from e
    if root.tag != "monit":
        raise MalformedPayload(f"Unexpected root element <{root.tag}>, expected <monit>")
    return root


def decode_host(root: ET.Element) -> HostDescriptor:
    """Extract the agent and platform description."""
    server = root.find("server")
    httpd = server.find("httpd") if server is not None else None
    credentials = server.find("credentials") if server is not None else None
    platform = root.find("platform")

    monit_id = _str(root, "id") or _str(server, "id")
    incarnation = _int(root, "incarnation")
    if incarnation is None:
        incarnation = _int(server, "incarnation")
    version = _str(root, "version") or _str(server, "version")

    return HostDescriptor(**_present(
        localhostname=_str(server, "localhostname"),
        monit_id=monit_id,
        incarnation=incarnation,
        control_file=_str(server, "controlfile"),
        description=_str(server, "description"),
        httpd=HttpdInfo(**_present(
            address=_str(httpd, "address"),
            port=_int(httpd, "port"),
            ssl=_bool(httpd, "ssl"),
        )),
        credentials=Credentials(**_present(
            username=_str(credentials, "username"),
            password=_str(credentials, "password"),
        )),
        poll=_int(server, "poll"),
        start_delay=_int(server, "startdelay"),
        uptime=_float(server, "uptime"),
        version=version,
        platform=PlatformInfo(**_present(
            name=_str(platform, "name"),
            release=_str(platform, "release"),
            version=_str(platform, "version"),
            machine=_str(platform, "machine"),
            cpu=_int(platform, "cpu"),
            memory=_int(platform, "memory"),
            swap=_int(platform, "swap"),
        )),
    ))


def _memory(elem: Optional[ET.Element]) -> MemoryUsage:
    return MemoryUsage(**_present(
        percent=_float(elem, "percent"),
        kilobyte=_float(elem, "kilobyte"),
    ))


def _decode_system(service: ET.Element) -> Optional[SystemPayload]:
    system = service.find("system")
    if system is None:
        return None
    load = system.find("load")
    cpu = system.find("cpu")
    return SystemPayload(
        load=LoadAverage(**_present(
            avg01=_float(load, "avg01"),
            avg05=_float(load, "avg05"),
            avg15=_float(load, "avg15"),
        )),
        cpu=SystemCpu(**_present(**{field: _float(cpu, field) for field in SYSTEM_CPU_FIELDS})),
        memory=_memory(system.find("memory")),
        swap=_memory(system.find("swap")),
    )


def _decode_process(service: ET.Element) -> ProcessPayload:
    # Older agents wrap process data in <process>, current ones do not
    process = service.find("process")
    if process is None:
        process = service
    return ProcessPayload(**_present(
        pid=_int(process, "pid"),
        ppid=_int(process, "ppid"),
        uptime=_int(process, "uptime"),
        children=_int(process, "children"),
        memory=_memory(process.find("memory")),
        cpu_percent=_float(process.find("cpu"), "percent"),
    ))


def _decode_filesystem(service: ET.Element) -> Optional[FilesystemPayload]:
    block = service.find("block")
    if block is None:
        return None
    return FilesystemPayload(**_present(
        percent=_float(block, "percent"),
        usage=_float(block, "usage"),
        total=_float(block, "total"),
    ))


def _decode_program(service: ET.Element) -> Optional[ProgramPayload]:
    program = service.find("program")
    if program is None:
        return None
    return ProgramPayload(**_present(
        started=_int(program, "started"),
        status=_int(program, "status"),
        output=_str(program, "output"),
    ))


def _decode_port(service: ET.Element) -> Optional[PortPayload]:
    port = _first(service, "port", "unix")
    if port is None:
        return None
    return PortPayload(**_present(
        hostname=_str(port, "hostname"),
        portnumber=_int(port, "portnumber"),
        request=_str(port, "request"),
        protocol=_str(port, "protocol"),
        type=_str(port, "type"),
        responsetime=_float(port, "responsetime"),
    ))


_PAYLOAD_DECODERS: Dict[ServiceKind, Callable[[ET.Element], object]] = {
    ServiceKind.SYSTEM: _decode_system,
    ServiceKind.PROCESS: _decode_process,
    ServiceKind.FILESYSTEM: _decode_filesystem,
    ServiceKind.PROGRAM: _decode_program,
    ServiceKind.HOST: _decode_port,
}


def decode_service(service: ET.Element) -> ServiceDescriptor:
    """Extract one service with its kind-specific payload."""
    descriptor = ServiceDescriptor(**_present(
        name=_str(service, "name"),
        type=_int(service, "type"),
        status=_int(service, "status"),
        status_hint=_int(service, "status_hint"),
        monitor=_int(service, "monitor"),
        monitor_mode=_int(service, "monitormode"),
        on_reboot=_int(service, "onreboot"),
        collected_sec=_int(service, "collected_sec"),
        collected_usec=_int(service, "collected_usec"),
    ))

    decoder = _PAYLOAD_DECODERS.get(descriptor.kind)
    if decoder is not None:
        descriptor.payload = decoder(service)

    filedescriptors = _first(service, "filedescriptors", "system/filedescriptors")
    if filedescriptors is not None:
        descriptor.filedescriptors = FileDescriptors(**_present(
            allocated=_int(filedescriptors, "allocated"),
            unused=_int(filedescriptors, "unused"),
            maximum=_int(filedescriptors, "maximum"),
        ))
    return descriptor


def decode_event(event: ET.Element) -> EventDescriptor:
    return EventDescriptor(**_present(
        service=_str(event, "service"),
        type=_int(event, "type"),
        id=_int(event, "id"),
        state=_int(event, "state"),
        action=_int(event, "action"),
        message=_str(event, "message"),
        collected_sec=_int(event, "collected_sec"),
        collected_usec=_int(event, "collected_usec"),
    ))


def decode_group(group: ET.Element) -> ServiceGroupDescriptor:
    members = [m.text.strip() for m in group.findall("service") if m.text and m.text.strip()]
    return ServiceGroupDescriptor(**_present(
        name=_str(group, "name"),
        services=members,
    ))


def decode_report(payload: Union[bytes, str]) -> MonitReport:
    """Decode a raw Monit report.

    Raises:
        MalformedPayload: If the payload is not well-formed XML or its root
            is not <monit>. Missing fields never raise.
    """
    root = parse_document(payload)

    report = MonitReport(
        host=decode_host(root),
        services=[decode_service(s) for s in _all(root, "service", "services/service")],
        events=[decode_event(e) for e in _all(root, "event", "events/event")],
        groups=[decode_group(g) for g in _all(root, "servicegroups/servicegroup", "servicegroup")],
    )
    logger.debug(
        f"Decoded report from {report.host.localhostname}: "
        f"{len(report.services)} services, {len(report.events)} events, {len(report.groups)} groups"
    )
    return report
