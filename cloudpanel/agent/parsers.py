"""
Cloud Console Agent - Output Parsers

Pure functions turning the text output of host utilities into result types.
Parsers raise ValueError when the output does not have the expected shape;
callers decide on the fallback.
"""

import re
from typing import Dict, List, Optional, Set

from .models import (
    ContainerInfo,
    DiskMetrics,
    MemoryMetrics,
    NetworkMetrics,
    ProcessInfo,
    ServiceInfo,
    ServiceStatus,
)

LOAD_AVERAGE_RE = re.compile(r"load average[s]?: ([0-9.]+),?\s*([0-9.]+),?\s*([0-9.]+)")
CPU_FIELD_RE = re.compile(r"([0-9]+(?:[.,][0-9]+)?)\s*%?\s*([a-z]{2})\b")
SERVICE_NAME_RE = re.compile(r"^[\w.@-]+$")

DOCKER_PS_FORMAT = "\t".join([
    "{{.ID}}", "{{.Image}}", "{{.Command}}", "{{.CreatedAt}}",
    "{{.Status}}", "{{.Ports}}", "{{.Names}}",
])


def _to_int(value: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _to_float(value: str) -> float:
    try:
        return float(value.replace(",", "."))
    except (AttributeError, ValueError):
        return 0.0


def _percent(part: int, total: int) -> float:
    return (part / total) * 100 if total > 0 else 0.0


def parse_load_average(uptime_output: str) -> List[float]:
    """Extract the 1/5/15 minute load averages from `uptime` output."""
    match = LOAD_AVERAGE_RE.search(uptime_output)
    if not match:
        return [0.0, 0.0, 0.0]
    return [float(match.group(i)) for i in range(1, 4)]


def parse_top_cpu_usage(top_output: str) -> float:
    """
    Read overall CPU usage from the `Cpu(s)` line of `top -bn1`.

    Usage is 100 minus idle time when idle is reported, otherwise the
    user-space share.
    """
    for line in top_output.splitlines():
        if "Cpu(s)" not in line:
            continue
        _, _, counters = line.partition(":")
        fields = {label: _to_float(value) for value, label in CPU_FIELD_RE.findall(counters)}
        if "id" in fields:
            return round(max(0.0, 100.0 - fields["id"]), 1)
        if "us" in fields:
            return fields["us"]
    raise ValueError("no Cpu(s) line in top output")


def parse_lscpu_model(lscpu_output: str) -> str:
    for line in lscpu_output.splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip() == "Model name" and value.strip():
            return value.strip()
    return "Unknown CPU"


def parse_nproc(nproc_output: str) -> int:
    cores = _to_int(nproc_output.strip())
    return cores if cores > 0 else 1


def parse_free_memory(free_output: str) -> MemoryMetrics:
    """Parse the `Mem:` row of `free -b`."""
    for line in free_output.splitlines():
        if line.startswith("Mem:"):
            parts = line.split()
            total = _to_int(parts[1]) if len(parts) > 1 else 0
            used = _to_int(parts[2]) if len(parts) > 2 else 0
            free = _to_int(parts[3]) if len(parts) > 3 else 0
            return MemoryMetrics(total=total, used=used, free=free, usage=_percent(used, total))
    raise ValueError("no Mem: row in free output")


def parse_df_disk(df_output: str) -> DiskMetrics:
    """
    Parse `df -B1 <path>` output.

    Long device names make df wrap the data row onto a second line, so the
    data lines are joined before splitting.
    """
    lines = [line for line in df_output.splitlines() if line.strip()]
    if len(lines) < 2:
        raise ValueError("no data row in df output")
    parts = " ".join(lines[1:]).split()
    if len(parts) < 4:
        raise ValueError("short df data row")
    total = _to_int(parts[1])
    used = _to_int(parts[2])
    free = _to_int(parts[3])
    return DiskMetrics(total=total, used=used, free=free, usage=_percent(used, total))


def parse_proc_net_dev(content: str) -> NetworkMetrics:
    """Sum /proc/net/dev counters over every interface except loopback."""
    metrics = NetworkMetrics()
    for line in content.splitlines():
        if ":" not in line:
            continue
        iface, _, counters = line.partition(":")
        if iface.strip() == "lo":
            continue
        fields = counters.split()
        if len(fields) < 10:
            continue
        metrics.bytes_received += _to_int(fields[0])
        metrics.packets_received += _to_int(fields[1])
        metrics.bytes_sent += _to_int(fields[8])
        metrics.packets_sent += _to_int(fields[9])
    return metrics


def parse_ps_aux(ps_output: str, limit: int = 10) -> List[ProcessInfo]:
    """Parse `ps aux` rows: USER PID %CPU %MEM VSZ RSS TTY STAT START TIME COMMAND."""
    processes = []
    for line in ps_output.splitlines():
        parts = line.split(None, 10)
        if not parts or parts[0] == "USER":
            continue
        if len(processes) >= limit:
            break
        command = parts[10].split()[0] if len(parts) > 10 and parts[10].strip() else "unknown"
        processes.append(ProcessInfo(
            pid=_to_int(parts[1]) if len(parts) > 1 else 0,
            name=command,
            cpu=_to_float(parts[2]) if len(parts) > 2 else 0.0,
            memory=_to_float(parts[3]) if len(parts) > 3 else 0.0,
            status=parts[7] if len(parts) > 7 else "unknown",
        ))
    return processes


def parse_unit_file_states(output: str) -> Dict[str, str]:
    """Map unit names to their `systemctl list-unit-files` state."""
    states = {}
    for line in output.splitlines():
        parts = line.split()
        if len(parts) >= 2:
            states[parts[0]] = parts[1]
    return states


ENABLED_UNIT_STATES = (
    "enabled", "enabled-runtime", "static", "alias", "generated", "indirect", "transient"
)


def _unit_enabled(unit: str, unit_states: Optional[Dict[str, str]]) -> bool:
    if not unit_states:
        return True
    state = unit_states.get(unit)
    if state is None and "@" in unit:
        # Instances are listed by their template, e.g. getty@.service
        prefix, _, instance = unit.partition("@")
        suffix = instance[instance.rfind("."):] if "." in instance else ""
        state = unit_states.get(prefix + "@" + suffix)
    if state is None:
        # Runtime units have no unit file entry
        return True
    return state in ENABLED_UNIT_STATES


def parse_systemctl_units(
    output: str,
    limit: int = 20,
    unit_states: Optional[Dict[str, str]] = None
) -> List[ServiceInfo]:
    """Parse `systemctl list-units --type=service --no-legend` rows."""
    services = []
    for line in output.splitlines():
        parts = line.split()
        if parts and parts[0] in ("●", "*"):
            parts = parts[1:]
        if not parts:
            continue

        if len(services) >= limit:
            break
        unit = parts[0]
        active = parts[2] if len(parts) > 2 else ""
        if active == "active":
            status = ServiceStatus.ACTIVE
        elif active == "failed":
            status = ServiceStatus.FAILED
        else:
            status = ServiceStatus.INACTIVE

        enabled = _unit_enabled(unit, unit_states)

        services.append(ServiceInfo(
            name=unit[:-len(".service")] if unit.endswith(".service") else unit,
            status=status,
            enabled=enabled,
            description=" ".join(parts[4:]) or None,
        ))
    return services


def parse_docker_ps(output: str) -> List[ContainerInfo]:
    """Parse tab-separated `docker ps --format` rows (see DOCKER_PS_FORMAT)."""
    containers = []
    for line in output.splitlines():
        if not line.strip() or line.startswith("CONTAINER ID"):
            continue
        parts = line.split("\t")
        parts += [""] * (7 - len(parts))
        containers.append(ContainerInfo(
            id=parts[0],
            image=parts[1],
            command=parts[2],
            created=parts[3],
            status=parts[4],
            ports=parts[5],
            name=parts[6],
        ))
    return containers


def parse_listening_ports(output: str) -> Set[int]:
    """
    Collect local ports from `netstat -tuln` or `ss -tuln` output.

    The local address is the first address:port token on each row; the peer
    column of a listening socket always has a `*` port.
    """
    ports = set()
    for line in output.splitlines():
        for token in line.split():
            if ":" not in token:
                continue
            port = token.rsplit(":", 1)[1]
            if port.isdigit():
                ports.add(int(port))
                break
    return ports


def is_valid_service_name(name: str) -> bool:
    return bool(name) and len(name) <= 256 and bool(SERVICE_NAME_RE.match(name))
