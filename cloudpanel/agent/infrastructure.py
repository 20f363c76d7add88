"""
Cloud Console Agent - Infrastructure Agent

Collects live telemetry from the local host by shelling out to standard
utilities and executes operator-supplied commands. Operations are independent
of each other and never raise: a failed query is logged and the result falls
back to zero-valued defaults.
"""

import asyncio
import platform
import sys
import time
from typing import List, Optional

import psutil
import structlog

from cloudpanel.config import settings

from . import parsers
from .models import (
    CommandResult,
    ContainerInfo,
    CpuMetrics,
    DiskMetrics,
    MemoryMetrics,
    NetworkMetrics,
    ProcessInfo,
    ResourceMetrics,
    ServiceActionResult,
    ServiceInfo,
    SystemInfo,
)
from .runner import CommandError, check_output, run_command, run_shell

logger = structlog.get_logger(__name__)


class InfrastructureAgent:
    """Host-local telemetry and command execution shim."""

    def __init__(
        self,
        disk_path: Optional[str] = None,
        net_dev_path: str = "/proc/net/dev",
        query_timeout: Optional[float] = None,
    ):
        self.disk_path = disk_path or settings.agent_disk_path
        self.net_dev_path = net_dev_path
        self.query_timeout = query_timeout or settings.agent_query_timeout

    def _process_uptime(self) -> float:
        try:
            return round(time.time() - psutil.Process().create_time(), 2)
        except psutil.Error:
            return 0.0

    async def get_system_info(self) -> SystemInfo:
        """Get hostname, platform, agent uptime and load averages."""
        try:
            hostname = await check_output(["hostname"], self.query_timeout)
            uptime = await check_output(["uptime"], self.query_timeout)

            return SystemInfo(
                hostname=hostname.strip(),
                platform=sys.platform,
                arch=platform.machine(),
                uptime=self._process_uptime(),
                load_average=parsers.parse_load_average(uptime),
            )
        except Exception as e:
            logger.error("Error getting system info", error=str(e))
            return SystemInfo(
                hostname="unknown",
                platform=sys.platform,
                arch=platform.machine(),
                uptime=self._process_uptime(),
            )

    async def get_resource_metrics(self) -> ResourceMetrics:
        """Collect CPU, memory, disk and network metrics concurrently."""
        cpu, memory, disk, network = await asyncio.gather(
            self.get_cpu_metrics(),
            self.get_memory_metrics(),
            self.get_disk_metrics(),
            self.get_network_metrics(),
        )
        return ResourceMetrics(cpu=cpu, memory=memory, disk=disk, network=network)

    async def get_cpu_metrics(self) -> CpuMetrics:
        try:
            top = await check_output(["top", "-bn1"], self.query_timeout)
            usage = parsers.parse_top_cpu_usage(top)

            lscpu = await check_output(["lscpu"], self.query_timeout)
            nproc = await check_output(["nproc"], self.query_timeout)

            return CpuMetrics(
                usage=usage,
                cores=parsers.parse_nproc(nproc),
                model=parsers.parse_lscpu_model(lscpu),
            )
        except Exception as e:
            logger.error("Error getting CPU metrics", error=str(e))
            return CpuMetrics()

    async def get_memory_metrics(self) -> MemoryMetrics:
        try:
            output = await check_output(["free", "-b"], self.query_timeout)
            return parsers.parse_free_memory(output)
        except Exception as e:
            logger.error("Error getting memory metrics", error=str(e))
            return MemoryMetrics()

    async def get_disk_metrics(self) -> DiskMetrics:
        try:
            output = await check_output(["df", "-B1", self.disk_path], self.query_timeout)
            return parsers.parse_df_disk(output)
        except Exception as e:
            logger.error("Error getting disk metrics", path=self.disk_path, error=str(e))
            return DiskMetrics()

    async def get_network_metrics(self) -> NetworkMetrics:
        try:
            with open(self.net_dev_path, "r") as f:
                content = f.read()
            return parsers.parse_proc_net_dev(content)
        except Exception as e:
            logger.error("Error getting network metrics", error=str(e))
            return NetworkMetrics()

    async def get_running_processes(self, limit: int = 10) -> List[ProcessInfo]:
        """Get the top processes by CPU usage."""
        try:
            output = await check_output(["ps", "aux", "--sort=-%cpu"], self.query_timeout)
            return parsers.parse_ps_aux(output, limit)
        except Exception as e:
            logger.error("Error getting running processes", error=str(e))
            return []

    async def get_system_services(self) -> List[ServiceInfo]:
        """List active and failed systemd services."""
        try:
            output = await check_output([
                "systemctl", "list-units",
                "--type=service",
                "--state=active,failed",
                "--no-pager",
                "--no-legend",
                "--plain"
            ], self.query_timeout)
        except Exception as e:
            logger.error("Error getting system services", error=str(e))
            return []

        unit_states = {}
        try:
            unit_files = await check_output([
                "systemctl", "list-unit-files",
                "--type=service",
                "--no-pager",
                "--no-legend"
            ], self.query_timeout)
            unit_states = parsers.parse_unit_file_states(unit_files)
        except CommandError as e:
            logger.warning("Unit file states unavailable", error=str(e))

        return parsers.parse_systemctl_units(output, settings.agent_service_limit, unit_states)

    async def execute_command(self, command: str, timeout: Optional[int] = None) -> CommandResult:
        """Run an operator-supplied command line. `timeout` is in milliseconds."""
        timeout_ms = timeout or settings.agent_command_timeout_ms

        try:
            result = await run_shell(command, timeout_ms / 1000)
        except Exception as e:
            logger.error("Command execution failed", command=command, error=str(e))
            return CommandResult(
                stdout="",
                stderr=str(e) or "Command execution failed",
                success=False,
                exit_code=-1,
            )

        returncode = result["returncode"]
        stderr = result["stderr"].strip()
        if returncode != 0 and not stderr:
            stderr = f"Command failed with exit code {returncode}"

        logger.info("Command executed", command=command, exit_code=returncode, duration_ms=result["duration_ms"])

        return CommandResult(
            stdout=result["stdout"].strip(),
            stderr=stderr,
            success=returncode == 0,
            exit_code=returncode,
            duration_ms=result["duration_ms"],
        )

    async def restart_service(self, service_name: str) -> ServiceActionResult:
        """Restart a systemd service."""
        if not parsers.is_valid_service_name(service_name):
            return ServiceActionResult(success=False, message=f"Invalid service name: {service_name}")

        cmd = ["systemctl", "restart", service_name]
        if settings.agent_use_sudo:
            cmd = ["sudo", "-n"] + cmd

        result = await run_command(cmd, timeout=settings.agent_command_timeout_ms / 1000)

        if result["returncode"] == 0:
            logger.info("Service restarted", service=service_name)
            return ServiceActionResult(success=True, message=f"Service {service_name} restarted successfully")

        logger.error("Service restart failed", service=service_name, stderr=result["stderr"])
        return ServiceActionResult(
            success=False,
            message=result["stderr"].strip() or "Failed to restart service"
        )

    async def check_port_availability(self, port: int) -> bool:
        """Check whether nothing is listening on `port`."""
        for cmd in (["netstat", "-tuln"], ["ss", "-tuln"]):
            try:
                output = await check_output(cmd, self.query_timeout)
            except CommandError:
                continue
            return port not in parsers.parse_listening_ports(output)

        # Assume available when neither tool can run
        return True

    async def get_docker_containers(self) -> List[ContainerInfo]:
        """List running Docker containers."""
        try:
            output = await check_output(
                ["docker", "ps", "--format", parsers.DOCKER_PS_FORMAT],
                self.query_timeout
            )
            return parsers.parse_docker_ps(output)
        except Exception as e:
            # Docker might not be installed or the daemon unreachable
            logger.debug("Docker containers unavailable", error=str(e))
            return []


# Global agent instance
agent = InfrastructureAgent()
