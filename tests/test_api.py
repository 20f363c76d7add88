"""
Cloud Console - API Tests

Pytest tests for the REST API against a temporary, demo-seeded database.
"""

from unittest.mock import patch, MagicMock, AsyncMock

import pytest

from cloudpanel.agent.models import (
    CommandResult,
    ProcessInfo,
    ResourceMetrics,
    ServiceActionResult,
    SystemInfo,
)
from cloudpanel.services.ai_advisor import AnalysisResult, Prediction, Recommendation


@pytest.fixture
def mock_agent():
    agent = MagicMock()
    agent.get_system_info = AsyncMock(return_value=SystemInfo(
        hostname="web-01", platform="linux", arch="x86_64", uptime=12.5, load_average=[0.1, 0.2, 0.3]
    ))
    agent.get_resource_metrics = AsyncMock(return_value=ResourceMetrics())
    agent.get_running_processes = AsyncMock(return_value=[ProcessInfo(pid=1, name="init", cpu=1.0, memory=0.5, status="Ss")])
    agent.get_system_services = AsyncMock(return_value=[])
    agent.get_docker_containers = AsyncMock(return_value=[])
    agent.execute_command = AsyncMock(return_value=CommandResult(
        stdout="hello", stderr="", success=True, exit_code=0, duration_ms=3
    ))
    agent.restart_service = AsyncMock(return_value=ServiceActionResult(
        success=True, message="Service nginx restarted successfully"
    ))
    agent.check_port_availability = AsyncMock(return_value=False)

    with patch("cloudpanel.routers.agent.agent", agent):
        yield agent


class TestHealthEndpoint:
    def test_health_check(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data
        assert data["version"] == "1.0.0"

    def test_api_root(self, client):
        response = client.get("/api")
        assert response.status_code == 200
        assert response.json()["name"] == "Cloud Console API"


class TestDashboard:
    def test_stats_from_seeded_metrics(self, client):
        response = client.get("/api/dashboard/stats")
        assert response.status_code == 200
        data = response.json()
        assert data["total_servers"] == 24
        assert data["storage_used"] == "2.4TB"
        assert data["storage_percent"] == 75
        assert data["network_traffic"] == "1.2GB/s"
        assert data["health_score"] == "94%"
        assert data["server_growth"] == "0%"
        assert data["alerts_count"] == 3

    def test_alert_count_tracks_unread(self, client):
        client.patch("/api/alerts/1/read")
        assert client.get("/api/dashboard/stats").json()["alerts_count"] == 2


class TestVirtualMachines:
    def test_list_seeded(self, client):
        response = client.get("/api/vms")
        assert response.status_code == 200
        names = {vm["name"] for vm in response.json()}
        assert names == {"vm-prod-01", "vm-dev-02", "vm-backup-03"}

    def test_get_missing(self, client):
        response = client.get("/api/vms/999")
        assert response.status_code == 404
        assert response.json()["detail"] == "Virtual machine not found"

    def test_create(self, client):
        response = client.post("/api/vms", json={
            "name": "vm-web-04",
            "status": "running",
            "template": "Debian 12",
            "cpu_cores": 2,
            "memory": 4,
            "storage": 50,
            "network": "Default Network",
        })
        assert response.status_code == 201
        vm = response.json()
        assert vm["id"] > 3
        assert vm["cpu_usage"] == 0
        assert vm["memory_usage"] == 0
        assert vm["uptime"] == "0d 0h"

        assert client.get(f"/api/vms/{vm['id']}").json()["name"] == "vm-web-04"

    def test_create_invalid(self, client):
        response = client.post("/api/vms", json={"name": "bad", "template": "x", "cpu_cores": 0})
        assert response.status_code == 422

    def test_update(self, client):
        response = client.patch("/api/vms/2", json={"status": "running", "cpu_usage": 12.5})
        assert response.status_code == 200
        vm = response.json()
        assert vm["status"] == "running"
        assert vm["cpu_usage"] == 12.5
        assert vm["name"] == "vm-dev-02"

    def test_create_with_owner(self, client):
        payload = {"name": "vm-owned", "template": "Debian 12", "cpu_cores": 1,
                   "memory": 1, "storage": 10, "network": "Default Network", "user_id": 1}
        response = client.post("/api/vms", json=payload)
        assert response.status_code == 201
        assert response.json()["user_id"] == 1

    def test_create_unknown_owner(self, client):
        payload = {"name": "vm-orphan", "template": "Debian 12", "cpu_cores": 1,
                   "memory": 1, "storage": 10, "network": "Default Network", "user_id": 999}
        response = client.post("/api/vms", json=payload)
        assert response.status_code == 422
        assert response.json()["detail"] == "User not found"
        assert all(vm["name"] != "vm-orphan" for vm in client.get("/api/vms").json())

    @pytest.mark.parametrize("field", ["name", "status", "cpu_cores", "uptime"])
    def test_update_null_field_rejected(self, client, field):
        response = client.patch("/api/vms/1", json={field: None})
        assert response.status_code == 422

        vm = client.get("/api/vms/1").json()
        assert vm["name"] == "vm-prod-01"
        assert vm["status"] == "running"

    def test_update_missing(self, client):
        assert client.patch("/api/vms/999", json={"status": "running"}).status_code == 404

    def test_delete(self, client):
        assert client.delete("/api/vms/3").status_code == 204
        assert client.get("/api/vms/3").status_code == 404
        assert client.delete("/api/vms/3").status_code == 404


class TestAlerts:
    def test_list_and_unread(self, client):
        assert len(client.get("/api/alerts").json()) == 3
        unread = client.get("/api/alerts/unread").json()
        assert len(unread) == 3
        assert all(a["is_read"] is False for a in unread)

    def test_mark_read(self, client):
        response = client.patch("/api/alerts/2/read")
        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert {a["id"] for a in client.get("/api/alerts/unread").json()} == {1, 3}

    def test_mark_read_missing(self, client):
        response = client.patch("/api/alerts/999/read")
        assert response.status_code == 404
        assert response.json()["detail"] == "Alert not found"

    def test_create_manual_alert(self, client):
        response = client.post("/api/alerts", json={
            "type": "info",
            "title": "Maintenance window",
            "message": "Patching tonight",
            "severity": "low",
        })
        assert response.status_code == 201
        assert response.json()["is_read"] is False
        assert len(client.get("/api/alerts").json()) == 4

    def test_create_invalid_severity(self, client):
        response = client.post("/api/alerts", json={
            "type": "info", "title": "x", "message": "y", "severity": "urgent",
        })
        assert response.status_code == 422


class TestAI:
    def test_no_pending_recommendations_initially(self, client):
        assert client.get("/api/ai/recommendations").json() == []

    def test_analyze_without_key_stores_fallback(self, client):
        response = client.post("/api/ai/analyze")
        assert response.status_code == 200
        data = response.json()
        assert data["health_score"] == 85
        assert data["recommendations"][0]["title"] == "Resource Analysis Available"

        pending = client.get("/api/ai/recommendations").json()
        assert [r["title"] for r in pending] == ["Resource Analysis Available"]
        assert pending[0]["status"] == "pending"

    def test_analyze_stores_recommendations(self, client):
        analysis = AnalysisResult(
            recommendations=[
                Recommendation(type="optimization", title="Downsize vm-backup-03",
                               description="Low utilisation", confidence=0.8,
                               priority="low", resource_id=3, resource_type="vm"),
                Recommendation(type="security", title="Apply patches",
                               description="3 servers behind", confidence=0.9, priority="urgent"),
            ],
            health_score=70,
            predictions=[Prediction(metric="storage", timeframe="30 days", prediction="Pool fills")],
        )
        with patch("cloudpanel.routers.ai.ai_advisor.analyze_infrastructure", new=AsyncMock(return_value=analysis)) as mock_analyze:
            response = client.post("/api/ai/analyze")

        assert response.status_code == 200
        vms, metrics, alerts = mock_analyze.await_args.args
        assert len(vms) == 3
        assert metrics["health_score"] == 94
        assert len(alerts) == 3

        pending = {r["title"]: r for r in client.get("/api/ai/recommendations").json()}
        assert pending["Downsize vm-backup-03"]["resource_id"] == 3
        assert pending["Apply patches"]["priority"] == "medium"

    def test_update_recommendation_status(self, client):
        client.post("/api/ai/analyze")
        rec_id = client.get("/api/ai/recommendations").json()[0]["id"]

        response = client.patch(f"/api/ai/recommendations/{rec_id}", json={"status": "dismissed"})
        assert response.status_code == 200
        assert client.get("/api/ai/recommendations").json() == []

    def test_update_recommendation_missing(self, client):
        response = client.patch("/api/ai/recommendations/999", json={"status": "applied"})
        assert response.status_code == 404

    def test_update_recommendation_invalid_status(self, client):
        response = client.patch("/api/ai/recommendations/1", json={"status": "maybe"})
        assert response.status_code == 422

    def test_optimize(self, client):
        with patch(
            "cloudpanel.routers.ai.ai_advisor.generate_optimization_suggestions",
            new=AsyncMock(return_value="Reduce to 2 cores.")
        ) as mock_optimize:
            response = client.post("/api/ai/optimize/1")

        assert response.status_code == 200
        assert response.json() == {"suggestion": "Reduce to 2 cores."}
        assert mock_optimize.await_args.args[0]["name"] == "vm-prod-01"

    def test_optimize_missing_vm(self, client):
        assert client.post("/api/ai/optimize/999").status_code == 404


class TestMetrics:
    def test_current(self, client):
        response = client.get("/api/metrics/current")
        assert response.status_code == 200
        assert response.json()["health_score"] == 94

    def test_history(self, client):
        response = client.get("/api/metrics/history?limit=5")
        assert response.status_code == 200
        assert len(response.json()) == 1

    def test_history_limit_validated(self, client):
        assert client.get("/api/metrics/history?limit=0").status_code == 422

    def test_predict(self, client):
        with patch(
            "cloudpanel.routers.metrics.ai_advisor.predict_resource_needs",
            new=AsyncMock(return_value={"predictions": [{"metric": "cpu"}]})
        ):
            response = client.post("/api/metrics/predict")

        assert response.status_code == 200
        assert response.json() == {"predictions": [{"metric": "cpu"}]}

    def test_predict_without_key(self, client):
        response = client.post("/api/metrics/predict")
        assert response.json() == {"predictions": [], "error": "Unable to generate resource predictions"}


class TestCharts:
    def test_resource_usage(self, client):
        response = client.get("/api/charts/resource-usage")
        assert response.status_code == 200
        assert response.json() == [{"name": "Day 1", "cpu": 65.0, "memory": 58.0, "storage": 75}]

    def test_vm_health(self, client):
        response = client.get("/api/charts/health")
        assert response.status_code == 200
        assert response.json() == [
            {"name": "Healthy", "value": 67},
            {"name": "Warning", "value": 33},
            {"name": "Critical", "value": 0},
        ]

    def test_vm_health_empty_inventory(self, client):
        for vm_id in (1, 2, 3):
            client.delete(f"/api/vms/{vm_id}")
        values = [item["value"] for item in client.get("/api/charts/health").json()]
        assert values == [0, 0, 0]


class TestSettings:
    def test_initially_unset(self, client):
        data = client.get("/api/settings").json()
        assert data["openai_api_key"] == ""
        assert data["openai_api_key_configured"] is False

    def test_store_and_mask_key(self, client):
        response = client.post("/api/settings", json={"openai_api_key": "sk-abcdefghijklmnop"})
        assert response.status_code == 200

        data = client.get("/api/settings").json()
        assert data["openai_api_key"] == "sk-...mnop"
        assert data["openai_api_key_configured"] is True

    def test_empty_key_keeps_stored_value(self, client):
        client.post("/api/settings", json={"openai_api_key": "sk-abcdefghijklmnop"})
        client.post("/api/settings", json={"openai_api_key": ""})
        assert client.get("/api/settings").json()["openai_api_key_configured"] is True

        client.post("/api/settings", json={"openai_api_key": "   "})
        client.post("/api/settings", json={"openai_api_key": "\t\n"})
        settings_view = client.get("/api/settings").json()
        assert settings_view["openai_api_key_configured"] is True
        assert settings_view["openai_api_key"] == "sk-...mnop"

    def test_test_openai_without_key(self, client):
        response = client.post("/api/settings/test-openai")
        assert response.status_code == 400
        assert response.json()["detail"] == "OpenAI API key not configured"

    def test_test_openai_success(self, client):
        client.post("/api/settings", json={"openai_api_key": "sk-abcdefghijklmnop"})
        with patch(
            "cloudpanel.routers.app_settings.ai_advisor.test_connection",
            new=AsyncMock(return_value="gpt-4o")
        ) as mock_test:
            response = client.post("/api/settings/test-openai")

        assert response.status_code == 200
        assert response.json() == {"success": True, "model": "gpt-4o", "message": "Connection successful"}
        mock_test.assert_awaited_once_with("sk-abcdefghijklmnop")

    def test_test_openai_failure(self, client):
        client.post("/api/settings", json={"openai_api_key": "sk-abcdefghijklmnop"})
        with patch(
            "cloudpanel.routers.app_settings.ai_advisor.test_connection",
            new=AsyncMock(side_effect=RuntimeError("Incorrect API key provided"))
        ):
            response = client.post("/api/settings/test-openai")

        assert response.status_code == 400
        assert response.json()["detail"] == "Incorrect API key provided"


class TestAgentEndpoints:
    def test_system_info(self, client, mock_agent):
        response = client.get("/api/agent/system-info")
        assert response.status_code == 200
        assert response.json()["hostname"] == "web-01"
        assert response.json()["load_average"] == [0.1, 0.2, 0.3]

    def test_metrics(self, client, mock_agent):
        data = client.get("/api/agent/metrics").json()
        assert data["cpu"]["model"] == "Unknown CPU"
        assert data["network"]["bytes_received"] == 0

    def test_processes_limit(self, client, mock_agent):
        response = client.get("/api/agent/processes?limit=5")
        assert response.status_code == 200
        assert response.json()[0]["name"] == "init"
        mock_agent.get_running_processes.assert_awaited_once_with(5)

    def test_services_and_docker_empty(self, client, mock_agent):
        assert client.get("/api/agent/services").json() == []
        assert client.get("/api/agent/docker").json() == []

    def test_command_requires_command(self, client, mock_agent):
        response = client.post("/api/agent/command", json={})
        assert response.status_code == 400
        assert response.json()["detail"] == "Command is required"

        assert client.post("/api/agent/command", json={"command": "   "}).status_code == 400
        mock_agent.execute_command.assert_not_called()

    def test_command_executes_and_is_audited(self, client, mock_agent):
        response = client.post("/api/agent/command", json={"command": "echo hello", "timeout": 5000})
        assert response.status_code == 200
        assert response.json() == {
            "stdout": "hello", "stderr": "", "success": True, "exit_code": 0, "duration_ms": 3
        }
        mock_agent.execute_command.assert_awaited_once_with("echo hello", 5000)

        history = client.get("/api/agent/history").json()
        assert history[0]["action"] == "agent.command"
        assert history[0]["details"] == "echo hello"
        assert history[0]["result"] == "success"

    @pytest.mark.parametrize("command", [
        "rm -rf /",
        "rm -rf /*",
        "rm -fr /",
        "rm -r -f /",
        "rm -rf / --no-preserve-root",
        "rm -rf --no-preserve-root /",
        "cd /tmp && rm -Rf /",
        "sudo reboot",
        "shutdown -h now",
        ":(){ :|:& };:",
        "dd if=/dev/zero of=/dev/sda",
    ])
    def test_blocked_commands(self, client, mock_agent, command):
        response = client.post("/api/agent/command", json={"command": command})
        assert response.status_code == 403
        mock_agent.execute_command.assert_not_called()

        history = client.get("/api/agent/history").json()
        assert history[0]["result"] == "blocked"

    @pytest.mark.parametrize("command", ["rm -rf /tmp/build", "rm -f /var/tmp/*.log", "ls /"])
    def test_harmless_command_not_blocked(self, client, mock_agent, command):
        response = client.post("/api/agent/command", json={"command": command})
        assert response.status_code == 200

    def test_blocklist_can_be_disabled(self, client, mock_agent, monkeypatch):
        from cloudpanel.config import settings

        monkeypatch.setattr(settings, "agent_command_blocklist", False)
        assert client.post("/api/agent/command", json={"command": "shutdown -h now"}).status_code == 200

    def test_command_too_long(self, client, mock_agent):
        response = client.post("/api/agent/command", json={"command": "x" * 1001})
        assert response.status_code == 422

    def test_restart_service(self, client, mock_agent):
        response = client.post("/api/agent/service/nginx/restart")
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Service nginx restarted successfully"}

        history = client.get("/api/agent/history").json()
        assert history[0]["action"] == "agent.service.restart"
        assert history[0]["details"] == "nginx"

    def test_port_check(self, client, mock_agent):
        response = client.get("/api/agent/port/22/check")
        assert response.status_code == 200
        assert response.json() == {"port": 22, "available": False}

    def test_port_out_of_range(self, client, mock_agent):
        assert client.get("/api/agent/port/70000/check").status_code == 422

    def test_command_rate_limited(self, client, mock_agent, monkeypatch):
        from cloudpanel.config import settings
        from cloudpanel.limiter import limiter

        limiter.reset()
        monkeypatch.setattr(settings, "rate_limit_command", "2/minute")
        try:
            codes = [
                client.post("/api/agent/command", json={"command": "uptime"}).status_code
                for _ in range(3)
            ]
        finally:
            limiter.reset()

        assert codes == [200, 200, 429]
