"""
Cloud Console - AI Advisor Service

Asks an OpenAI chat model for infrastructure recommendations, per-VM
optimization tips and capacity predictions. Any failure (missing key, network
error, malformed reply) yields a fixed fallback answer instead of an error.
"""

import json
from typing import Any, Dict, List, Optional

import structlog
from openai import AsyncOpenAI
from pydantic import AliasChoices, BaseModel, Field, ValidationError

from cloudpanel.config import settings
from cloudpanel.db import get_db

logger = structlog.get_logger(__name__)

OPENAI_KEY_SETTING = "openai_api_key"

ANALYST_SYSTEM_PROMPT = (
    "You are an expert cloud infrastructure analyst. Provide detailed, "
    "actionable insights for optimizing private cloud environments."
)
OPTIMIZER_SYSTEM_PROMPT = (
    "You are a cloud optimization expert. Provide concise, actionable optimization suggestions."
)
CAPACITY_SYSTEM_PROMPT = "You are a capacity planning expert for cloud infrastructure."

ANALYSIS_PROMPT = """
Analyze the following cloud infrastructure data and provide recommendations:

Virtual Machines:
{vms}

System Metrics:
{metrics}

Current Alerts:
{alerts}

Please provide a JSON response with:
1. recommendations: Array of actionable recommendations with type, title, description, confidence (0-1), priority (low/medium/high), and optionally resource_id/resource_type
2. health_score: Overall infrastructure health score (0-100)
3. predictions: Array of predictions with metric, timeframe, prediction description, and confidence

Focus on:
- Resource optimization opportunities
- Security concerns
- Capacity planning
- Performance improvements
- Cost optimization
"""

OPTIMIZATION_PROMPT = """
Based on this VM configuration and usage data, provide specific optimization suggestions:
{vm}

Focus on CPU, memory, and storage optimization opportunities.
"""

PREDICTION_PROMPT = """
Based on this historical resource usage data, predict future resource needs:
{history}

Provide predictions for the next 30, 60, and 90 days including:
- Storage capacity needs
- CPU requirements
- Memory requirements
- Network bandwidth

Respond in JSON format with structured predictions.
"""

DEFAULT_HEALTH_SCORE = 85.0
OPTIMIZATION_FALLBACK = "Unable to generate optimization suggestions at this time."
OPTIMIZATION_EMPTY = "No specific optimizations identified."


class AdvisorUnavailable(Exception):
    """No API key is configured."""


class Recommendation(BaseModel):
    type: str
    title: str
    description: str
    confidence: float = Field(ge=0, le=1)
    priority: str = "medium"
    resource_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("resource_id", "resourceId"))
    resource_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("resource_type", "resourceType"))


class Prediction(BaseModel):
    metric: str
    timeframe: str
    prediction: str
    confidence: float = 0.5


class AnalysisResult(BaseModel):
    recommendations: List[Recommendation] = []
    health_score: float = DEFAULT_HEALTH_SCORE
    predictions: List[Prediction] = []


FALLBACK_ANALYSIS = AnalysisResult(
    recommendations=[
        Recommendation(
            type="optimization",
            title="Resource Analysis Available",
            description="AI analysis is temporarily unavailable. Manual infrastructure review recommended.",
            confidence=0.5,
            priority="medium",
        )
    ],
    health_score=DEFAULT_HEALTH_SCORE,
    predictions=[
        Prediction(
            metric="capacity",
            timeframe="30 days",
            prediction="Monitor resource usage trends for capacity planning",
            confidence=0.7,
        )
    ],
)


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, default=str)


def _parse_analysis(payload: Dict[str, Any]) -> AnalysisResult:
    """Build an AnalysisResult, dropping malformed items and clamping the score."""
    recommendations = []
    for item in payload.get("recommendations") or []:
        try:
            recommendations.append(Recommendation.model_validate(item))
        except ValidationError as e:
            logger.warning("Dropping malformed recommendation", error=str(e))

    predictions = []
    for item in payload.get("predictions") or []:
        try:
            predictions.append(Prediction.model_validate(item))
        except ValidationError as e:
            logger.warning("Dropping malformed prediction", error=str(e))

    score = payload.get("health_score", payload.get("healthScore")) or DEFAULT_HEALTH_SCORE
    try:
        score = float(score)
    except (TypeError, ValueError):
        score = DEFAULT_HEALTH_SCORE

    return AnalysisResult(
        recommendations=recommendations,
        health_score=max(0.0, min(100.0, score)),
        predictions=predictions,
    )


class AIAdvisor:
    """LLM-backed infrastructure advisor."""

    def __init__(self, model: Optional[str] = None):
        self.model = model or settings.openai_model
        self._async_client: Optional[AsyncOpenAI] = None
        self._client_key: Optional[str] = None

    async def resolve_api_key(self) -> Optional[str]:
        """Stored key from the settings table wins over the environment."""
        try:
            db = await get_db()
            cursor = await db.execute("SELECT value FROM settings WHERE key = ?", (OPENAI_KEY_SETTING,))
            row = await cursor.fetchone()
            if row and row[0]:
                return row[0]
        except RuntimeError:
            pass
        return settings.get_openai_api_key()

    def _make_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key, timeout=settings.openai_timeout)

    async def _client(self) -> AsyncOpenAI:
        api_key = await self.resolve_api_key()
        if not api_key:
            raise AdvisorUnavailable("OpenAI API key not configured")
        if self._async_client is None or self._client_key != api_key:
            # One HTTP pool per key; a changed key replaces it
            await self.close()
            self._async_client = self._make_client(api_key)
            self._client_key = api_key
        return self._async_client

    async def close(self):
        if self._async_client is not None:
            await self._async_client.close()
            self._async_client = None
            self._client_key = None

    async def analyze_infrastructure(
        self,
        vms: List[Dict],
        metrics: Optional[Dict],
        alerts: List[Dict]
    ) -> AnalysisResult:
        """Produce recommendations, a health score and predictions."""
        try:
            client = await self._client()
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": ANALYST_SYSTEM_PROMPT},
                    {"role": "user", "content": ANALYSIS_PROMPT.format(
                        vms=_dump(vms), metrics=_dump(metrics), alerts=_dump(alerts)
                    )},
                ],
                response_format={"type": "json_object"},
                temperature=0.7,
            )
            payload = json.loads(response.choices[0].message.content or "{}")
            result = _parse_analysis(payload)
            logger.info(
                "Infrastructure analysis complete",
                recommendations=len(result.recommendations),
                health_score=result.health_score
            )
            return result
        except Exception as e:
            logger.error("AI analysis error", error=str(e))
            return FALLBACK_ANALYSIS.model_copy(deep=True)

    async def generate_optimization_suggestions(self, vm: Dict) -> str:
        """Short free-text optimization advice for one VM."""
        try:
            client = await self._client()
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": OPTIMIZER_SYSTEM_PROMPT},
                    {"role": "user", "content": OPTIMIZATION_PROMPT.format(vm=_dump(vm))},
                ],
                max_tokens=200,
            )
            return response.choices[0].message.content or OPTIMIZATION_EMPTY
        except Exception as e:
            logger.error("Optimization suggestion error", vm_id=vm.get("id"), error=str(e))
            return OPTIMIZATION_FALLBACK

    async def predict_resource_needs(self, history: List[Dict]) -> Dict[str, Any]:
        """Capacity predictions from the ten most recent metric samples."""
        try:
            client = await self._client()
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": CAPACITY_SYSTEM_PROMPT},
                    {"role": "user", "content": PREDICTION_PROMPT.format(history=_dump(history[-10:]))},
                ],
                response_format={"type": "json_object"},
            )
            return json.loads(response.choices[0].message.content or "{}")
        except Exception as e:
            logger.error("Resource prediction error", error=str(e))
            return {
                "predictions": [],
                "error": "Unable to generate resource predictions"
            }

    async def test_connection(self, api_key: str) -> str:
        """Send a tiny request with `api_key`; raises on failure."""
        async with self._make_client(api_key) as client:
            await client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": "Hello"}],
                max_tokens=5,
            )
        return self.model


# Global advisor instance
ai_advisor = AIAdvisor()
