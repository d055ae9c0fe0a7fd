"""
Bedrock vision analysis
Sends the captured screenshots to a Bedrock model and returns per-feature results
"""
import asyncio
import boto3
import json
import logging
import os
import re
from typing import Any, Dict, List, Optional

from validator import prompt_builder
from validator.errors import ExternalServiceFailure, ExternalServiceRateLimited
from validator.resilience import RATE_LIMIT_RETRY, RetryPolicy, is_rate_limited

logger = logging.getLogger(__name__)

DEFAULT_MODEL_ID = "us.anthropic.claude-3-5-sonnet-20241022-v2:0"


class BedrockVisionAnalyzer:
    """
    Opaque feature-scoring service.

    Retries only on throttling (5s, 10s, 20s, ...). Any other failure, or
    running out of retries, returns an ERROR result with one UNKNOWN row per
    feature instead of raising.
    """

    def __init__(self, region: Optional[str] = None, model_id: Optional[str] = None,
                 client=None, retry_policy: RetryPolicy = RATE_LIMIT_RETRY, mock: Optional[bool] = None):
        self.region = region or os.getenv('AWS_REGION', 'us-east-1')
        self.model_id = model_id or os.getenv('BEDROCK_MODEL_ID', DEFAULT_MODEL_ID)
        self.retry_policy = retry_policy

        if mock is None:
            mock = os.getenv('VISION_MOCK', '') == '1' or (client is None and not self._has_credentials())
        self.mock = mock

        self.bedrock = client
        if self.bedrock is None and not self.mock:
            self.bedrock = boto3.client('bedrock-runtime', region_name=self.region)

        if self.mock:
            logger.warning("⚠️ No Bedrock credentials (or VISION_MOCK=1) - vision analysis returns mock data")

    @staticmethod
    def _has_credentials() -> bool:
        try:
            return boto3.Session().get_credentials() is not None
        except Exception:
            return False

    async def analyze(self, images: List[bytes], config: Optional[Dict[str, Any]], widget_type: str,
                      static_features: Optional[List[str]] = None) -> Dict[str, Any]:
        if self.mock:
            return self.mock_result(widget_type)

        images = [img for img in images if img]
        prompt = prompt_builder.build(widget_type, config or {}, static_features, len(images) > 1)
        attempt = {'n': 0}

        async def call():
            attempt['n'] += 1
            logger.info(f"🤖 Sending {len(images)} screenshot(s) to Bedrock for {widget_type} (attempt {attempt['n']})")
            return await asyncio.to_thread(self._converse, prompt, images)

        raw_text = None
        try:
            raw_text = await self.retry_policy.run(call)
            return self.process_results(self.parse_response(raw_text))
        except Exception as e:
            if is_rate_limited(e):
                failure = ExternalServiceRateLimited('analyze', f"still throttled after {attempt['n']} attempt(s): {e}", e)
            else:
                failure = ExternalServiceFailure('analyze', str(e), e)
            logger.error(f"❌ Vision analysis failed {failure}")
            if raw_text:
                logger.info(f"Raw model response (failure context):\n{raw_text}")
            return self.error_result(failure.reason, config, static_features)

    def _converse(self, prompt: str, images: List[bytes]) -> str:
        content = [{"text": prompt}]
        for image in images:
            content.append({"image": {"format": "png", "source": {"bytes": image}}})

        response = self.bedrock.converse(
            modelId=self.model_id,
            messages=[{"role": "user", "content": content}],
            inferenceConfig={"maxTokens": 4096, "temperature": 0.0},
        )
        blocks = response['output']['message']['content']
        return ''.join(block.get('text', '') for block in blocks)

    @staticmethod
    def parse_response(text: str) -> Dict[str, Any]:
        clean = re.sub(r'```(?:json)?', '', text or '').strip()
        return json.loads(clean)

    @staticmethod
    def process_results(data: Dict[str, Any]) -> Dict[str, Any]:
        """Overall status is recomputed from the per-feature rows"""
        if not isinstance(data, dict) or not isinstance(data.get('feature_results'), list):
            return data
        failed = any(f.get('status') == 'FAIL' for f in data['feature_results'])
        data['overall_status'] = 'FAIL' if failed else 'PASS'
        return data

    @staticmethod
    def error_result(message: str, config: Optional[Dict[str, Any]],
                     static_features: Optional[List[str]]) -> Dict[str, Any]:
        features = static_features or (config or {}).get('features') or []
        if not isinstance(features, list):
            features = []
        return {
            "error": message,
            "status": "ERROR",
            "overall_status": "ERROR",
            "feature_results": [
                {
                    "feature": prompt_builder.feature_name(f),
                    "ui_status": "N/A",
                    "config_status": "N/A",
                    "scenario": "AI Analysis Failed",
                    "status": "UNKNOWN",
                    "warning": f"AI analysis failed: {message}",
                }
                for f in features
            ],
        }

    @staticmethod
    def mock_result(widget_type: str) -> Dict[str, Any]:
        """Never a pass: nothing was actually looked at"""
        return {
            "mock": True,
            "overall_status": "FAIL",
            "message": f"Mock Mode: no vision analysis was run for {widget_type}",
            "feature_results": [
                {"feature": "Vision Analysis", "ui_status": "N/A", "config_status": "N/A",
                 "scenario": "Mock Mode: Bedrock not configured", "status": "FAIL"},
            ],
        }
