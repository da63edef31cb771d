# app/services/openai_service.py

import json
import logging
from typing import Optional, Dict, Any, Tuple
from openai import OpenAI
from app.config import settings

logger = logging.getLogger(__name__)

MINIMUM_VIABLE_PRICE = 14.99

SYSTEM_PROMPT = (
    "You are an Etsy market analyst. You judge whether a product sourced from "
    "AliExpress or Alibaba can be launched successfully on Etsy. Answer with a "
    "single JSON object and nothing else."
)

RESPONSE_FIELDS = (
    '{"productVisualDescription":"1-2 sentences","productType":"short noun",'
    '"decision":"LAUNCH|LAUNCH_COMPETITIVE|DO_NOT_LAUNCH","confidenceScore":30-95,'
    '"estimatedSupplierPrice":number,"estimatedShippingCost":number,'
    '"estimatedCompetitors":number,"saturationLevel":"low|competitive|saturated",'
    '"recommendedPrice":{"optimal":number,"min":number,"max":number},'
    '"launchPotentialScore":0-10,"launchPotentialScoreJustification":"1-2 sentences",'
    '"classification":"NOT RECOMMENDED|HIGH RISK|MODERATE OPPORTUNITY|STRONG OPPORTUNITY|EXCEPTIONAL OPPORTUNITY",'
    '"viralTitle":"max 140 chars","seoTags":["up to 13 tags"],'
    '"strengths":["..."],"risks":["..."],"finalVerdict":"2-3 sentences"}'
)


class AnalysisUnavailable(Exception):
    """The chat-completion API could not produce an analysis."""


class OpenAIService:
    def __init__(self):
        self.api_key = settings.openai_api_key
        if not self.api_key:
            logger.warning("OPENAI_API_KEY is not set. Product analysis will be unavailable.")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _build_messages(self, title: str, price: float, niche: str, image_url: Optional[str]):
        text = (
            f"Product: {title}\nSupplier price: {price}\nTarget Etsy niche: {niche}\n\n"
            f"Required JSON:\n{RESPONSE_FIELDS}"
        )
        content: Any = text
        if image_url:
            content = [
                {"type": "text", "text": text},
                {"type": "image_url", "image_url": {"url": image_url, "detail": "low"}},
            ]
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": content},
        ]

    def _complete(self, client: OpenAI, model: str, messages) -> Dict[str, Any]:
        response = client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=0.3,
            max_tokens=2000,
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content or ""
        return json.loads(content)

    def analyze_product(
        self,
        title: str,
        price: float,
        niche: str,
        image_url: Optional[str] = None,
    ) -> Tuple[Dict[str, Any], str]:
        """Returns the parsed analysis and the model that produced it."""
        if not self.configured:
            raise AnalysisUnavailable("OpenAI API key not configured")

        client = OpenAI(api_key=self.api_key)
        messages = self._build_messages(title, price, niche, image_url)

        last_error: Optional[Exception] = None
        for model in (settings.openai_model, settings.openai_fallback_model):
            try:
                analysis = self._complete(client, model, messages)
                logger.info(f"Product analysis produced by {model}")
                return normalize_analysis(analysis), model
            except Exception as e:
                last_error = e
                logger.warning(f"OpenAI analysis with {model} failed: {e}")

        raise AnalysisUnavailable(f"AI analysis failed: {last_error}")


def normalize_analysis(analysis: Dict[str, Any]) -> Dict[str, Any]:
    """Fill the fields the rest of the pipeline relies on when the model skipped them."""
    if not isinstance(analysis, dict):
        analysis = {}

    competitors = analysis.get("estimatedCompetitors")
    if not isinstance(competitors, (int, float)) or competitors <= 0:
        analysis["estimatedCompetitors"] = 50
        competitors = 50

    if not analysis.get("decision"):
        analysis["decision"] = "LAUNCH_COMPETITIVE"
        analysis["confidenceScore"] = 50

    if not analysis.get("saturationLevel"):
        if competitors <= 100:
            analysis["saturationLevel"] = "low"
        elif competitors <= 130:
            analysis["saturationLevel"] = "competitive"
        else:
            analysis["saturationLevel"] = "saturated"

    if not analysis.get("recommendedPrice"):
        supplier_price = analysis.get("estimatedSupplierPrice") or 10
        total_cost = supplier_price + (analysis.get("estimatedShippingCost") or 5)
        min_price = max(MINIMUM_VIABLE_PRICE, total_cost * 2.5)
        analysis["recommendedPrice"] = {
            "optimal": max(MINIMUM_VIABLE_PRICE, total_cost * 3),
            "min": min_price,
            "max": min_price * 1.5,
        }
    return analysis


# Global OpenAI instance
openai_service = OpenAIService()
