"""
채용공고 가드레일

- JobUrlGuardrail: ExtractJob 입력 (공고 URL) 검사
- JobContentGuardrail: ExtractJob 출력 (페치된 공고 본문) 검사
"""

import re
import logging
from typing import Any, Tuple
from urllib.parse import urlparse

from schemas.pipeline_types import ParsedJob
from ..base import GateDirection, GuardrailCheck, GuardrailPolicy, GuardrailVerdict
from ..text_utils import matched_terms

logger = logging.getLogger(__name__)


SUSPICIOUS_URL_PATTERNS = [
    r"(phishing|scam|fraud|fake)",
]

URL_SHORTENERS: Tuple[str, ...] = (
    "bit.ly", "tinyurl.com", "short.link", "goo.gl", "t.co", "ow.ly", "is.gd",
)

SUSPICIOUS_TLDS: Tuple[str, ...] = (".tk", ".ml", ".ga", ".cf")

KNOWN_JOB_BOARDS: Tuple[str, ...] = (
    "linkedin.com", "indeed.com", "glassdoor.com", "monster.com",
    "careerbuilder.com", "ziprecruiter.com", "angel.co", "wellfound.com",
    "dice.com", "simplyhired.com", "jobs.com", "careerjet.com",
    "greenhouse.io", "lever.co", "workable.com", "smartrecruiters.com",
)


def _host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


class JobUrlGuardrail(GuardrailCheck):
    """공고 URL 형식/안전성 검사"""

    name = "JobUrlGuardrail"
    priority = 2
    policy = GuardrailPolicy.BLOCK
    violation_policies = {
        "NonStandardDomain": GuardrailPolicy.WARN,
    }

    async def evaluate(self, direction: GateDirection, payload: Any, context) -> GuardrailVerdict:
        url = payload.strip() if isinstance(payload, str) else ""

        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname or "." not in parsed.hostname:
            return self.trip(
                "InvalidUrlFormat",
                "Invalid job URL format",
                details={"url": url},
                recommendations=[
                    "Please provide a valid job posting URL",
                    "Ensure the URL is properly formatted",
                ],
            )

        host = parsed.hostname.lower()

        words = matched_terms(SUSPICIOUS_URL_PATTERNS, url)
        shortener = next((d for d in URL_SHORTENERS if _host_matches(host, d)), None)
        risky_tld = next((t for t in SUSPICIOUS_TLDS if host.endswith(t)), None)
        if words or shortener or risky_tld:
            return self.trip(
                "SuspiciousUrl",
                "Suspicious job URL detected",
                details={
                    "url": url,
                    "suspicious_words": words,
                    "shortener": shortener,
                    "tld": risky_tld,
                },
                recommendations=[
                    "Use a direct link to the company's career page",
                    "Avoid shortened or suspicious URLs",
                ],
            )

        if not any(_host_matches(host, d) for d in KNOWN_JOB_BOARDS):
            return self.trip(
                "NonStandardDomain",
                "Non-standard job board domain detected",
                details={"domain": host},
                recommendations=["Verify the company's official career page"],
            )

        return self.passed(domain=host)


SCAM_CONTENT_PATTERNS = [
    r"\b(pyramid scheme|mlm|multi-level marketing|network marketing)\b",
    r"\b(commission only|no salary|unpaid position)\b",
    r"\b(get rich|earn money fast|upfront fee|wire transfer)\b",
]

PRESSURE_PATTERNS = [
    r"\b(urgent(ly)? hiring|immediate start|apply now|limited time)\b",
]

JOB_INDICATORS = [
    r"\b(requirements|qualifications|responsibilities)\b",
    r"\b(experience|education|degree|certification)\b",
    r"\b(salary|compensation|pay|benefits)\b",
    r"\b(company|organization|team|department)\b",
]


class JobContentGuardrail(GuardrailCheck):
    """페치된 공고 본문 검사"""

    name = "JobContentGuardrail"
    priority = 2
    policy = GuardrailPolicy.BLOCK
    violation_policies = {
        "PressureLanguage": GuardrailPolicy.WARN,
        "LowQualityContent": GuardrailPolicy.WARN,
    }

    MIN_INDICATORS = 2

    async def evaluate(self, direction: GateDirection, payload: Any, context) -> GuardrailVerdict:
        if not isinstance(payload, ParsedJob):
            raise TypeError(f"{self.name} expects ParsedJob, got {type(payload).__name__}")

        text = payload.raw_text.strip() or payload.description.strip()
        if not text:
            return self.trip(
                "EmptyContent",
                "Job content is empty",
                recommendations=["Ensure the job posting is publicly accessible"],
            )

        scam_terms = matched_terms(SCAM_CONTENT_PATTERNS, text)
        if scam_terms:
            return self.trip(
                "SuspiciousContent",
                f"Suspicious job content detected: {', '.join(scam_terms)}",
                details={"violations": scam_terms, "violation_count": len(scam_terms)},
                recommendations=["Please verify this is a legitimate job posting"],
            )

        pressure = matched_terms(PRESSURE_PATTERNS, text)
        if pressure:
            return self.trip(
                "PressureLanguage",
                f"Job posting uses pressure language: {', '.join(pressure)}",
                details={"terms": pressure},
            )

        indicators = sum(1 for p in JOB_INDICATORS if re.search(p, text, re.IGNORECASE))
        if indicators < self.MIN_INDICATORS:
            return self.trip(
                "LowQualityContent",
                "Job content may be incomplete or suspicious",
                details={"indicator_count": indicators, "content_length": len(text)},
                recommendations=["Verify this is a complete job posting"],
            )

        return self.passed(indicator_count=indicators)
