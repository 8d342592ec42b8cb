"""
Truthfulness Guardrail - 생성 문서의 사실성 검증

생성된 CV/커버레터에 언급된 스킬이 원본 이력서에서 확인되는지 대조합니다.
원본 텍스트 대조 방식은 환각 탐지와 같습니다:
값이 원문(raw_text) 또는 파싱된 스킬 목록에 없으면 조작으로 간주합니다.
"""

import logging
from typing import Any, List

from context.shared_context import ContextKey, NOT_FOUND
from schemas.pipeline_types import GeneratedText, ParsedCandidate
from ..base import GateDirection, GuardrailCheck, GuardrailPolicy, GuardrailVerdict
from ..text_utils import mentions, matched_terms

logger = logging.getLogger(__name__)


# 공고에 없더라도 검사하는 기술 용어 (일반 영단어와 겹치는 용어는 제외)
TECH_LEXICON = [
    "Python", "Java", "JavaScript", "TypeScript", "C#", "C++", "Kotlin", "Scala",
    "Ruby", "PHP", "Golang", "SQL", "PostgreSQL", "MySQL", "MongoDB", "Redis",
    "Elasticsearch", "React", "Angular", "Vue", "Node.js", "Django", "Flask",
    "FastAPI", "Spring Boot", "ASP.NET", "Entity Framework", "AWS", "Azure", "GCP",
    "Docker", "Kubernetes", "Terraform", "Ansible", "Kafka", "RabbitMQ", "Spark",
    "Hadoop", "Airflow", "TensorFlow", "PyTorch", "GraphQL", "Jenkins", "Scrum",
]

FABRICATION_PATTERNS = [
    r"\b(never mentioned|not in (the )?original|fabricated|made up)\b",
    r"\b(completely new|entirely fabricated|invented)\b",
]


class TruthfulnessGuardrail(GuardrailCheck):
    """생성 문서의 스킬 조작 탐지"""

    name = "TruthfulnessGuardrail"
    priority = 1
    policy = GuardrailPolicy.BLOCK

    def __init__(self, lexicon: List[str] = None):
        self.lexicon = list(lexicon) if lexicon is not None else list(TECH_LEXICON)

    async def evaluate(self, direction: GateDirection, payload: Any, context) -> GuardrailVerdict:
        if not isinstance(payload, GeneratedText):
            raise TypeError(f"{self.name} expects GeneratedText, got {type(payload).__name__}")

        candidate: ParsedCandidate = context.get(ContextKey.CANDIDATE)
        generated = payload.content

        fabricated = self.find_fabricated_skills(generated, candidate, self._vocabulary(context))
        if fabricated:
            return self.trip(
                "FabricatedContent",
                f"Fabricated content detected: {', '.join(fabricated)}",
                details={
                    "document_type": payload.document_type.value,
                    "fabricated_skills": fabricated,
                    "fabricated_count": len(fabricated),
                },
                recommendations=[
                    "Remove fabricated content from generated document",
                    "Ensure all information exists in original CV",
                ],
            )

        phrases = matched_terms(FABRICATION_PATTERNS, generated)
        if phrases:
            return self.trip(
                "FabricationPattern",
                f"Potential fabrication detected: {', '.join(phrases)}",
                details={"document_type": payload.document_type.value, "phrases": phrases},
            )

        return self.passed(document_type=payload.document_type.value)

    def _vocabulary(self, context) -> List[str]:
        """공고 필수 스킬 + 매칭 스킬 갭 + 기본 기술 용어 (대소문자 무시 중복 제거)"""
        terms: List[str] = []
        job = context.find(ContextKey.JOB)
        if job is not NOT_FOUND:
            terms.extend(job.required_skills)
        matching = context.find(ContextKey.MATCHING)
        if matching is not NOT_FOUND:
            terms.extend(matching.skill_gaps)
        terms.extend(self.lexicon)

        seen = set()
        vocabulary = []
        for term in terms:
            key = term.strip().lower()
            if key and key not in seen:
                seen.add(key)
                vocabulary.append(term.strip())
        return vocabulary

    @staticmethod
    def find_fabricated_skills(
        generated: str,
        candidate: ParsedCandidate,
        vocabulary: List[str],
    ) -> List[str]:
        known = {name.lower() for name in candidate.skill_names}
        fabricated = []
        for term in vocabulary:
            if not mentions(term, generated):
                continue
            if term.lower() in known or mentions(term, candidate.raw_text):
                continue
            fabricated.append(term)
        return fabricated
