"""
에이전트 프롬프트

모든 프롬프트는 원본 자료에 없는 사실을 만들지 않도록 지시합니다.
JSON 응답 프롬프트는 스키마를 함께 제시합니다.
"""

import json
from typing import Any, Dict

from schemas.pipeline_types import ParsedCandidate, ParsedJob, MatchResult


def _dump(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2)


CANDIDATE_SCHEMA: Dict[str, Any] = {
    "first_name": "string",
    "last_name": "string",
    "email": "string",
    "phone": "string",
    "location": "string",
    "summary": "string",
    "work_experiences": [
        {
            "company": "string",
            "title": "string",
            "start": "string (YYYY-MM)",
            "end": "string (YYYY-MM or 'present')",
            "description": "string",
            "achievements": ["string"],
        }
    ],
    "education": [
        {"institution": "string", "degree": "string", "field_of_study": "string", "graduation_year": "string"}
    ],
    "skills": [
        {
            "name": "string",
            "level": "beginner|intermediate|advanced|expert",
            "category": "technical|soft|language|tool|other",
            "years": "number or null",
        }
    ],
    "certifications": ["string"],
    "projects": ["string"],
}

JOB_SCHEMA: Dict[str, Any] = {
    "title": "string",
    "company": "string",
    "location": "string",
    "employment_type": "full_time|part_time|contract|internship|temporary|unknown",
    "experience_level": "entry|mid|senior|lead|executive|unknown",
    "description": "string",
    "requirements": ["string"],
    "responsibilities": ["string"],
    "required_skills": ["string"],
    "required_qualifications": ["string"],
    "company_info": {
        "name": "string",
        "mission": "string",
        "description": "string",
        "industry": "string",
        "size": "string",
        "website": "string",
        "values": ["string"],
    },
}

MATCH_SCHEMA: Dict[str, Any] = {
    "match_score": "number 0-100",
    "matching_skills": ["string"],
    "skill_gaps": ["string"],
    "strengths": ["string"],
    "recommendations": ["string"],
    "skill_scores": {"<skill>": "number 0-100"},
}

REVIEW_SCHEMA: Dict[str, Any] = {
    "is_truthful": "boolean",
    "quality_score": "number 0-100",
    "issues": ["string"],
    "fabricated_content": ["string"],
    "recommendations": ["string"],
    "requires_human_review": "boolean",
}


def resume_parsing_prompt(resume_text: str) -> str:
    return f"""Extract the candidate profile from the resume text below.
Only extract information that is explicitly written in the resume.
Use empty strings or empty arrays for anything that is missing. Do not guess.

Return a JSON object with this schema:
{_dump(CANDIDATE_SCHEMA)}

Resume:
{resume_text}
"""


def job_extraction_prompt(job_text: str, job_url: str) -> str:
    return f"""Extract the structured job posting from the page text below.
The page was fetched from: {job_url}
"required_skills" must list concrete skills, tools and technologies named in the posting.
Use empty strings or empty arrays for anything that is missing.

Return a JSON object with this schema:
{_dump(JOB_SCHEMA)}

Job posting:
{job_text}
"""


def matching_prompt(candidate: ParsedCandidate, job: ParsedJob) -> str:
    return f"""Compare the candidate with the job requirements.
Score how well the candidate fits the role from 0 to 100.
"matching_skills" are required skills the candidate actually has.
"skill_gaps" are required skills the candidate does not have.

Return a JSON object with this schema:
{_dump(MATCH_SCHEMA)}

Candidate:
{_dump(candidate.to_dict())}

Job:
{_dump(job.to_dict())}
"""


def cv_prompt(candidate: ParsedCandidate, job: ParsedJob, matching: MatchResult) -> str:
    return f"""Create a tailored CV for the candidate based on the job requirements.
Maintain truthfulness: only include information that exists in the original resume.
Never add skills, employers, titles, dates, degrees or achievements that are not in the resume.
Do not mention any skill listed under "Skill Gaps".

Guidelines:
1. Reorder sections to highlight relevant experience first
2. Emphasize skills that match job requirements
3. Use keywords from the job description where they truthfully apply
4. Use plain section headers on their own line: CONTACT, SUMMARY, EXPERIENCE, EDUCATION, SKILLS
5. Use "- " for bullet points

Candidate Information:
{_dump(candidate.to_dict())}

Original Resume:
{candidate.raw_text}

Job Requirements:
{_dump(job.to_dict())}

Matching Analysis:
Match Score: {matching.match_score}
Matching Skills: {_dump(matching.matching_skills)}
Strengths: {_dump(matching.strengths)}
Skill Gaps: {_dump(matching.skill_gaps)}

Return only the CV text.
"""


def cover_letter_prompt(candidate: ParsedCandidate, job: ParsedJob, matching: MatchResult) -> str:
    return f"""Write a cover letter for the candidate applying to the job.
Only reference experience and skills that exist in the original resume.
Do not claim any skill listed under "Skill Gaps".

The cover letter should:
1. Open with a salutation (e.g. "Dear Hiring Manager,")
2. Reference the company's mission and values when they are known
3. Highlight relevant experience and skills
4. Show understanding of the role
5. Close with "Sincerely," followed by the candidate's name

Candidate Information:
{_dump(candidate.to_dict())}

Original Resume:
{candidate.raw_text}

Job Information:
{_dump(job.to_dict())}

Matching Analysis:
Match Score: {matching.match_score}
Strengths: {_dump(matching.strengths)}
Skill Gaps: {_dump(matching.skill_gaps)}

Return only the cover letter text.
"""


def review_prompt(document_label: str, original_resume: str, generated: str, job: ParsedJob) -> str:
    return f"""Review the generated {document_label} against the original resume.
1. Identify any content in the generated document that does not exist in the original resume.
2. Rate the overall quality for the target role from 0 to 100.
3. Set "requires_human_review" to true when a person should check the document before it is sent.

Return a JSON object with this schema:
{_dump(REVIEW_SCHEMA)}

Target role: {job.title} at {job.company}

Original Resume:
{original_resume}

Generated {document_label}:
{generated}
"""
