# Agents Package (stage bodies)

from .resume_parser_agent import ResumeParserAgent
from .job_extraction_agent import JobExtractionAgent
from .matching_agent import MatchingAgent
from .document_writer_agent import DocumentWriterAgent
from .review_agent import ReviewAgent
from .formatting_agent import FormattingAgent, document_file_name, sanitize_filename_part

__all__ = [
    "ResumeParserAgent",
    "JobExtractionAgent",
    "MatchingAgent",
    "DocumentWriterAgent",
    "ReviewAgent",
    "FormattingAgent",
    "document_file_name",
    "sanitize_filename_part",
]
