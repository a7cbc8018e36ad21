"""
Generation Pipeline.

Turns normalized page content into a validated llms.txt document. The model
is called once, then up to max_repairs more times with the accumulated
validation errors fed back. Every outcome is returned as a value:

    Generated          document passed validation
    FetchFailed        content could not be fetched (produced by callers)
    ModelUnavailable   provider/transport error, not retried here
    InvalidFormat      still invalid after max_repairs repairs
"""

from dataclasses import dataclass
from typing import List, Optional, Union

from .database import JobKind
from .errors import ModelError
from .llm import LLMProvider
from .logger import get_logger
from .normalize import compute_checksum
from .prompts import build_prompt, build_repair_prompt
from .schema import validate_document

logger = get_logger()

DEFAULT_MAX_REPAIRS = 3


@dataclass(frozen=True)
class Generated:
    document: str
    checksum: str
    attempts: int


@dataclass(frozen=True)
class FetchFailed:
    reason: str


@dataclass(frozen=True)
class ModelUnavailable:
    reason: str
    attempts: int


@dataclass(frozen=True)
class InvalidFormat:
    last_error: str
    attempts: int


PipelineResult = Union[Generated, FetchFailed, ModelUnavailable, InvalidFormat]


class GenerationPipeline:
    """Prompt, validate, and repair until valid or out of repairs."""

    def __init__(self, provider: LLMProvider, max_repairs: int = DEFAULT_MAX_REPAIRS):
        if max_repairs < 0:
            raise ValueError("max_repairs must be >= 0")
        self.provider = provider
        self.max_repairs = max_repairs

    def run(
        self,
        content: str,
        kind: JobKind = JobKind.NEW,
        prior_document: Optional[str] = None,
    ) -> PipelineResult:
        """
        Generate an llms.txt document.

        Args:
            content: Normalized HTML of the site
            kind: NEW or UPDATE
            prior_document: Previous llms.txt, biases UPDATE toward keeping sections

        Returns:
            Generated, ModelUnavailable or InvalidFormat
        """
        checksum = compute_checksum(content)
        prompt = build_prompt(content, kind, prior_document)
        base_prompt = prompt
        history: List[str] = []
        errors: List[str] = []

        for attempt in range(1, self.max_repairs + 2):
            try:
                output = self.provider.generate(prompt)
            except ModelError as e:
                logger.warning("Model call failed", attempt=attempt, error=str(e))
                return ModelUnavailable(reason=str(e), attempts=attempt)
            logger.record_model_call()

            document = output.strip()
            errors = validate_document(document)
            if not errors:
                logger.debug("Document validated", attempt=attempt, bytes=len(document))
                return Generated(document=document + "\n", checksum=checksum, attempts=attempt)

            logger.info("Document failed validation", attempt=attempt, errors=errors)
            history.extend(f"attempt {attempt}: {e}" for e in errors)
            if attempt <= self.max_repairs:
                logger.record_repair()
                prompt = build_repair_prompt(base_prompt, document, history)

        return InvalidFormat(last_error="; ".join(errors), attempts=self.max_repairs + 1)
