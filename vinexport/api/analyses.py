"""Analysis and evidence verification endpoints."""

from __future__ import annotations

import base64
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel, Field, field_validator, model_validator

from vinexport.core.ai.orchestrator import AIOrchestrator
from vinexport.core.ai.schemas import AnalysisKind
from vinexport.core.ai.types import (
    DocumentInput,
    ExecutionContext,
    LLMOptions,
    OrchestrationPolicy,
    TaskInput,
    TaskOutput,
)
from vinexport.core.evidence import EvidenceVerificationResult, verify_evidence

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Analyses"])


# =============================================================================
# Request Models
# =============================================================================


class AnalysisRequest(BaseModel):
    """Request to run one analysis through the orchestrator."""

    text: str | None = Field(
        default=None,
        min_length=1,
        max_length=200_000,
        description="Prompt or source text",
    )
    document_base64: str | None = Field(default=None, description="Base64-encoded PDF")
    filename: str = Field(default="document.pdf", min_length=1, max_length=255)
    source_text: str | None = Field(
        default=None,
        description="Text of the document, used to verify cited evidence",
    )
    lang: str | None = Field(
        default=None,
        max_length=8,
        description="Language tag; results are cached separately per language",
    )
    policy: OrchestrationPolicy | None = Field(
        default=None,
        description="Override the analysis kind's default policy",
    )
    options: LLMOptions | None = None

    task_id: str | None = Field(default=None, max_length=64)
    project_id: str | None = Field(default=None, max_length=64)
    organization_id: str | None = Field(default=None, max_length=64)
    timeout_ms: int | None = Field(default=None, gt=0, description="Task-wide timeout")

    @field_validator("document_base64")
    @classmethod
    def check_base64(cls, value: str | None) -> str | None:
        if value is not None:
            # binascii.Error is a ValueError, reported as a 422
            base64.b64decode(value, validate=True)
        return value

    @model_validator(mode="after")
    def check_single_input(self) -> AnalysisRequest:
        if (self.text is None) == (self.document_base64 is None):
            raise ValueError("Provide exactly one of text or document_base64")
        return self

    def to_task(self, kind: AnalysisKind) -> TaskInput:
        if self.document_base64 is not None:
            input: str | DocumentInput = DocumentInput(
                data=base64.b64decode(self.document_base64),
                filename=self.filename,
            )
        else:
            input = self.text or ""

        context: dict[str, Any] = {}
        if self.lang:
            context["lang"] = self.lang
        if self.source_text:
            context["source_text"] = self.source_text

        fields: dict[str, Any] = {"input": input, "analysis": kind.value, "context": context}
        if self.policy is not None:
            fields["policy"] = self.policy
        if self.options is not None:
            fields["options"] = self.options
        return TaskInput(**fields)

    def to_context(self) -> ExecutionContext:
        fields = {
            "task_id": self.task_id,
            "project_id": self.project_id,
            "organization_id": self.organization_id,
            "timeout_ms": self.timeout_ms,
        }
        return ExecutionContext(**{k: v for k, v in fields.items() if v is not None})


class VerifyRequest(BaseModel):
    """Request for standalone evidence verification."""

    extracted: dict[str, Any] = Field(..., description="Extracted fields with their citations")
    source_text: str = Field(..., min_length=1, description="Text of the source document")
    label: str = Field(default="", max_length=255, description="Document name for logs")


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/analyses/{kind}", response_model=TaskOutput)
async def run_analysis(kind: str, body: AnalysisRequest, request: Request) -> TaskOutput:
    """Run an analysis kind under its default (or the requested) policy.

    Orchestration failures are mapped to HTTP statuses by the app's
    exception handlers.
    """
    try:
        analysis = AnalysisKind(kind)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown analysis kind: {kind}",
        ) from None

    orchestrator: AIOrchestrator = request.app.state.orchestrator
    context = body.to_context()
    logger.info(f"Running {analysis.value} as task {context.task_id}")
    return await orchestrator.run_task(body.to_task(analysis), context)


@router.post("/extractions/verify", response_model=EvidenceVerificationResult, tags=["Evidence"])
async def verify_extraction(body: VerifyRequest) -> EvidenceVerificationResult:
    """Drop extracted fields whose cited evidence is not in the source text."""
    return verify_evidence(body.extracted, body.source_text, body.label)
