"""
errors.py – Failure taxonomy
============================

Every failure propagates to the caller of the operation that hit it; nothing
here is retried inside the pipeline.

- ServiceTransportError: network, timeout or service-side (5xx) failure
- AuthorizationError: bad/missing credentials; caller must re-authenticate
- OutputContractError: model output does not parse under the declared schema
- MissingPayloadError: generate/refine response carried no image
- WorkflowLookupError: a workflow key resolves to more than one template
- PipelineBusyError: an operation started while another is in flight
"""

from __future__ import annotations


class AxiomStudioError(Exception):
    """Base class for all pipeline errors."""


class ServiceTransportError(AxiomStudioError):
    pass


class AuthorizationError(AxiomStudioError):
    requires_credentials = True


class OutputContractError(AxiomStudioError, ValueError):
    def __init__(self, raw_text: str, error: str, kind: str = "parse"):
        super().__init__(f"Model output failure ({kind}): {error}")
        self.raw_text = raw_text
        self.error = error
        self.kind = kind


class MissingPayloadError(AxiomStudioError):
    def __init__(self, stage: str):
        super().__init__(f"{stage.capitalize()} stage failure: the model returned no image data.")
        self.stage = stage


class WorkflowLookupError(AxiomStudioError, LookupError):
    pass


class PipelineBusyError(AxiomStudioError):
    pass
