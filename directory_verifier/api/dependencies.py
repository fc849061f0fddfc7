"""
Request-scoped access to the components wired into the app at startup.
"""
from fastapi import Request

from directory_verifier.data_management.verification_run_store import VerificationRunStore
from directory_verifier.pipeline.verification_pipeline import VerificationPipeline
from directory_verifier.review.review_gateway import ReviewGateway


def get_pipeline(request: Request) -> VerificationPipeline:
    return request.app.state.pipeline


def get_gateway(request: Request) -> ReviewGateway:
    return request.app.state.gateway


def get_run_store(request: Request) -> VerificationRunStore:
    return request.app.state.pipeline.run_store
