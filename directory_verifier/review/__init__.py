"""Single-item human review protocol."""

from directory_verifier.review.review_gateway import CorrectionOutcome, ReviewGateway

__all__ = ["CorrectionOutcome", "ReviewGateway"]
