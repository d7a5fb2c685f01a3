"""Verification of generated tests and the prompts used to repair them."""

from utgen.pipeline.verification import VerificationPipeline

__all__ = ["VerificationPipeline"]
