"""
Question similarity ranking and merge pipeline.

Only the data models are re-exported here; prism.framework_data imports them
while loading. Import MergePipeline from prism.merge_agent.question_pipeline.
"""

from .question_models import MergedQuestion, OriginalQuestion, RawQuestion

__all__ = [
    "MergedQuestion",
    "OriginalQuestion",
    "RawQuestion",
]
