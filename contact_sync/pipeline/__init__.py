"""
Concurrent classify-and-batch pipeline.
"""

from .aggregator import AggregatorStats, BatchAggregator
from .channel import Channel, ChannelClosedError
from .classifier import ClassifierPool, ClassifierStats
from .coordinator import ContactSyncPipeline, PipelineConfig, PipelineSummary

__all__ = [
    "AggregatorStats",
    "BatchAggregator",
    "Channel",
    "ChannelClosedError",
    "ClassifierPool",
    "ClassifierStats",
    "ContactSyncPipeline",
    "PipelineConfig",
    "PipelineSummary",
]
