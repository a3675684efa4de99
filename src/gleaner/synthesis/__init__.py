"""Chat-log synthesis: parsing, chunk planning, map-reduce summarization."""

from gleaner.synthesis.chatlog import filter_for_analysis, messages_to_text, parse_chat_export
from gleaner.synthesis.chunking import AnalysisPlan, ChunkPlanner, upload_chunks
from gleaner.synthesis.insights import merge_insights
from gleaner.synthesis.synthesizer import Synthesizer

__all__ = [
    "AnalysisPlan",
    "ChunkPlanner",
    "Synthesizer",
    "filter_for_analysis",
    "merge_insights",
    "messages_to_text",
    "parse_chat_export",
    "upload_chunks",
]
