"""Research actions available to the researcher model."""

from .base import ActionContext, ResearchAction
from .caption_search import CaptionSearchAction

__all__ = ["ActionContext", "ResearchAction", "CaptionSearchAction"]
