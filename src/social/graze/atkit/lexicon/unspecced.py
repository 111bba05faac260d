"""app.bsky.unspecced"""

from typing import List, Optional

from pydantic import Field

from social.graze.atkit.lexicon.feed import GeneratorView
from social.graze.atkit.lexicon.union import LexiconModel


class GetPopularFeedGeneratorsOutput(LexiconModel):
    feeds: List[GeneratorView] = Field(default_factory=list)
    cursor: Optional[str] = None


class TrendingTopic(LexiconModel):
    topic: str
    link: str
    display_name: Optional[str] = None
    description: Optional[str] = None


class GetTrendingTopicsOutput(LexiconModel):
    topics: List[TrendingTopic] = Field(default_factory=list)
    suggested: List[TrendingTopic] = Field(default_factory=list)


class GetSuggestedFeedsOutput(LexiconModel):
    feeds: List[GeneratorView] = Field(default_factory=list)
    cursor: Optional[str] = None
