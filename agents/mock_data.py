"""
Synthetic mention generator for development/demo.
Produces steady background chatter, a trending hashtag, and an optional
negative burst that trips crisis detection.
"""

from datetime import datetime, timedelta
from typing import List
import random

from models.schemas import Mention, Sentiment


class MockMentionGenerator:

    PLATFORMS = ["twitter", "instagram", "reddit", "tiktok", "facebook"]

    TOPICS = [
        ("checkout", ["checkout", "payment", "cart", "button", "confusing"]),
        ("mobile", ["mobile", "android", "iphone", "update", "crash"]),
        ("support", ["support", "ticket", "agent", "waiting", "response"]),
        ("pricing", ["pricing", "expensive", "billing", "subscription", "discount"]),
        ("launch", ["launch", "feature", "release", "preview", "beta"]),
    ]

    POSITIVE_TEMPLATES = [
        "Loving the new {a} {b} experience, great work #{tag}",
        "Really impressed with {a} and {b} lately #{tag}",
        "The {a} {b} flow finally feels smooth #{tag}",
    ]

    NEUTRAL_TEMPLATES = [
        "Anyone else tried the {a} {b} changes? #{tag}",
        "Reading about {a} and {b} today",
    ]

    NEGATIVE_TEMPLATES = [
        "Terrible {a} problems again, {b} completely broken #{tag}",
        "Seriously angry about {a}, {b} keeps failing #{tag}",
        "Worst {a} {b} outage ever, cancelling soon #{tag}",
    ]

    def __init__(self, seed: int = 42):
        self.rng = random.Random(seed)
        self._counter = 0

    def _next_id(self, workspace_id: str) -> str:
        self._counter += 1
        return f"{workspace_id}-m{self._counter:06d}"

    def _mention(self, workspace_id: str, published_at: datetime, sentiment: Sentiment, topic=None) -> Mention:
        rng = self.rng
        tag, words = topic or rng.choice(self.TOPICS)
        a, b = rng.sample(words, 2)
        templates = {
            Sentiment.POSITIVE: self.POSITIVE_TEMPLATES,
            Sentiment.NEUTRAL: self.NEUTRAL_TEMPLATES,
            Sentiment.NEGATIVE: self.NEGATIVE_TEMPLATES,
        }[sentiment]
        score = {
            Sentiment.POSITIVE: rng.uniform(0.3, 1.0),
            Sentiment.NEUTRAL: rng.uniform(-0.2, 0.2),
            Sentiment.NEGATIVE: rng.uniform(-1.0, -0.4),
        }[sentiment]
        author = rng.randint(1, 400)
        is_influencer = author <= 12
        return Mention(
            id=self._next_id(workspace_id),
            workspace_id=workspace_id,
            platform=rng.choice(self.PLATFORMS),
            content=rng.choice(templates).format(a=a, b=b, tag=tag),
            published_at=published_at,
            author_id=f"author-{author}",
            author_username=f"user{author}",
            author_followers=rng.randint(50_000, 2_000_000) if is_influencer else rng.randint(10, 5_000),
            is_influencer=is_influencer,
            likes=rng.randint(0, 400),
            comments=rng.randint(0, 60),
            shares=rng.randint(0, 80),
            reach=rng.randint(100, 50_000),
            sentiment=sentiment,
            sentiment_score=round(score, 3),
        )

    def background(self, workspace_id: str, now: datetime, count: int = 300, hours: int = 48) -> List[Mention]:
        """Mixed-sentiment chatter spread evenly over the last `hours`."""
        mentions = []
        for _ in range(count):
            published = now - timedelta(seconds=self.rng.randint(60, hours * 3600))
            roll = self.rng.random()
            sentiment = Sentiment.POSITIVE if roll < 0.5 else Sentiment.NEUTRAL if roll < 0.8 else Sentiment.NEGATIVE
            mentions.append(self._mention(workspace_id, published, sentiment))
        return mentions

    def trending(self, workspace_id: str, now: datetime, topic: str = "launch",
                 current: int = 40, previous: int = 5) -> List[Mention]:
        """A hashtag that jumps from `previous` to `current` mentions across two 24h windows."""
        chosen = next(t for t in self.TOPICS if t[0] == topic)
        mentions = []
        for i in range(current):
            published = now - timedelta(minutes=30 + i * (23 * 60 // max(current, 1)))
            mentions.append(self._mention(workspace_id, published, Sentiment.POSITIVE, chosen))
        for i in range(previous):
            published = now - timedelta(hours=25 + i * (22 // max(previous, 1)))
            mentions.append(self._mention(workspace_id, published, Sentiment.POSITIVE, chosen))
        return mentions

    def crisis_burst(self, workspace_id: str, now: datetime, count: int = 60, minutes: int = 55) -> List[Mention]:
        """Mostly negative mentions packed into the last `minutes`."""
        outage = next(t for t in self.TOPICS if t[0] == "support")
        mentions = []
        for _ in range(count):
            published = now - timedelta(seconds=self.rng.randint(30, minutes * 60))
            sentiment = Sentiment.NEGATIVE if self.rng.random() < 0.9 else Sentiment.NEUTRAL
            mentions.append(self._mention(workspace_id, published, sentiment, outage))
        return mentions
