import logging
import random
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_TOPICS = (
    "Social media has done more harm than good to society",
    "Remote work is more productive than office work",
    "Climate change is primarily caused by human activity",
    "Universal basic income should be implemented globally",
    "Artificial intelligence will eventually replace most human jobs",
    "Video games cause violence in children",
    "Private healthcare is better than public healthcare",
    "Space exploration is a waste of money",
    "Cryptocurrency will replace traditional currency",
    "Online education is as effective as traditional classroom learning",
)


class TopicPool:
    """Immutable, ordered list of debate prompts."""

    def __init__(self, topics: Iterable[str]):
        cleaned = (t.strip() for t in topics if t and t.strip())
        self._topics = tuple(dict.fromkeys(cleaned))

    def __len__(self):
        return len(self._topics)

    def __iter__(self):
        return iter(self._topics)

    def available(self, used: Iterable[str]) -> List[str]:
        used = set(used)
        return [t for t in self._topics if t not in used]

    def pick(self, used: Iterable[str], rng=random) -> Optional[str]:
        """Return a random topic not in ``used``, or None when exhausted."""
        remaining = self.available(used)
        if not remaining:
            return None
        return rng.choice(remaining)


def load_topics(path: str) -> TopicPool:
    try:
        with open(path, encoding='utf-8') as fh:
            pool = TopicPool(fh.read().splitlines())
    except (OSError, UnicodeDecodeError) as exc:
        logger.error(f"[topics] could not read {path}: {exc}; using built-in list")
        return TopicPool(DEFAULT_TOPICS)
    if not len(pool):
        logger.warning(f"[topics] {path} has no topics; using built-in list")
        return TopicPool(DEFAULT_TOPICS)
    logger.info(f"[topics] loaded {len(pool)} debate topics from {path}")
    return pool
