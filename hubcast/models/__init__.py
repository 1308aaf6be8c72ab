from hubcast.models.feed import Feed, FeedCreate, normalize_subject

__all__ = [
    "Feed",
    "FeedCreate",
    "normalize_subject",
]
