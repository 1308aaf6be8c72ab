from hubcast.domain.feed_operations import FeedOperations, feed_ops

__all__ = ["FeedOperations", "feed_ops"]
