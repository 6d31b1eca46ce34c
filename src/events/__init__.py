"""
Event distribution: in-process broadcaster and downstream relays.
"""

from .broadcaster import EventBroadcaster, Subscription, Topic
from .kafka_relay import KafkaRelay

__all__ = ["EventBroadcaster", "Subscription", "Topic", "KafkaRelay"]
