from .broker import Broker, Subscription, broker, chat_topic, notifications_topic

__all__ = ["Broker", "Subscription", "broker", "chat_topic", "notifications_topic"]
