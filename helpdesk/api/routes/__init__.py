from . import analytics, auth, knowledge_base, metrics, notifications, ping, tickets, users

__all__ = ["analytics", "auth", "knowledge_base", "metrics", "notifications", "ping", "tickets", "users"]
