from src.core.context.dependencies import get_actor_context, get_network_id

__all__ = ["get_actor_context", "get_network_id"]
