from .network import NetworkError, RepeaterClient

__all__ = ["NetworkError", "RepeaterClient"]
