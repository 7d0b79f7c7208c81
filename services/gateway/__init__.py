from .edge_function_gateway import EdgeFunctionGateway

__all__ = ["EdgeFunctionGateway"]
