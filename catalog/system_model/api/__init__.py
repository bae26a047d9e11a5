"""
API layer for the system model catalog.

This module exposes the managers as gRPC services with JSON messages.
"""

from .codec import decode_request, decode_response, encode_request, encode_response
from .grpc_server import STATUS_CODES, GrpcServer, generic_handler
from .handlers import Method, ServiceHandler, build_handlers

__all__ = [
    "GrpcServer",
    "STATUS_CODES",
    "generic_handler",
    "Method",
    "ServiceHandler",
    "build_handlers",
    "decode_request",
    "decode_response",
    "encode_request",
    "encode_response",
]
