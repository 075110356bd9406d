from pricestream.server.server import HTTPServer

__all__ = ["HTTPServer"]
