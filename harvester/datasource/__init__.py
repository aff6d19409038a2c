from .base import ResultDataSource
from .html_page import HtmlDataSource
from .http_api import ApiDataSource
from .transport import TransportClient

__all__ = [
    "ResultDataSource",
    "ApiDataSource",
    "HtmlDataSource",
    "TransportClient",
]
