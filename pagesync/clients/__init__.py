"""pagesync resource clients."""

from pagesync.clients.contents import ContentsClient
from pagesync.clients.git import GitDataClient
from pagesync.clients.pages import PagesClient
from pagesync.clients.repos import ReposClient

__all__ = [
    "ContentsClient",
    "GitDataClient",
    "PagesClient",
    "ReposClient",
]
