"""Web novel downloader: crawl a chapter listing and save the text."""

__version__ = "0.1.0"
