"""Small TCP socket servers and clients: web page, chat, REST and file transfer."""

__version__ = "0.1.0"