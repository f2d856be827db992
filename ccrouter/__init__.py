"""ccrouter - Anthropic Messages front end for OpenAI-compatible providers.

Usage:
    >>> from ccrouter.main import create_app
    >>> import uvicorn
    >>> uvicorn.run(create_app(), host="127.0.0.1", port=3456)
"""

__version__ = "0.1.0"
