"""toolchat: multi-provider chat backend with text-based tool calling."""

__version__ = "0.1.0"
