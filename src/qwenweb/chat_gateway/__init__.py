"""HTTP gateway serving the web front end and proxying Qwen completions.

Static files come from a confined public directory; ``/api/chat`` and
``/api/image-to-text`` are forwarded to DashScope's OpenAI-compatible API.
"""

__all__ = []
