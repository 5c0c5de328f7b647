"""Request-level helpers: multipart uploads and the JSON exchanger."""
