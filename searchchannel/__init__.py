"""Line-based TCP channel server for a schema-less search backend: configuration, handshake, command dispatch and statistics."""

__version__ = "0.1.0"